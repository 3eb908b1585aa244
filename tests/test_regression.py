import math

import pytest

from paramfit import compute_stats


def _all_nan(stats):
    return all(math.isnan(v) for v in (stats.correlation_squared, stats.slope_se, stats.intercept_se))


@pytest.mark.parametrize(
    "x,y",
    [
        ([1.0, 2.0], [1.0, 2.0]),
        ([], []),
        ([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]),
        ([1.0, 2.0, 3.0], [4.0, 4.0, 4.0]),
    ],
)
def test_degenerate_inputs_are_undefined(x, y):
    assert _all_nan(compute_stats(x, y, is_linear_fit=True))


def test_known_values():
    stats = compute_stats([1, 2, 3, 4], [2, 4, 5, 4], is_linear_fit=True)
    assert stats.correlation_squared == pytest.approx(12.25 / 23.75)
    assert stats.slope_se == pytest.approx(math.sqrt(0.23))
    assert stats.intercept_se == pytest.approx(math.sqrt(1.725))


def test_standard_errors_only_for_linear_fits():
    stats = compute_stats([1, 2, 3, 4], [2, 4, 5, 4])
    assert stats.correlation_squared == pytest.approx(12.25 / 23.75)
    assert math.isnan(stats.slope_se)
    assert math.isnan(stats.intercept_se)


def test_perfect_line():
    stats = compute_stats([0, 1, 2, 3, 4], [1, 3, 5, 7, 9], is_linear_fit=True)
    assert stats.correlation_squared == pytest.approx(1.0)
    assert stats.slope_se == pytest.approx(0.0, abs=1e-9)
    assert stats.uncertainties == (stats.slope_se, stats.intercept_se)


def test_length_mismatch():
    with pytest.raises(ValueError):
        compute_stats([1, 2, 3], [1, 2])

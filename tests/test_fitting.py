import math

import numpy as np
import pytest

import paramfit.fitting.engine as engine_module
from paramfit import (
    ExpressionModel,
    FitEngine,
    FitLibrary,
    FitOptions,
    PolynomialModel,
    deviation_squared,
    fit_polynomial,
    get_fit_options,
    hessian_minimize,
    levmar_minimize,
    set_fit_options,
)
from paramfit.fitting import DeviationObjective
from paramfit.fitting.engine import _format_uncertainty

X = [0.0, 1.0, 2.0, 3.0, 4.0]
Y = [0.1, 0.9, 2.05, 2.95, 4.1]


def _linear_expression(a=0.0, b=0.0):
    model = ExpressionModel("linear")
    model.set_parameters(["a", "b"], [a, b])
    assert model.set_expression("a*x+b", ["x"])
    return model


def test_linear_polynomial_scenario():
    model = PolynomialModel([0.0, 0.0], ["a", "b"])
    engine = FitEngine()
    result = engine.fit(model, X, Y)

    assert result.status == "ok"
    assert result.states == ["polynomial"]
    assert result.is_linear_fit
    assert model.parameter_value(0) == pytest.approx(1.0, abs=0.01)
    assert model.parameter_value(1) == pytest.approx(0.0, abs=0.02)
    assert engine.correlation == pytest.approx(1.0, abs=0.01)
    slope_se, intercept_se = result.stats.uncertainties
    assert 0 < slope_se < 0.1
    assert 0 < intercept_se < 0.1
    assert float(result) == pytest.approx(math.sqrt(result.deviation_squared / 5))


def test_linear_expression_scenario():
    model = _linear_expression()
    result = FitEngine().fit(model, X, Y)

    assert result.status == "ok"
    assert result.states[:2] == ["hessian", "accepted"]
    assert result.attempts[0].accepted
    assert model.parameter_value(0) == pytest.approx(1.0, abs=0.02)
    assert model.parameter_value(1) == pytest.approx(0.0, abs=0.05)
    assert result.stats.correlation_squared == pytest.approx(1.0, abs=0.01)
    # standard errors belong to closed-form linear fits only
    assert math.isnan(result.stats.slope_se)


@pytest.mark.parametrize("name,start", [("Gaussian", (1, 0, 1)), ("Exponential", (1, 1)), ("Sinusoid", (1, 1, 0)), ("Parabola", (0, 0, 0))])
def test_fit_never_increases_deviation(name, start):
    x = np.linspace(0, 4, 12)
    y = 3 * np.exp(-0.5 * x) + 0.1 * np.sin(5 * x)
    model = FitLibrary().create(name)
    model.set_parameter_values(start)
    before = deviation_squared(model, x, y)

    result = FitEngine().fit(model, x, y)

    assert result.deviation_squared <= before
    assert deviation_squared(model, x, y) == pytest.approx(result.deviation_squared)


def test_rollback_is_bit_identical_and_idempotent():
    model = _linear_expression(1.0, 0.0)
    engine = FitEngine()
    fired = []
    engine.add_listener(fired.append, "fit")

    first = engine.fit(model, X, X)
    assert first.autofit_failed
    assert first.states == ["hessian", "levenberg_marquardt", "reverted"]
    assert [a.outcome for a in first.attempts] == ["rejected", "rejected"]
    assert model.parameter_values() == (1.0, 0.0)
    assert not engine.autofit
    assert first.deviation_squared == 0.0

    engine.set_autofit(True)
    second = engine.fit(model, X, X)
    assert second.autofit_failed
    assert model.parameter_values() == (1.0, 0.0)
    assert len(fired) == 2


def test_direct_evaluation_when_autofit_is_off():
    model = _linear_expression(2.0, 1.0)
    engine = FitEngine(options=FitOptions(autofit=False))
    result = engine.fit(model, X, Y)
    assert result.states == ["direct"]
    assert model.parameter_values() == (2.0, 1.0)
    assert result.deviation_squared == pytest.approx(deviation_squared(model, X, Y))


def test_no_data():
    model = _linear_expression()
    engine = FitEngine()
    result = engine.fit(model, [math.nan, 1.0], [1.0, math.inf])
    assert result.status == "no_data"
    assert result.sample_count == 0
    assert math.isnan(float(result))
    assert not engine.autofit_available
    assert engine.autofit


def test_nan_prediction_makes_fit_undefined():
    model = ExpressionModel("root")
    model.set_parameters(["a"], [1.0])
    assert model.set_expression("a*sqrt(x)", ["x"])
    engine = FitEngine()
    result = engine.fit(model, [-1.0, 1.0, 4.0], [1.0, 1.0, 2.0])
    assert result.status == "undefined"
    assert result.states == ["direct"]
    assert engine.fit_evaluated_to_nan
    assert model.parameter_values() == (1.0,)


def test_cancelling_terms_still_make_fit_undefined():
    model = ExpressionModel("ratio")
    model.set_parameters(["a"], [1.0])
    assert model.set_expression("a*x/x", ["x"])
    result = FitEngine().fit(model, [0.0, 1.0, 2.0], [1.0, 1.0, 1.0])
    assert result.status == "undefined"
    assert result.states == ["direct"]
    assert model.evaluated_to_nan()


def test_too_few_points_for_parameters():
    model = FitLibrary().create("Gaussian")
    result = FitEngine().fit(model, [0.0, 1.0], [1.0, 0.5])
    assert result.states == ["direct"]
    assert result.status == "ok"


def test_zero_y_variance_gives_nan_correlation():
    model = PolynomialModel([0.0, 0.0])
    engine = FitEngine()
    result = engine.fit(model, X, [2.0] * 5)
    assert result.status == "ok"
    assert math.isnan(engine.correlation)
    assert model.parameter_value(1) == pytest.approx(2.0)


def test_gaussian_scenario():
    rng = np.random.default_rng(0)
    x = np.linspace(-3, 5, 41)
    y = 2.0 * np.exp(-((x - 1.0) ** 2) / (2 * 0.8**2)) + rng.normal(0, 0.02, x.size)
    model = FitLibrary().create("Gaussian")
    model.set_parameter_values((1.8, 0.8, 1.0))

    engine = FitEngine()
    for _ in range(5):
        engine.fit(model, x, y)

    a, b, c = model.parameter_values()
    assert a == pytest.approx(2.0, rel=0.05)
    assert b == pytest.approx(1.0, rel=0.05)
    assert abs(c) == pytest.approx(0.8, rel=0.05)


def test_minimizer_error_counts_as_rejected(monkeypatch):
    def _boom(*args, **kwargs):
        raise ValueError("boom")

    monkeypatch.setattr(engine_module, "hessian_minimize", _boom)
    model = _linear_expression()
    result = FitEngine().fit(model, X, Y)

    assert result.attempts[0].outcome == "rejected"
    assert result.attempts[0].error == "boom"
    assert result.attempts[1].minimizer == "levenberg_marquardt"
    assert result.attempts[1].accepted
    assert model.parameter_value(0) == pytest.approx(1.005, abs=1e-3)


def test_uncertainties_follow_autofit():
    engine = FitEngine()
    result = engine.fit(PolynomialModel([0.0, 0.0]), X, Y)
    assert engine.get_uncertainty(0) == result.stats.slope_se
    assert engine.get_uncertainty(1) == result.stats.intercept_se
    assert math.isnan(engine.get_uncertainty(2))
    assert engine.uncertainty_string(0).startswith("± ")

    engine.set_autofit(False)
    assert math.isnan(engine.get_uncertainty(0))
    assert engine.uncertainty_string(0) is None


@pytest.mark.parametrize(
    "value,text",
    [(0.0331, "3.3E-2"), (0.5, "0.50"), (2.345, "2.3"), (42.0, "42"), (1234.0, "1.2E3"), (0.0, "0.0E0")],
)
def test_uncertainty_format(value, text):
    assert _format_uncertainty(value) == text


def test_set_model_fires_function_event():
    engine = FitEngine()
    events = []
    engine.add_listener(events.append, "function")
    first = PolynomialModel([0.0, 0.0])
    engine.set_model(first)
    engine.fit(first, X, Y)
    second = PolynomialModel([0.0, 0.0, 0.0])
    engine.fit(second, X, Y)
    assert [(e.old, e.new) for e in events] == [(None, first), (first, second)]


def test_fit_options_are_copied():
    original = get_fit_options()
    try:
        set_fit_options(FitOptions(max_iterations=5))
        assert get_fit_options().max_iterations == 5
        options = get_fit_options()
        options.max_iterations = 99
        assert get_fit_options().max_iterations == 5
        assert FitEngine().options.max_iterations == 5
    finally:
        set_fit_options(original)


def test_minimizers_update_params_in_place():
    model = _linear_expression()
    objective = DeviationObjective(model, X, Y)

    params = np.zeros(2)
    value = hessian_minimize(objective, params)
    assert params[0] == pytest.approx(1.005, abs=1e-3)
    assert value == pytest.approx(objective(params))

    params = np.zeros(2)
    value = levmar_minimize(objective, params)
    assert params[1] == pytest.approx(0.01, abs=1e-3)
    assert value == pytest.approx(objective(params))


def test_fit_polynomial_in_place():
    coefficients = np.zeros(2)
    returned = fit_polynomial(coefficients, [0, 1, 2], [1, 3, 5])
    assert returned is coefficients
    assert coefficients.tolist() == pytest.approx([2.0, 1.0])

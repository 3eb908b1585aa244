"""Pearson correlation and linear-fit standard errors."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class RegressionStats:
    correlation_squared: float = math.nan
    slope_se: float = math.nan
    intercept_se: float = math.nan

    @property
    def uncertainties(self) -> tuple:
        """Slope and intercept standard errors, in parameter order."""

        return (self.slope_se, self.intercept_se)


UNDEFINED = RegressionStats()


def compute_stats(x: Sequence[float], y: Sequence[float], is_linear_fit: bool = False) -> RegressionStats:
    """Return the squared Pearson correlation of ``(x, y)``.

    Slope and intercept standard errors are filled in only for linear fits.
    Every field is NaN for fewer than 3 points or when either axis has no
    variance.
    """

    xd = np.asarray(x, dtype=float)
    yd = np.asarray(y, dtype=float)
    if xd.shape != yd.shape:
        raise ValueError(f"x and y must have the same shape, got {xd.shape} and {yd.shape}")
    n = xd.size
    if n < 3:
        return UNDEFINED

    mean_x = xd.sum() / n
    mean_y = yd.sum() / n
    dx = xd - mean_x
    dy = yd - mean_y
    sum_sq_x = float(np.dot(dx, dx))
    sum_sq_y = float(np.dot(dy, dy))
    sum_coproduct = float(np.dot(dx, dy))
    if sum_sq_x == 0 or sum_sq_y == 0:
        return UNDEFINED

    correlation = sum_coproduct * sum_coproduct / (sum_sq_x * sum_sq_y)
    if not is_linear_fit:
        return RegressionStats(correlation_squared=correlation)

    sum_sq_err = max(0.0, sum_sq_y - sum_coproduct * sum_coproduct / sum_sq_x)
    mean_sq_err = sum_sq_err / (n - 2)
    slope_se = math.sqrt(mean_sq_err / sum_sq_x)
    intercept_se = math.sqrt(mean_sq_err * (1.0 / n + float(mean_x) ** 2 / sum_sq_x))
    return RegressionStats(correlation_squared=correlation, slope_se=slope_se, intercept_se=intercept_se)


__all__ = ["RegressionStats", "compute_stats"]

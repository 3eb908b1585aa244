"""Minimizers over a model's parameter vector, backed by scipy and numpy."""

from __future__ import annotations

import logging
import math
import warnings
from typing import Sequence

import numpy as np
from scipy.optimize import least_squares, minimize

from ..logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)


class DeviationObjective:
    """Sum of squared residuals of ``model`` over ``(x, y)`` as a function of its parameters.

    Calling the objective writes the trial parameters into the model.
    """

    def __init__(self, model, x: Sequence[float], y: Sequence[float]):
        self.model = model
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.evaluations = 0

    def residuals(self, params: np.ndarray) -> np.ndarray:
        self.evaluations += 1
        self.model.set_parameter_values(tuple(float(p) for p in params))
        with np.errstate(all="ignore"):
            return self.y - self.model.evaluate_many(self.x)

    def __call__(self, params: np.ndarray) -> float:
        res = self.residuals(params)
        value = float(np.dot(res, res))
        if not math.isfinite(value):
            return math.inf
        return value


def hessian_minimize(
    objective: DeviationObjective,
    params: np.ndarray,
    max_iterations: int = 20,
    tolerance: float = 1e-6,
    method: str = "BFGS",
) -> float:
    """Quasi-Newton minimisation of ``objective``; ``params`` is updated in place."""

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        result = minimize(
            objective,
            np.array(params, dtype=float),
            method=method,
            tol=tolerance,
            options={"maxiter": max_iterations},
        )
    logger.debug(
        "hessian_minimize: method=%s nit=%s nfev=%s fun=%.6g message=%s",
        method,
        getattr(result, "nit", None),
        result.nfev,
        result.fun,
        result.message,
    )
    params[:] = result.x
    return float(result.fun)


def levmar_minimize(
    objective: DeviationObjective,
    params: np.ndarray,
    max_iterations: int = 20,
    tolerance: float = 1e-6,
) -> float:
    """Levenberg-Marquardt on the residual vector; ``params`` is updated in place.

    Needs at least as many samples as parameters.
    """

    x0 = np.array(params, dtype=float)
    result = least_squares(
        objective.residuals,
        x0,
        method="lm",
        max_nfev=max_iterations * (x0.size + 1),
        ftol=tolerance,
        xtol=tolerance,
        gtol=tolerance,
    )
    logger.debug(
        "levmar_minimize: status=%s nfev=%s cost=%.6g message=%s",
        result.status,
        result.nfev,
        result.cost,
        result.message,
    )
    params[:] = result.x
    return float(2.0 * result.cost)


def fit_polynomial(coefficients: np.ndarray, x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """Least-squares polynomial fit of ``(x, y)`` written into ``coefficients``.

    The degree is ``coefficients.size - 1``; coefficients are highest power first.
    """

    degree = coefficients.size - 1
    with warnings.catch_warnings():
        # underdetermined fits still return the minimum-norm solution
        warnings.simplefilter("ignore")
        fitted = np.polyfit(np.asarray(x, dtype=float), np.asarray(y, dtype=float), degree)
    coefficients[:] = fitted
    return coefficients


apply_debug_logging(globals(), logger=logger, skip={"DeviationObjective.residuals"})


__all__ = ["DeviationObjective", "fit_polynomial", "hessian_minimize", "levmar_minimize"]

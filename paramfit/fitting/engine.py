"""Autofit orchestration: closed-form polynomial fits and two-tier minimisation."""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..events import FIT, FUNCTION, ChangeSupport
from ..logging_utils import apply_debug_logging
from ..regression import UNDEFINED, RegressionStats, compute_stats
from .config import get_fit_options
from .minimizers import DeviationObjective, hessian_minimize, levmar_minimize
from .model import FitAttempt, FitOptions, FitResult, FitState

logger = logging.getLogger(__name__)


def deviation_squared(model, x: Sequence[float], y: Sequence[float]) -> float:
    """Sum of squared deviations of ``model`` from ``y``; NaN if any prediction is not finite."""

    xd = np.asarray(x, dtype=float)
    yd = np.asarray(y, dtype=float)
    predicted = model.evaluate_many(xd)
    if model.evaluated_to_nan() or not np.all(np.isfinite(predicted)):
        return math.nan
    dev = predicted - yd
    return float(np.dot(dev, dev))


def _valid_points(x: Sequence[float], y: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    xd = np.asarray(x, dtype=float).ravel()
    yd = np.asarray(y, dtype=float).ravel()
    if xd.shape != yd.shape:
        raise ValueError(f"x and y must have the same length, got {xd.size} and {yd.size}")
    mask = np.isfinite(xd) & np.isfinite(yd)
    return xd[mask], yd[mask]


def _format_uncertainty(value: float) -> str:
    if not math.isfinite(value):
        return str(value)
    if value < 0.1 or value >= 100:
        if value == 0:
            return "0.0E0"
        exponent = int(math.floor(math.log10(value)))
        mantissa = round(value / 10 ** exponent, 1)
        if mantissa >= 10:
            mantissa /= 10
            exponent += 1
        return f"{mantissa:.1f}E{exponent}"
    if value < 1:
        return f"{value:.2f}"
    if value < 10:
        return f"{value:.1f}"
    return f"{value:.0f}"


class FitEngine(ChangeSupport):
    """Fits a polynomial or expression model to data, never making the fit worse.

    Expression models are minimised with a quasi-Newton method first and with
    Levenberg-Marquardt if that does not improve the deviation. When neither
    improves it, the parameters are restored exactly and autofit is switched
    off.
    """

    def __init__(self, model=None, options: Optional[FitOptions] = None):
        super().__init__()
        self.options = options if options is not None else get_fit_options()
        self.autofit = self.options.autofit
        self.autofit_available = True
        self.model = model
        self.stats: RegressionStats = UNDEFINED
        self.is_linear_fit = False
        self.fit_evaluated_to_nan = False
        self.last_result: Optional[FitResult] = None

    @property
    def correlation(self) -> float:
        return self.stats.correlation_squared

    def set_model(self, model) -> None:
        previous = self.model
        self.model = model
        self.fire(FUNCTION, previous, model)

    def set_autofit(self, flag: bool) -> None:
        self.autofit = bool(flag)

    def get_uncertainty(self, index: int) -> float:
        """Standard error of parameter ``index`` (slope 0, intercept 1) of a linear autofit."""

        if 0 <= index < 2 and self.autofit:
            return self.stats.uncertainties[index]
        return math.nan

    def uncertainty_string(self, index: int) -> Optional[str]:
        value = self.get_uncertainty(index)
        if math.isnan(value):
            return None
        return "± " + _format_uncertainty(value)

    def fit(self, model, x: Sequence[float], y: Sequence[float]) -> FitResult:
        if model is None:
            model = self.model
        if model is None:
            raise ValueError("no model to fit")
        if model is not self.model:
            self.set_model(model)

        xd, yd = _valid_points(x, y)
        n = xd.size
        states: List[FitState] = []
        attempts: List[FitAttempt] = []

        if n == 0:
            logger.info("No valid data points; nothing to fit for %s", model.name)
            self.autofit_available = False
            self.stats = UNDEFINED
            self.is_linear_fit = False
            result = FitResult(
                status="no_data",
                deviation_squared=math.nan,
                rms_deviation=math.nan,
                sample_count=0,
                parameters=tuple(model.parameter_values()),
                states=["no_data"],
            )
            return self._finish(result)

        self.autofit_available = True
        previous = deviation_squared(model, xd, yd)
        self.fit_evaluated_to_nan = math.isnan(previous)
        if self.fit_evaluated_to_nan:
            logger.warning("Model %s does not evaluate to a finite value at every data point", model.name)

        dev_sq = previous
        is_linear = False
        autofit_failed = False
        if not self.autofit or math.isnan(previous):
            states.append("direct")
        elif model.kind == "polynomial":
            states.append("polynomial")
            try:
                model.fit_data(xd, yd)
            except (ValueError, np.linalg.LinAlgError) as exc:
                logger.warning("Polynomial fit of %s failed: %s", model.name, exc)
            is_linear = model.degree == 1
            dev_sq = deviation_squared(model, xd, yd)
        elif 0 < model.parameter_count <= n:
            dev_sq, autofit_failed = self._minimize(model, xd, yd, previous, states, attempts)
        else:
            logger.debug(
                "Cannot autofit %s: %d parameters for %d points", model.name, model.parameter_count, n
            )
            states.append("direct")

        self.is_linear_fit = is_linear
        self.stats = compute_stats(xd, yd, is_linear)
        rms = math.sqrt(dev_sq / n) if not math.isnan(dev_sq) else math.nan
        result = FitResult(
            status="undefined" if math.isnan(rms) else "ok",
            deviation_squared=dev_sq,
            rms_deviation=rms,
            sample_count=n,
            parameters=tuple(model.parameter_values()),
            stats=self.stats,
            is_linear_fit=is_linear,
            autofit_failed=autofit_failed,
            states=states,
            attempts=attempts,
        )
        logger.info(
            "Fit %s: status=%s rms=%.6g r2=%.6g states=%s",
            model.name,
            result.status,
            rms,
            self.stats.correlation_squared,
            "->".join(states),
        )
        return self._finish(result)

    def _finish(self, result: FitResult) -> FitResult:
        self.last_result = result
        self.fire(FIT, None, result)
        return result

    def _minimize(
        self,
        model,
        x: np.ndarray,
        y: np.ndarray,
        previous: float,
        states: List[FitState],
        attempts: List[FitAttempt],
    ) -> Tuple[float, bool]:
        opts = self.options
        snapshot = tuple(model.parameter_values())
        objective = DeviationObjective(model, x, y)
        minimizers: List[Tuple[FitState, Callable[[np.ndarray], float]]] = [
            (
                "hessian",
                lambda p: hessian_minimize(objective, p, opts.max_iterations, opts.tolerance, opts.hessian_method),
            ),
            ("levenberg_marquardt", lambda p: levmar_minimize(objective, p, opts.max_iterations, opts.tolerance)),
        ]

        for state, run in minimizers:
            states.append(state)
            params = np.array(snapshot, dtype=float)
            error = None
            try:
                run(params)
                model.set_parameter_values(tuple(float(p) for p in params))
                candidate = deviation_squared(model, x, y)
            except (ValueError, ArithmeticError, np.linalg.LinAlgError) as exc:
                logger.warning("%s minimizer failed for %s: %s", state, model.name, exc)
                error = str(exc)
                candidate = math.nan

            accepted = not math.isnan(candidate) and candidate < previous
            attempts.append(
                FitAttempt(
                    minimizer=state,
                    previous_parameters=snapshot,
                    previous_deviation_squared=previous,
                    candidate_parameters=tuple(float(p) for p in params),
                    candidate_deviation_squared=candidate,
                    outcome="accepted" if accepted else "rejected",
                    error=error,
                )
            )
            if accepted:
                states.append("accepted")
                return candidate, False
            model.set_parameter_values(snapshot)

        states.append("reverted")
        self.autofit = False
        logger.info("Autofit of %s did not improve the deviation; parameters restored, autofit off", model.name)
        return previous, True


apply_debug_logging(globals(), logger=logger)


__all__ = ["FitEngine", "deviation_squared"]

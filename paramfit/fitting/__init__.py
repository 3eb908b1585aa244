"""Fit façade: engine, minimizers and fit options."""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_fit_options, set_fit_options
from .engine import FitEngine, deviation_squared
from .minimizers import DeviationObjective, fit_polynomial, hessian_minimize, levmar_minimize
from .model import FitAttempt, FitOptions, FitResult, FitState, FitStatus

logger = logging.getLogger(__name__)

if not logging.getLogger().handlers:  # pragma: no cover - depends on host application
    logging.basicConfig(level=logging.INFO)


def fit(model, x, y, options: Optional[FitOptions] = None) -> FitResult:
    """Fit ``model`` to ``(x, y)`` with a one-off engine."""

    return FitEngine(model, options).fit(model, x, y)


__all__ = [
    "DeviationObjective",
    "FitAttempt",
    "FitEngine",
    "FitOptions",
    "FitResult",
    "FitState",
    "FitStatus",
    "deviation_squared",
    "fit",
    "fit_polynomial",
    "get_fit_options",
    "hessian_minimize",
    "levmar_minimize",
    "set_fit_options",
]

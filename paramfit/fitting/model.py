"""Data structures shared by the fit pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..regression import RegressionStats

FitStatus = str  # "no_data" | "undefined" | "ok"
FitState = str  # "no_data" | "direct" | "polynomial" | "hessian" | "levenberg_marquardt" | "accepted" | "reverted"


@dataclass
class FitOptions:
    """Fit engine options."""

    max_iterations: int = 20
    tolerance: float = 1e-6
    hessian_method: str = "BFGS"
    autofit: bool = True


@dataclass
class FitAttempt:
    """One minimizer run and whether its candidate replaced the previous parameters."""

    minimizer: str
    previous_parameters: Tuple[float, ...]
    previous_deviation_squared: float
    candidate_parameters: Tuple[float, ...]
    candidate_deviation_squared: float
    outcome: str
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.outcome == "accepted"


@dataclass
class FitResult:
    status: FitStatus
    deviation_squared: float
    rms_deviation: float
    sample_count: int
    parameters: Tuple[float, ...] = ()
    stats: RegressionStats = field(default_factory=RegressionStats)
    is_linear_fit: bool = False
    autofit_failed: bool = False
    states: List[FitState] = field(default_factory=list)
    attempts: List[FitAttempt] = field(default_factory=list)

    def __float__(self) -> float:
        return self.rms_deviation

    @property
    def ok(self) -> bool:
        return self.status == "ok" and math.isfinite(self.rms_deviation)


__all__ = ["FitAttempt", "FitOptions", "FitResult", "FitState", "FitStatus"]

"""Module-level default fit options."""

from __future__ import annotations

import copy

from .model import FitOptions

_FIT_OPTIONS = FitOptions()


def get_fit_options() -> FitOptions:
    return copy.deepcopy(_FIT_OPTIONS)


def set_fit_options(options: FitOptions) -> None:
    global _FIT_OPTIONS
    _FIT_OPTIONS = copy.deepcopy(options)

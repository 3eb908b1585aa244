"""Built-in fit functions and a registry of fits keyed by name."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .expression import ExpressionModel
from .polynomial import PolynomialModel

logger = logging.getLogger(__name__)

FitModel = Union[PolynomialModel, ExpressionModel]


def _expression_fit(name, expression, names, values, descriptions, description) -> ExpressionModel:
    model = ExpressionModel(name, description)
    model.set_parameters(names, values, descriptions)
    model.set_expression(expression, ["x"])
    return model


def default_fits() -> List[FitModel]:
    """Fresh copies of the fits every library starts with."""

    return [
        PolynomialModel([0, 0], name="Line", description="Straight line"),
        PolynomialModel([0, 0, 0], name="Parabola", description="Quadratic polynomial"),
        PolynomialModel([0, 0, 0, 0], name="Cubic", description="Cubic polynomial"),
        _expression_fit(
            "Gaussian",
            "A*exp(-(x-B)^2/(2*C^2))",
            ["A", "B", "C"],
            [1, 0, 1],
            ["peak height", "peak position", "rms width"],
            "Gaussian peak",
        ),
        _expression_fit(
            "Exponential",
            "A*exp(-x*B)",
            ["A", "B"],
            [1, 1],
            ["intercept", "exponential multiplier"],
            "Exponential decay",
        ),
        _expression_fit(
            "Sinusoid",
            "A*sin(B*x+C)",
            ["A", "B", "C"],
            [1, 1, 0],
            ["amplitude", "angular frequency", "phase"],
            "Sine wave",
        ),
    ]


def model_to_dict(model: FitModel) -> Dict[str, Any]:
    data = model.to_dict()
    data["kind"] = model.kind
    return data


def model_from_dict(data: Mapping[str, Any]) -> FitModel:
    kind = data.get("kind", "polynomial" if "coefficients" in data else "expression")
    if kind == "polynomial":
        return PolynomialModel.from_dict(dict(data))
    if kind == "expression":
        return ExpressionModel.from_dict(dict(data))
    raise ValueError(f"unknown model kind {kind!r}")


class FitLibrary:
    """Fits available for selection, in insertion order."""

    def __init__(self, fits: Optional[List[FitModel]] = None):
        self._fits: Dict[str, FitModel] = {}
        for model in default_fits() if fits is None else fits:
            self.add(model)

    def __len__(self) -> int:
        return len(self._fits)

    def __iter__(self) -> Iterator[FitModel]:
        return iter(list(self._fits.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._fits

    def names(self) -> List[str]:
        return list(self._fits)

    def get(self, name: str) -> Optional[FitModel]:
        return self._fits.get(name)

    def create(self, name: str) -> FitModel:
        """Return an independent copy of the named fit."""

        try:
            return self._fits[name].clone()
        except KeyError:
            raise KeyError(f"unknown fit {name!r}; available: {', '.join(self._fits)}") from None

    def unique_name(self, proposed: str) -> str:
        name = proposed
        i = 0
        while name in self._fits:
            i += 1
            name = f"{proposed}{i}"
        return name

    def add(self, model: FitModel) -> Optional[FitModel]:
        """Register ``model``; returns ``None`` when an identical fit is already present.

        A fit whose name is taken by a different expression is renamed with a
        numeric suffix.
        """

        existing = self._fits.get(model.name)
        if existing is not None:
            if existing.get_expression() == model.get_expression():
                logger.debug("Fit %s already registered with the same expression", model.name)
                return None
            name = self.unique_name(model.name)
            logger.info("Fit name %s in use; adding as %s", model.name, name)
            model.name = name
        else:
            name = model.name
        self._fits[name] = model
        return model

    def remove(self, name: str) -> FitModel:
        return self._fits.pop(name)

    def to_dict(self) -> Dict[str, Any]:
        return {"fits": [model_to_dict(model) for model in self._fits.values()]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FitLibrary":
        return cls([model_from_dict(item) for item in data.get("fits", [])])


__all__ = [
    "FitLibrary",
    "FitModel",
    "default_fits",
    "model_from_dict",
    "model_to_dict",
]

"""Polynomial models with a closed-form least-squares fit."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .fitting.minimizers import fit_polynomial

DEFAULT_PARAMETER_NAMES: Tuple[str, ...] = ("A", "B", "C", "D", "E", "F")


class PolynomialModel:
    """Polynomial ``A*x^n + B*x^(n-1) + ...`` whose parameter ``i`` is ``coefficients[i]``.

    Coefficients are ordered from the highest power down, as ``numpy.polyval``
    expects them.
    """

    kind = "polynomial"

    def __init__(
        self,
        coefficients: Sequence[float],
        parameter_names: Optional[Sequence[str]] = None,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        if len(coefficients) < 1:
            raise ValueError("a polynomial needs at least one coefficient")
        self.coefficients: List[float] = [float(c) for c in coefficients]
        count = len(self.coefficients)
        if parameter_names is None:
            if count > len(DEFAULT_PARAMETER_NAMES):
                raise ValueError(f"default parameter names cover degree {len(DEFAULT_PARAMETER_NAMES) - 1} at most")
            parameter_names = DEFAULT_PARAMETER_NAMES[:count]
        if len(parameter_names) != count:
            raise ValueError("one parameter name per coefficient is required")
        self.parameter_names: List[str] = list(parameter_names)
        self.parameter_descriptions: List[Optional[str]] = [None] * count
        self._name = name
        self._description = description
        self._evaluated_to_nan = False

    def __repr__(self) -> str:
        return f"PolynomialModel(name={self.name!r}, coefficients={self.coefficients!r})"

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        return f"Poly{self.degree}"

    @name.setter
    def name(self, value: Optional[str]) -> None:
        if value and value.strip():
            self._name = value

    @property
    def description(self) -> str:
        if self._description and self._description.strip():
            return self._description
        return f"Polynomial of degree {self.degree}"

    @description.setter
    def description(self, value: Optional[str]) -> None:
        self._description = value

    @property
    def parameter_count(self) -> int:
        return len(self.coefficients)

    def parameter_name(self, index: int) -> str:
        return self.parameter_names[index]

    def parameter_description(self, index: int) -> Optional[str]:
        desc = self.parameter_descriptions[index]
        if desc is not None:
            return desc
        if self.parameter_count == 2:
            return "slope" if index == 0 else "intercept"
        return None

    def parameter_value(self, index: int) -> float:
        return self.coefficients[index]

    def set_parameter_value(self, index: int, value: float) -> None:
        if math.isnan(value):
            return
        self.coefficients[index] = float(value)

    def parameter_values(self) -> Tuple[float, ...]:
        return tuple(self.coefficients)

    def set_parameter_values(self, values: Sequence[float]) -> None:
        if len(values) != len(self.coefficients):
            raise ValueError(f"expected {len(self.coefficients)} parameter values, got {len(values)}")
        self.coefficients = [float(v) for v in values]

    def set_parameters(
        self,
        names: Optional[Sequence[Optional[str]]],
        values: Optional[Sequence[float]],
        descriptions: Optional[Sequence[Optional[str]]] = None,
    ) -> None:
        """Update names, values and descriptions; blank names and NaN values are skipped."""

        count = self.parameter_count
        if names is not None:
            for i, name in enumerate(names[:count]):
                if name and name.strip():
                    self.parameter_names[i] = name
        if descriptions is not None:
            self.parameter_descriptions = (list(descriptions[:count]) + [None] * count)[:count]
        if values is not None:
            for i, value in enumerate(values[:count]):
                self.set_parameter_value(i, value)

    def get_expression(self, variable: str = "x") -> str:
        terms = []
        for i, pname in enumerate(self.parameter_names):
            power = self.degree - i
            if power > 1:
                terms.append(f"{pname}*{variable}^{power}")
            elif power == 1:
                terms.append(f"{pname}*{variable}")
            else:
                terms.append(pname)
        return " + ".join(terms)

    def evaluate(self, x: float) -> float:
        with np.errstate(all="ignore"):
            result = float(np.polyval(self.coefficients, float(x)))
        self._evaluated_to_nan = not math.isfinite(result)
        return result

    def evaluate_many(self, points: Any) -> np.ndarray:
        with np.errstate(all="ignore"):
            result = np.polyval(self.coefficients, np.asarray(points, dtype=float))
        self._evaluated_to_nan = not bool(np.all(np.isfinite(result)))
        return result

    def evaluated_to_nan(self) -> bool:
        return self._evaluated_to_nan

    def fit_data(self, x: Sequence[float], y: Sequence[float]) -> None:
        """Replace the coefficients with the least-squares fit to ``(x, y)``."""

        coefficients = np.array(self.coefficients, dtype=float)
        fit_polynomial(coefficients, x, y)
        self.coefficients = coefficients.tolist()

    def clone(self) -> "PolynomialModel":
        copy = PolynomialModel(self.coefficients, self.parameter_names, name=self._name, description=self._description)
        copy.parameter_descriptions = list(self.parameter_descriptions)
        return copy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self._description,
            "coefficients": list(self.coefficients),
            "parameter_names": list(self.parameter_names),
            "parameter_descriptions": list(self.parameter_descriptions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolynomialModel":
        poly = cls(data["coefficients"], data.get("parameter_names"), name=data.get("name"), description=data.get("description"))
        descriptions = data.get("parameter_descriptions")
        if descriptions is not None:
            poly.set_parameters(None, None, descriptions)
        return poly


__all__ = ["DEFAULT_PARAMETER_NAMES", "PolynomialModel"]

"""User-editable expression models with collision-safe name binding."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .lexer import ExpressionSyntaxError
from .parser import RESERVED_NAMES, ParsedExpression, parse

logger = logging.getLogger(__name__)

# One stand-in per independent-variable slot. Runic letters lex as identifiers
# and do not turn up in formulas typed by users.
PLACEHOLDERS: Tuple[str, ...] = ("ᚠ", "ᚢ", "ᚦ", "ᚨ", "ᚱ")
MAX_VARIABLES = len(PLACEHOLDERS)

_PROTECT_BASE = 0xE000  # private-use code points, never valid in expression text

Number = Union[float, int]


def _protect_token(index: int) -> str:
    return chr(_PROTECT_BASE + index)


def replace_name(expression: str, old: str, new: str, other_names: Iterable[str]) -> str:
    """Replace ``old`` with ``new`` in ``expression`` by plain text substitution.

    Any other name that contains ``old`` is swapped for a temporary token first
    and restored afterwards, so renaming ``a`` cannot corrupt ``ab`` or ``tan``.
    """

    if not old or old == new:
        return expression
    shielded = sorted(
        {name for name in other_names if name and name not in (old, new) and old in name},
        key=len,
        reverse=True,
    )
    restore: List[Tuple[str, str]] = []
    for idx, name in enumerate(shielded):
        token = _protect_token(idx)
        expression = expression.replace(name, token)
        restore.append((token, name))
    expression = expression.replace(old, new)
    for token, name in restore:
        expression = expression.replace(token, name)
    return expression


class ExpressionModel:
    """A named expression over independent variables, parameters and sub-models.

    The expression is stored in canonical form: every independent variable is
    replaced by its slot placeholder, so variables can be renamed freely and
    never collide with parameter, sub-model or reserved function names.
    """

    kind = "expression"

    def __init__(self, name: str, description: Optional[str] = None):
        self._name = name
        self.name_editable = True
        self.description = description
        self._param_names: List[str] = []
        self._param_values: List[float] = []
        self._param_descriptions: List[Optional[str]] = []
        self.variables: List[str] = ["x"]
        self.references: List[ExpressionModel] = []
        self.expression = "0"
        self.input_string = "0"
        self.polynomial = None
        self._function: ParsedExpression = parse("0", [])
        self._evaluated_to_nan = False

    @classmethod
    def from_polynomial(cls, poly) -> "ExpressionModel":
        model = cls(poly.name, poly.description)
        model.polynomial = poly
        model.set_parameters(
            list(poly.parameter_names),
            list(poly.parameter_values()),
            [poly.parameter_description(i) for i in range(poly.parameter_count)],
        )
        model.set_expression(poly.get_expression("x"), ["x"])
        return model

    def __repr__(self) -> str:
        return f"ExpressionModel(name={self._name!r}, expression={self.get_expression()!r})"

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if not self.name_editable:
            return
        self._name = value

    # -- parameters -----------------------------------------------------

    @property
    def parameter_count(self) -> int:
        return len(self._param_names)

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return tuple(self._param_names)

    @property
    def parameter_descriptions(self) -> Tuple[Optional[str], ...]:
        return tuple(self._param_descriptions)

    def parameter_name(self, index: int) -> str:
        return self._param_names[index]

    def parameter_value(self, index: int) -> float:
        return self._param_values[index]

    def parameter_description(self, index: int) -> Optional[str]:
        if index >= len(self._param_descriptions):
            return None
        return self._param_descriptions[index]

    def set_parameter_value(self, index: int, value: Number) -> None:
        self._param_values[index] = float(value)
        self._push_shared_values()

    def parameter_values(self) -> Tuple[float, ...]:
        return tuple(self._param_values)

    def set_parameter_values(self, values: Sequence[Number]) -> None:
        if len(values) != len(self._param_values):
            raise ValueError(f"expected {len(self._param_values)} parameter values, got {len(values)}")
        self._param_values = [float(v) for v in values]
        self._push_shared_values()

    def _push_shared_values(self) -> None:
        # sub-models that took this model's parameters keep tracking their values
        for ref in self.references:
            if ref._param_names == self._param_names:
                ref.set_parameter_values(self._param_values)

    def set_parameters(
        self,
        names: Sequence[str],
        values: Sequence[Number],
        descriptions: Optional[Sequence[Optional[str]]] = None,
    ) -> None:
        """Replace the parameters, re-binding the expression if the names changed."""

        if len(names) != len(values):
            raise ValueError("parameter names and values must have equal length")
        renamed = list(names) != self._param_names
        user_text = self.get_input_string()
        self._param_names = list(names)
        self._param_values = [float(v) for v in values]
        if descriptions is not None:
            self._param_descriptions = list(descriptions)
        if len(self._param_descriptions) < len(self._param_names):
            self._param_descriptions.extend([None] * (len(self._param_names) - len(self._param_descriptions)))
        else:
            del self._param_descriptions[len(self._param_names):]
        if renamed:
            self.set_expression(user_text, self.variables)

    def rename_parameter(self, old: str, new: str) -> Optional[str]:
        """Rename parameter ``old`` to ``new`` in the expression and parameter list.

        Returns the rewritten expression, or ``None`` when ``old`` is unknown or
        the rewritten expression does not parse.
        """

        if old not in self._param_names:
            return None
        others = (
            list(self._param_names)
            + [ref.name for ref in self.references]
            + list(self.variables)
            + list(RESERVED_NAMES)
        )
        text = replace_name(self.get_input_string(), old, new, others)
        self._param_names[self._param_names.index(old)] = new
        if self.set_expression(text, self.variables):
            return self.get_expression()
        return None

    # -- references -----------------------------------------------------

    def set_references(self, models: Sequence["ExpressionModel"]) -> None:
        self.references = list(models)

    def update_reference_parameters(self) -> None:
        """Share this model's parameters with every referenced sub-model."""

        for ref in self.references:
            ref.set_parameters(self._param_names, self._param_values, self._param_descriptions)
            ref.update_reference_parameters()

    # -- expression text ------------------------------------------------

    def _slot_names(self) -> List[str]:
        return list(self.variables) + list(self._param_names) + [ref.name for ref in self.references]

    def set_expression(self, text: str, variables: Optional[Sequence[str]] = None) -> bool:
        """Bind ``text`` to the current names; returns ``False`` after a parse failure.

        On failure the model evaluates the constant ``0`` and keeps ``text`` as
        its input string so it can be shown again for editing.
        """

        if variables is not None:
            if not variables or len(variables) > MAX_VARIABLES:
                raise ValueError(f"between 1 and {MAX_VARIABLES} independent variables are supported")
            self.variables = list(variables)
        variables = self.variables
        n_vars = len(variables)
        names = self._slot_names()
        # a parameter sharing a variable's name is shadowed by the variable
        others = [name for name in names[n_vars:] + list(RESERVED_NAMES) if name not in variables]
        exp = text

        # longest variable names first so that "x" cannot eat part of "x2"
        order = sorted(range(n_vars), key=lambda i: len(variables[i]), reverse=True)
        for i in order:
            var = variables[i]
            dummy = PLACEHOLDERS[i]
            shielded = sorted({name for name in others if var in name}, key=len, reverse=True)
            for idx, name in enumerate(shielded):
                exp = exp.replace(name, _protect_token(idx))
            exp = exp.replace(var, dummy)
            for idx, name in enumerate(shielded):
                exp = exp.replace(_protect_token(idx), name)
            names[i] = dummy

        self.input_string = exp
        try:
            self._function = parse(exp, names)
        except ExpressionSyntaxError as exc:
            logger.debug("Expression %r for %s rejected (%s); using constant 0", exp, self._name, exc)
            self._function = parse("0", names)
            self.expression = "0"
            return False
        self.expression = exp
        return True

    def _with_variables(self, text: str, variables: Sequence[str]) -> str:
        for i, var in enumerate(variables):
            text = text.replace(PLACEHOLDERS[i], var)
        return text

    def get_expression(self, variables: Optional[Sequence[str]] = None) -> str:
        """Return the expression written with ``variables`` (which become current)."""

        if variables is not None:
            self.variables = list(variables)
        return self._with_variables(self.expression, self.variables)

    def get_input_string(self) -> str:
        return self._with_variables(self.input_string, self.variables)

    def get_full_expression(self, variables: Optional[Sequence[str]] = None) -> str:
        text = self.get_expression(variables)
        for ref in self.references:
            text = text.replace(ref.name, "(" + ref.get_full_expression(self.variables) + ")")
        return text

    # -- evaluation -----------------------------------------------------

    def evaluate(self, x: Union[Number, Sequence[Number]]) -> float:
        """Evaluate at one point: a scalar, or one value per independent variable."""

        point = [float(x)] if np.ndim(x) == 0 else [float(v) for v in x]
        support = [ref.evaluate(point) for ref in self.references]
        result = self._function.evaluate(point + self._param_values + support)
        self._evaluated_to_nan = not math.isfinite(result)
        return result

    def evaluate_many(self, points: Any) -> np.ndarray:
        """Vectorised ``evaluate`` over ``points`` of shape ``(n,)`` or ``(n, k)``."""

        arr = np.asarray(points, dtype=float)
        if arr.ndim == 1:
            columns = [arr]
        else:
            columns = [arr[:, j] for j in range(arr.shape[1])]
        size = arr.shape[0]
        support = [ref.evaluate_many(arr) for ref in self.references]
        result = self._function.evaluate_array(columns + list(self._param_values) + support, size)
        self._evaluated_to_nan = not bool(np.all(np.isfinite(result)))
        return result

    def evaluated_to_nan(self) -> bool:
        return self._evaluated_to_nan

    # -- copies and persistence -----------------------------------------

    def clone(self) -> "ExpressionModel":
        copy = ExpressionModel(self._name, self.description)
        copy.name_editable = self.name_editable
        copy._param_names = list(self._param_names)
        copy._param_values = list(self._param_values)
        copy._param_descriptions = list(self._param_descriptions)
        copy.references = [ref.clone() for ref in self.references]
        copy.set_expression(self.get_input_string(), list(self.variables))
        copy.polynomial = None if self.polynomial is None else self.polynomial.clone()
        return copy

    def update_polynomial(self) -> bool:
        """Copy name, description and parameters onto the associated polynomial."""

        if self.polynomial is None:
            return False
        self.polynomial.name = self._name
        self.polynomial.description = self.description
        self.polynomial.set_parameters(self._param_names, self._param_values, self._param_descriptions)
        return True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self._name,
            "description": self.description,
            "name_editable": self.name_editable,
            "parameter_names": list(self._param_names),
            "parameter_values": list(self._param_values),
            "parameter_descriptions": list(self._param_descriptions),
            "variables": list(self.variables),
            "expression": self.get_input_string(),
        }
        if self.polynomial is not None:
            data["polynomial"] = list(self.polynomial.coefficients)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpressionModel":
        model = cls(data["name"], data.get("description"))
        model.name_editable = bool(data.get("name_editable", True))
        names = data.get("parameter_names")
        if names is not None:
            model.set_parameters(names, data.get("parameter_values", [0.0] * len(names)), data.get("parameter_descriptions"))
        variables = data.get("variables") or [data.get("variable", "x")]
        model.set_expression(data.get("expression", "0"), variables)
        coefficients = data.get("polynomial")
        if coefficients is not None:
            from .polynomial import PolynomialModel

            model.polynomial = PolynomialModel(coefficients)
        return model


__all__ = [
    "ExpressionModel",
    "MAX_VARIABLES",
    "PLACEHOLDERS",
    "replace_name",
]

"""Parameters whose values are expressions of other parameters."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set

from .events import EDIT, ChangeSupport
from .expression import replace_name
from .lexer import ExpressionSyntaxError, names_in, tokenize
from .logging_utils import apply_debug_logging
from .parser import RESERVED_NAMES, parse

logger = logging.getLogger(__name__)

EVALUATION_ORDERS = ("declaration", "dependency")


class ParameterNameError(ValueError):
    """Raised when a parameter name is reserved, duplicated or not an identifier."""


@dataclass
class Parameter:
    """A named parameter defined by an expression over the other parameters."""

    name: str
    expression: str = "0"
    description: Optional[str] = None
    value: float = math.nan
    name_editable: bool = True
    expression_editable: bool = True

    def evaluate(self, namespace: Mapping[str, float]) -> float:
        """Evaluate against ``namespace``, ignoring any entry for this parameter itself."""

        names = [name for name in namespace if name != self.name]
        try:
            parsed = parse(self.expression, names)
        except ExpressionSyntaxError as exc:
            logger.debug("Parameter %s: %s", self.name, exc)
            self.value = math.nan
            return self.value
        self.value = parsed.evaluate([namespace[name] for name in names])
        return self.value

    def copy(self) -> "Parameter":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "function": self.expression,
            "description": self.description,
            "editable": self.expression_editable,
            "name_editable": self.name_editable,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Parameter":
        return cls(
            name=data["name"],
            expression=data.get("function", "0"),
            description=data.get("description"),
            expression_editable=bool(data.get("editable", True)),
            name_editable=bool(data.get("name_editable", True)),
        )


class ParameterGraph(ChangeSupport):
    """Ordered parameters evaluated one pass at a time.

    With the default ``evaluation_order="declaration"`` parameters are
    evaluated in the order they were declared; a parameter that refers to one
    declared later reads that parameter's value from the previous pass.
    ``"dependency"`` evaluates referenced parameters first.
    """

    def __init__(
        self,
        parameters: Iterable[Parameter] = (),
        *,
        forbidden_names: Iterable[str] = RESERVED_NAMES,
        evaluation_order: str = "declaration",
    ):
        super().__init__()
        if evaluation_order not in EVALUATION_ORDERS:
            raise ValueError(f"evaluation_order must be one of {EVALUATION_ORDERS}, got {evaluation_order!r}")
        self.evaluation_order = evaluation_order
        self.forbidden_names: Set[str] = set(forbidden_names)
        self.circular_errors: Set[str] = set()
        self.reference_errors: Set[str] = set()
        self._params: Dict[str, Parameter] = {}
        self._order: List[str] = []
        for param in parameters:
            self._check_name(param.name)
            self._params[param.name] = param
        self.evaluate_all()

    def __len__(self) -> int:
        return len(self._params)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(list(self._params.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __getitem__(self, name: str) -> Parameter:
        return self._params[name]

    def get(self, name: str) -> Optional[Parameter]:
        return self._params.get(name)

    def names(self) -> List[str]:
        return list(self._params)

    def values(self) -> List[float]:
        return [param.value for param in self._params.values()]

    def descriptions(self) -> List[Optional[str]]:
        return [param.description for param in self._params.values()]

    def value(self, name: str) -> float:
        return self._params[name].value

    # -- names ------------------------------------------------------------

    def is_disallowed_name(self, name: str, exclude: Optional[str] = None) -> bool:
        """True if ``name`` is reserved, already used, or not a single identifier."""

        if name in self.forbidden_names:
            return True
        if name != exclude and name in self._params:
            return True
        try:
            tokens = tokenize(name)
        except ExpressionSyntaxError:
            return True
        return len(tokens) != 1 or tokens[0][0] != "NAME"

    def _check_name(self, name: str, exclude: Optional[str] = None) -> None:
        if self.is_disallowed_name(name, exclude):
            raise ParameterNameError(f"parameter name {name!r} is reserved, in use or invalid")

    def unique_name(self, proposed: str) -> str:
        """Return ``proposed``, or ``proposed`` with the smallest numeric suffix that is free."""

        names = names_in(proposed)
        if names != [proposed]:
            raise ParameterNameError(f"{proposed!r} is not a valid parameter name")
        name = proposed
        i = 0
        while self.is_disallowed_name(name):
            i += 1
            name = f"{proposed}{i}"
        return name

    # -- edits ------------------------------------------------------------

    def add(self, param: Parameter, index: Optional[int] = None) -> Parameter:
        self._check_name(param.name)
        items = list(self._params.items())
        position = len(items) if index is None else index
        items.insert(position, (param.name, param))
        self._params = dict(items)
        self.evaluate_all()
        self.fire(EDIT, None, param.name)
        return param

    def add_parameter(
        self,
        name: str,
        expression: str = "0",
        description: Optional[str] = None,
        *,
        name_editable: bool = True,
        expression_editable: bool = True,
        index: Optional[int] = None,
    ) -> Parameter:
        param = Parameter(
            name,
            expression,
            description,
            name_editable=name_editable,
            expression_editable=expression_editable,
        )
        return self.add(param, index)

    def remove_parameter(self, name: str) -> Parameter:
        param = self._params.pop(name)
        self.evaluate_all()
        self.fire(EDIT, name, None)
        return param

    def set_expression(self, name: str, expression: str) -> Parameter:
        param = self._params[name]
        param.expression = expression
        self.evaluate_all()
        self.fire(EDIT, name, name)
        return param

    def set_description(self, name: str, description: Optional[str]) -> None:
        if description is not None and not description.strip():
            description = None
        self._params[name].description = description
        self.fire(EDIT, name, name)

    def rename_parameter(self, old: str, new: str) -> Parameter:
        """Rename ``old`` to ``new`` and rewrite every expression that refers to it."""

        if old not in self._params:
            raise KeyError(old)
        if new == old:
            return self._params[old]
        self._check_name(new, exclude=old)

        shielded = list(self._params) + sorted(self.forbidden_names)
        for param in self._params.values():
            if param.name != old and old in names_in(param.expression):
                param.expression = replace_name(param.expression, old, new, shielded)

        items = []
        for name, param in self._params.items():
            if name == old:
                param.name = new
            items.append((param.name, param))
        self._params = dict(items)
        self.evaluate_all()
        self.fire(EDIT, old, new)
        return self._params[new]

    # -- references -------------------------------------------------------

    def references(self, name: str) -> Set[str]:
        """Names of parameters referenced directly by ``name``'s expression."""

        return set(names_in(self._params[name].expression)) & set(self._params)

    def _closures(self) -> Dict[str, Set[str]]:
        direct = {name: self.references(name) for name in self._params}
        closures: Dict[str, Set[str]] = {}
        for name in self._params:
            seen: Set[str] = set()
            stack = list(direct[name])
            while stack:
                ref = stack.pop()
                if ref in seen:
                    continue
                seen.add(ref)
                stack.extend(direct[ref])
            closures[name] = seen
        return closures

    def _dependency_order(self, closures: Dict[str, Set[str]]) -> List[str]:
        done: Set[str] = set(self.circular_errors)
        order: List[str] = []
        pending = [name for name in self._params if name not in self.circular_errors]
        while pending:
            ready = [name for name in pending if closures[name] <= done]
            for name in ready:
                order.append(name)
                done.add(name)
            pending = [name for name in pending if name not in done]
        return order

    # -- evaluation -------------------------------------------------------

    def evaluate_all(self) -> List[float]:
        """Evaluate every parameter once; cycle members are pinned to NaN."""

        closures = self._closures()
        self.circular_errors = {name for name, refs in closures.items() if name in refs}
        self.reference_errors = {
            name
            for name, refs in closures.items()
            if name not in self.circular_errors and refs & self.circular_errors
        }
        if self.circular_errors:
            logger.warning("Circular parameter references: %s", ", ".join(sorted(self.circular_errors)))

        if self.evaluation_order == "dependency":
            self._order = self._dependency_order(closures)
        else:
            self._order = [name for name in self._params if name not in self.circular_errors]

        for name in self.circular_errors:
            self._params[name].value = math.nan
        namespace = {name: param.value for name, param in self._params.items()}
        for name in self._order:
            namespace[name] = self._params[name].evaluate(namespace)
        return self.values()

    def evaluate_dependents(self, seed: Parameter) -> List[Parameter]:
        """Return copies of the parameters downstream of ``seed``, re-evaluated.

        ``seed`` carries the edited expression of an existing parameter. The
        walk starts at the seed, which is evaluated first, but the seed itself
        is not part of the returned list. The graph itself is left untouched.
        """

        if seed.name not in self._order:
            return []
        closures = self._closures()
        working = {name: param.value for name, param in self._params.items()}
        seed = seed.copy()
        working[seed.name] = seed.evaluate(working)

        start = self._order.index(seed.name)
        dependents: List[Parameter] = []
        for name in self._order[start + 1:]:
            param = self._params[name].copy()
            working[name] = param.evaluate(working)
            if seed.name in closures[name]:
                dependents.append(param)
        return dependents

    # -- models -----------------------------------------------------------

    def refresh_from_model(self, model) -> None:
        """Mirror ``model``'s parameters as constant, non-editable parameters."""

        changed = []
        for i in range(model.parameter_count):
            name = model.parameter_name(i)
            text = repr(float(model.parameter_value(i)))
            param = self._params.get(name)
            if param is None:
                if self.is_disallowed_name(name):
                    logger.warning("Model parameter %r is not a valid graph parameter name; skipped", name)
                    continue
                self._params[name] = Parameter(name, text, name_editable=False, expression_editable=False)
                changed.append((None, name))
            else:
                param.expression = text
                changed.append((name, name))
        self.evaluate_all()
        for old, new in changed:
            self.fire(EDIT, old, new)

    def apply_to(self, model) -> int:
        """Copy values of same-named parameters into ``model``; returns how many were set."""

        count = 0
        for i in range(model.parameter_count):
            param = self._params.get(model.parameter_name(i))
            if param is not None:
                model.set_parameter_value(i, param.value)
                count += 1
        return count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluation_order": self.evaluation_order,
            "parameters": [param.to_dict() for param in self._params.values()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterGraph":
        params = [Parameter.from_dict(item) for item in data.get("parameters", [])]
        return cls(params, evaluation_order=data.get("evaluation_order", "declaration"))


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "EVALUATION_ORDERS",
    "Parameter",
    "ParameterGraph",
    "ParameterNameError",
]

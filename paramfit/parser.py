"""Expression parser backed by sympy.

``parse(text, names)`` binds every identifier of ``text`` either to one of the
ordered ``names`` (the evaluation slots) or to the reserved vocabulary below,
and compiles the result to a numpy callable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, List, Sequence, Tuple

import numpy as np
import sympy as sp
from sympy.parsing.sympy_parser import parse_expr, standard_transformations

from .lexer import ExpressionSyntaxError, tokenize

logger = logging.getLogger(__name__)

_trunc_int = sp.Function("trunc_int", nargs=1)
_frac_part = sp.Function("frac_part", nargs=1)
_round_half_up = sp.Function("round_half_up", nargs=1)
_step = sp.Function("step", nargs=1)
_random_scale = sp.Function("random_scale", nargs=1)
_minimum = sp.Function("minimum", nargs=2)
_maximum = sp.Function("maximum", nargs=2)
_fmod = sp.Function("fmod", nargs=2)


def _held(func: Callable[..., Any]) -> Callable[..., Any]:
    # keeps exp(ln(x)) and the like from collapsing to x
    return lambda *args: func(*args, evaluate=False)


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "sin": _held(sp.sin),
    "cos": _held(sp.cos),
    "tan": _held(sp.tan),
    "ln": _held(sp.log),
    "log": lambda a: sp.log(a, evaluate=False) / sp.log(10),
    "abs": _held(sp.Abs),
    "int": _trunc_int,
    "frac": _frac_part,
    "asin": _held(sp.asin),
    "acos": _held(sp.acos),
    "atan": _held(sp.atan),
    "sinh": _held(sp.sinh),
    "cosh": _held(sp.cosh),
    "tanh": _held(sp.tanh),
    "asinh": _held(sp.asinh),
    "acosh": _held(sp.acosh),
    "atanh": _held(sp.atanh),
    "ceil": _held(sp.ceiling),
    "floor": _held(sp.floor),
    "round": _round_half_up,
    "exp": _held(sp.exp),
    "sqr": lambda a: sp.Pow(a, 2, evaluate=False),
    "sqrt": _held(sp.sqrt),
    "sign": _held(sp.sign),
    "step": _step,
    "random": _random_scale,
    "min": _minimum,
    "max": _maximum,
    "mod": _fmod,
    "atan2": _held(sp.atan2),
}

CONSTANTS: Dict[str, Any] = {
    "pi": sp.pi,
    "e": sp.E,
}

FUNCTION_NAMES: Tuple[str, ...] = tuple(FUNCTIONS)
RESERVED_NAMES: Tuple[str, ...] = FUNCTION_NAMES + tuple(CONSTANTS)

_NUMERIC: Dict[str, Callable[..., Any]] = {
    "trunc_int": np.trunc,
    "frac_part": lambda a: a - np.trunc(a),
    "round_half_up": lambda a: np.floor(a + 0.5),
    "step": lambda a: np.where(np.asarray(a) < 0, 0.0, 1.0),
    "random_scale": lambda a: np.random.random_sample(np.shape(a)) * a,
    "minimum": np.minimum,
    "maximum": np.maximum,
    "fmod": np.fmod,
}


def _real(result: Any) -> np.ndarray:
    arr = np.asarray(result)
    if np.iscomplexobj(arr):
        arr = np.where(arr.imag == 0, arr.real, np.nan)
    return arr.astype(float)


@dataclass(frozen=True)
class ParsedExpression:
    """A compiled expression evaluated on a vector of slot values."""

    text: str
    names: Tuple[str, ...]
    expr: sp.Expr = field(repr=False)
    func: Callable[..., Any] = field(repr=False, compare=False)

    def evaluate(self, values: Sequence[float]) -> float:
        if len(values) != len(self.names):
            raise ValueError(f"expected {len(self.names)} values, got {len(values)}")
        with np.errstate(all="ignore"):
            try:
                result = self.func(*[float(v) for v in values])
            except (ZeroDivisionError, OverflowError):
                return float("nan")
        return float(_real(result))

    def evaluate_array(self, columns: Sequence[Any], size: int) -> np.ndarray:
        """Evaluate for ``size`` points; each column is an array or a scalar."""

        if len(columns) != len(self.names):
            raise ValueError(f"expected {len(self.names)} columns, got {len(columns)}")
        with np.errstate(all="ignore"):
            try:
                result = self.func(*columns)
            except (ZeroDivisionError, OverflowError):
                return np.full(size, np.nan)
        return np.array(np.broadcast_to(_real(result), (size,)), dtype=float)


def _rewrite(text: str, names: Tuple[str, ...]) -> Tuple[str, Dict[str, Any]]:
    tokens = tokenize(text)
    if not tokens:
        raise ExpressionSyntaxError("empty expression")

    slots: Dict[str, int] = {}
    for idx, name in enumerate(names):
        slots.setdefault(name, idx)

    local: Dict[str, Any] = {}
    pieces: List[str] = []
    for pos, (kind, value, col) in enumerate(tokens):
        if kind == "CARET":
            pieces.append("**")
            continue
        if kind != "NAME":
            pieces.append(value)
            continue
        nxt = tokens[pos + 1] if pos + 1 < len(tokens) else None
        is_call = nxt is not None and nxt[0] == "LPAREN"
        if value in FUNCTIONS and is_call:
            key = f"_f_{value}"
            local[key] = FUNCTIONS[value]
        elif is_call:
            raise ExpressionSyntaxError(f"[col {col}] {value!r} is not a function")
        elif value in slots:
            key = f"_v{slots[value]}"
            local[key] = sp.Symbol(key)
        elif value in CONSTANTS:
            key = f"_c_{value}"
            local[key] = CONSTANTS[value]
        else:
            raise ExpressionSyntaxError(f"[col {col}] unknown name {value!r}")
        pieces.append(key)
    return " ".join(pieces), local


@lru_cache(maxsize=512)
def _compile(text: str, names: Tuple[str, ...]) -> ParsedExpression:
    source, local = _rewrite(text, names)
    # unevaluated, so that x/x or ln(x)-ln(x) keep their undefined points
    try:
        expr = parse_expr(source, local_dict=local, transformations=standard_transformations, evaluate=False)
    except Exception as exc:
        raise ExpressionSyntaxError(f"cannot parse {text!r}: {exc}") from exc
    if not isinstance(expr, sp.Expr):
        raise ExpressionSyntaxError(f"{text!r} is not a scalar expression")

    symbols = [sp.Symbol(f"_v{idx}") for idx in range(len(names))]
    func = sp.lambdify(symbols, expr, modules=[_NUMERIC, "numpy"])
    return ParsedExpression(text=text, names=names, expr=expr, func=func)


def parse(text: str, names: Sequence[str]) -> ParsedExpression:
    """Parse ``text`` over the ordered slot ``names``.

    Raises ``ExpressionSyntaxError`` for malformed text or unresolved names.
    """

    parsed = _compile(text, tuple(names))
    logger.debug("parsed %r over %d name(s)", text, len(parsed.names))
    return parsed


__all__ = [
    "CONSTANTS",
    "ExpressionSyntaxError",
    "FUNCTIONS",
    "FUNCTION_NAMES",
    "ParsedExpression",
    "RESERVED_NAMES",
    "parse",
]

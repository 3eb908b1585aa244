from __future__ import annotations

import inspect
import logging
import reprlib
from functools import wraps
from typing import Any, Callable, Iterable, MutableMapping, Optional, Sequence, Set, TypeVar, cast

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

_repr = reprlib.Repr()
_repr.maxother = 120
_repr.maxstring = 80
_repr.maxlist = 8
_repr.maxtuple = 8
_repr.maxdict = 8


def _summarize_array(value: np.ndarray, max_items: int) -> str:
    head = f"ndarray(shape={tuple(value.shape)}, dtype={value.dtype})"
    if value.size == 0:
        return head
    if value.size <= max_items:
        return f"{head} values={_repr.repr(value.tolist())}"
    finite = value[np.isfinite(value)] if value.dtype.kind == "f" else value
    if finite.size == 0:
        return f"{head} all non-finite"
    return f"{head} min={float(finite.min()):.6g} max={float(finite.max()):.6g}"


def _safe_repr(value: Any, *, max_items: int = 5, max_length: int = 300) -> str:
    if isinstance(value, np.ndarray):
        return _summarize_array(value, max_items)

    # fit models are logged by kind and name rather than their full state
    kind = getattr(value, "kind", None)
    if isinstance(kind, str) and hasattr(value, "parameter_count"):
        return f"<{kind} model {getattr(value, 'name', '?')!r} params={value.parameter_count}>"

    if isinstance(value, dict):
        items = [f"{_safe_repr(k)}: {_safe_repr(v)}" for k, v in list(value.items())[:max_items]]
        if len(value) > max_items:
            items.append("...")
        return "{" + ", ".join(items) + "}"

    if isinstance(value, (list, tuple)):
        items = [_safe_repr(item) for item in value[:max_items]]
        if len(value) > max_items:
            items.append("...")
        open_br, close_br = ("(", ")") if isinstance(value, tuple) else ("[", "]")
        return open_br + ", ".join(items) + close_br

    try:
        rendered = _repr.repr(value)
    except Exception as exc:  # pragma: no cover - repr of foreign objects
        rendered = f"<repr-error {exc!r}>"
    if len(rendered) > max_length:
        return rendered[:max_length] + "... (truncated)"
    return rendered


def _format_arguments(args: Sequence[Any], kwargs: MutableMapping[str, Any]) -> str:
    parts = []
    if args:
        parts.append("args=[" + ", ".join(_safe_repr(arg) for arg in args) + "]")
    if kwargs:
        parts.append("kwargs={" + ", ".join(f"{k}={_safe_repr(v)}" for k, v in kwargs.items()) + "}")
    return ", ".join(parts) if parts else "no-args"


def debug_log_call(
    logger: logging.Logger, *, name: Optional[str] = None, log_result: bool = True
) -> Callable[[F], F]:
    """Return a decorator that logs entry, exit and exceptions at DEBUG level."""

    def decorator(func: F) -> F:
        if getattr(func, "_debug_logging_wrapped", False):
            return func

        qualname = name or getattr(func, "__qualname__", getattr(func, "__name__", "<callable>"))

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if not logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            logger.debug("Entering %s (%s)", qualname, _format_arguments(args, kwargs))
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.exception("Exception in %s", qualname)
                raise
            if log_result:
                logger.debug("Exiting %s -> %s", qualname, _safe_repr(result))
            else:
                logger.debug("Exiting %s", qualname)
            return result

        setattr(wrapper, "_debug_logging_wrapped", True)
        return cast(F, wrapper)

    return decorator


def _wrap_class(cls: type, logger: logging.Logger, skip: Set[str]) -> None:
    for attr_name, attr_value in list(cls.__dict__.items()):
        if attr_name.startswith("__") and attr_name.endswith("__"):
            continue
        qualified = f"{cls.__name__}.{attr_name}"
        if attr_name in skip or qualified in skip:
            continue
        if isinstance(attr_value, (staticmethod, classmethod)):
            func = attr_value.__func__
            if getattr(func, "__module__", None) != cls.__module__:
                continue
            setattr(cls, attr_name, type(attr_value)(debug_log_call(logger, name=qualified)(func)))
        elif inspect.isfunction(attr_value) and attr_value.__module__ == cls.__module__:
            setattr(cls, attr_name, debug_log_call(logger, name=qualified)(attr_value))


def apply_debug_logging(
    namespace: MutableMapping[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
    skip: Optional[Iterable[str]] = None,
    wrap_methods: bool = True,
) -> None:
    """Wrap the functions and class methods defined in a module with DEBUG call logging."""

    module_name = namespace.get("__name__")
    logger = logger or logging.getLogger(module_name if isinstance(module_name, str) else __name__)
    skip_set: Set[str] = set(skip or [])

    for name, value in list(namespace.items()):
        if name in skip_set:
            continue
        if inspect.isfunction(value) and value.__module__ == module_name:
            namespace[name] = debug_log_call(logger, name=name)(value)
        elif wrap_methods and inspect.isclass(value) and value.__module__ == module_name:
            _wrap_class(value, logger, skip_set)


__all__ = ["apply_debug_logging", "debug_log_call"]

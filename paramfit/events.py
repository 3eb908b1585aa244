"""Named change notifications shared by the parameter graph and the fit engine."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

FUNCTION = "function"
EDIT = "edit"
FIT = "fit"


@dataclass(frozen=True)
class ChangeEvent:
    name: str
    source: Any
    old: Any = None
    new: Any = None


Listener = Callable[[ChangeEvent], None]


class ChangeSupport:
    """Mixin holding listeners keyed by event name (``None`` listens to all)."""

    def __init__(self) -> None:
        self._listeners: Dict[Optional[str], List[Listener]] = defaultdict(list)

    def add_listener(self, listener: Listener, event: Optional[str] = None) -> None:
        if listener not in self._listeners[event]:
            self._listeners[event].append(listener)

    def remove_listener(self, listener: Listener, event: Optional[str] = None) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def fire(self, event: str, old: Any = None, new: Any = None) -> ChangeEvent:
        change = ChangeEvent(event, self, old, new)
        targets = list(self._listeners.get(event, [])) + list(self._listeners.get(None, []))
        logger.debug("firing %r to %d listener(s)", event, len(targets))
        for listener in targets:
            listener(change)
        return change


__all__ = ["EDIT", "FIT", "FUNCTION", "ChangeEvent", "ChangeSupport", "Listener"]

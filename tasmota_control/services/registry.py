"""Subscription table mapping task and lifecycle names to handlers."""
from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Union

Handler = Callable[..., Union[Awaitable[Any], Any]]


class TaskName(str, Enum):
    """Task names used by the bridge's schedulers."""

    BOOTSTRAP = "bootstrap"
    CHECK_STATE = "check_state"
    UPDATE_REMOTE_TEMP = "update_remote_temp"


class LifecycleEvent(str, Enum):
    """Notifications a scheduler emits on ``start``/``stop`` completion."""

    STARTED = "started"
    STOPPED = "stopped"


Name = Union[str, TaskName, LifecycleEvent]

RESERVED_NAMES = frozenset(event.value for event in LifecycleEvent)


def name_key(name: Name) -> str:
    """Return the plain string used to index ``name``.

    ``str`` enums hash by member name rather than by value, so keys are always
    normalised before they touch a dictionary.
    """

    if isinstance(name, Enum):
        return str(name.value)
    if not isinstance(name, str):
        raise TypeError(f"handler names must be strings, got {type(name).__name__}")
    return name


class HandlerRegistry:
    """At most one handler per name; the last registration wins."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(self, name: Name, handler: Handler) -> None:
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._handlers[name_key(name)] = handler

    def unregister(self, name: Name) -> Optional[Handler]:
        return self._handlers.pop(name_key(name), None)

    def get(self, name: Name) -> Optional[Handler]:
        return self._handlers.get(name_key(name))

    def names(self) -> Iterator[str]:
        return iter(tuple(self._handlers))

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, Enum)):
            return False
        return name_key(name) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

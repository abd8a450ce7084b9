"""Background scheduling primitives."""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .registry import (
    RESERVED_NAMES,
    Handler,
    HandlerRegistry,
    LifecycleEvent,
    Name,
    TaskName,
    name_key,
)

logger = logging.getLogger(__name__)


class SchedulerError(RuntimeError):
    """Base class for scheduler failures."""


class InvalidSpec(SchedulerError, ValueError):
    """Raised by :meth:`Scheduler.start` when the task set is malformed."""


@dataclass(frozen=True, slots=True)
class TaskSpec:
    """A named task and the period it fires at."""

    name: str
    interval_ms: int

    @classmethod
    def every(cls, name: Name, interval: timedelta) -> "TaskSpec":
        return cls(name=name_key(name), interval_ms=int(interval.total_seconds() * 1000))

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0


@dataclass(slots=True)
class ActiveTask:
    """Runtime record of an armed :class:`TaskSpec`."""

    spec: TaskSpec
    timer: "asyncio.Task[None]"
    fired: int = 0
    skipped: int = 0


@dataclass(slots=True)
class _Inflight:
    tasks: Dict[str, "asyncio.Task[None]"] = field(default_factory=dict)

    def busy(self, name: str) -> bool:
        task = self.tasks.get(name)
        return task is not None and not task.done()


def validate_specs(task_specs: Iterable[TaskSpec]) -> Tuple[TaskSpec, ...]:
    """Return ``task_specs`` as a tuple or raise :class:`InvalidSpec`."""

    specs = tuple(task_specs)
    if not specs:
        raise InvalidSpec("at least one task is required")
    seen = set()
    for spec in specs:
        if not isinstance(spec, TaskSpec):
            raise InvalidSpec(f"expected TaskSpec, got {type(spec).__name__}")
        if not isinstance(spec.name, str) or not spec.name:
            raise InvalidSpec(f"invalid task name: {spec.name!r}")
        key = name_key(spec.name)
        if key in RESERVED_NAMES:
            raise InvalidSpec(f"task name {key!r} is reserved for lifecycle events")
        if key in seen:
            raise InvalidSpec(f"duplicate task name: {key!r}")
        interval = spec.interval_ms
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise InvalidSpec(f"task {key!r}: interval must be a positive integer, got {interval!r}")
        seen.add(key)
    return specs


class Scheduler:
    """Drive named, independently paced periodic tasks on the running loop.

    Every task gets its own timer.  A tick starts the registered handler as a
    separate asyncio task and never waits for it, so a slow handler cannot
    delay other tasks.  A tick that finds the previous invocation of the same
    task still running is skipped.

    Handlers are registered with :meth:`on` (or the typed :meth:`register`)
    under a task name, or under ``"started"``/``"stopped"`` to receive the
    lifecycle notifications.
    """

    def __init__(self, name: str = "scheduler") -> None:
        self._name = name
        self._registry = HandlerRegistry()
        self._active: Dict[str, ActiveTask] = {}
        self._inflight = _Inflight()
        self._running = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_tasks(self) -> Mapping[str, ActiveTask]:
        return dict(self._active)

    # ------------------------------------------------------------------
    # Registration
    def on(self, name: Name, handler: Handler) -> "Scheduler":
        """Register ``handler`` for a task or lifecycle name."""

        self._registry.register(name, handler)
        return self

    def register(self, task: TaskName | LifecycleEvent, handler: Handler) -> "Scheduler":
        """Typed variant of :meth:`on`."""

        if not isinstance(task, (TaskName, LifecycleEvent)):
            raise TypeError("register() expects a TaskName or LifecycleEvent")
        return self.on(task, handler)

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self, task_specs: Iterable[TaskSpec]) -> None:
        """Arm one timer per spec and emit ``started(True)``.

        Starting a running scheduler stops it first; the previous task set is
        replaced as a whole.
        """

        specs = validate_specs(task_specs)
        if self._running:
            logger.debug("%s: restarting with %d task(s)", self._name, len(specs))
            await self.stop()

        loop = asyncio.get_running_loop()
        for spec in specs:
            key = name_key(spec.name)
            timer = loop.create_task(self._run_timer(key, spec), name=f"{self._name}:{key}")
            self._active[key] = ActiveTask(spec=spec, timer=timer)
        self._running = True
        logger.debug(
            "%s: started %s",
            self._name,
            ", ".join(f"{key}@{item.spec.interval_ms}ms" for key, item in self._active.items()),
        )
        await self._notify(LifecycleEvent.STARTED, True)

    async def stop(self) -> None:
        """Disarm every timer and emit ``stopped(False)``.

        In-flight handler invocations are left to finish on their own.
        """

        if not self._running:
            return
        active = list(self._active.values())
        self._active.clear()
        self._running = False

        current = asyncio.current_task()
        timers = [item.timer for item in active if item.timer is not current]
        for item in active:
            item.timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        logger.debug("%s: stopped", self._name)
        await self._notify(LifecycleEvent.STOPPED, False)

    # ------------------------------------------------------------------
    # Internal helpers
    async def _run_timer(self, key: str, spec: TaskSpec) -> None:
        loop = asyncio.get_running_loop()
        interval = spec.interval_seconds
        deadline = loop.time()
        while True:
            deadline += interval
            delay = deadline - loop.time()
            if delay < -interval:
                # The loop fell behind by more than a period; drop missed ticks.
                deadline = loop.time() + interval
                delay = interval
            await asyncio.sleep(max(0.0, delay))
            self._dispatch(key)

    def _dispatch(self, key: str) -> None:
        active = self._active.get(key)
        handler = self._registry.get(key)
        if handler is None:
            return
        if self._inflight.busy(key):
            if active is not None:
                active.skipped += 1
            logger.debug("%s: %s still running, tick skipped", self._name, key)
            return
        if active is not None:
            active.fired += 1
        task = asyncio.get_running_loop().create_task(
            self._invoke(key, handler), name=f"{self._name}:{key}:tick"
        )
        self._inflight.tasks[key] = task
        task.add_done_callback(partial(self._release, key))

    def _release(self, key: str, task: "asyncio.Task[None]") -> None:
        if self._inflight.tasks.get(key) is task:
            del self._inflight.tasks[key]

    async def _invoke(self, key: str, handler: Handler) -> None:
        try:
            result = handler()
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("%s: handler for %s failed: %s", self._name, key, exc, exc_info=True)

    async def _notify(self, event: LifecycleEvent, state: bool) -> None:
        handler: Optional[Handler] = self._registry.get(event)
        if handler is None:
            return
        try:
            result = handler(state)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("%s: %s listener failed: %s", self._name, event.value, exc, exc_info=True)

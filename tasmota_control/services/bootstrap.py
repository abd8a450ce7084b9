"""Two-phase device lifecycle: retry initialisation, then poll forever."""
from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Tuple

from .registry import LifecycleEvent, TaskName
from .scheduler import InvalidSpec, Scheduler, TaskSpec, validate_specs

if TYPE_CHECKING:
    from tasmota_control.accessories import Accessory
    from tasmota_control.devices import DeviceController

logger = logging.getLogger(__name__)

DEFAULT_BOOTSTRAP_INTERVAL_MS = 45_000

Initializer = Callable[[], Awaitable["DeviceController"]]
PublishCallback = Callable[["Accessory"], Any]
SchedulerFactory = Callable[[str], Scheduler]


class Phase(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    STEADY_STATE = "steady_state"


class Bootstrapper:
    """Run ``initialize`` on a slow schedule until it succeeds once.

    Each bootstrap tick awaits ``initialize()``.  Failures are logged and the
    next tick tries again at the same interval.  The first success stops the
    bootstrap scheduler, starts a fresh scheduler with the controller's own
    tasks and hands the controller's accessory to ``on_publish``.  There is no
    way back to bootstrapping afterwards.
    """

    def __init__(
        self,
        name: str,
        initialize: Initializer,
        *,
        interval_ms: int = DEFAULT_BOOTSTRAP_INTERVAL_MS,
        on_publish: Optional[PublishCallback] = None,
        scheduler_factory: SchedulerFactory = Scheduler,
    ) -> None:
        self._name = name
        self._initialize = initialize
        self._interval_ms = interval_ms
        self._on_publish = on_publish
        self._scheduler_factory = scheduler_factory
        self._phase = Phase.BOOTSTRAPPING
        self._published = False
        self._controller: Optional["DeviceController"] = None
        self._bootstrap = scheduler_factory(f"{name}:bootstrap")
        self._bootstrap.register(TaskName.BOOTSTRAP, self._attempt)
        self._bootstrap.register(LifecycleEvent.STARTED, self._log_state)
        self._bootstrap.register(LifecycleEvent.STOPPED, self._log_state)
        self._steady: Optional[Scheduler] = None
        self._stopped = False
        self._failure: Optional[InvalidSpec] = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def controller(self) -> Optional["DeviceController"]:
        return self._controller

    @property
    def bootstrap_scheduler(self) -> Scheduler:
        return self._bootstrap

    @property
    def steady_scheduler(self) -> Optional[Scheduler]:
        return self._steady

    @property
    def failure(self) -> Optional[InvalidSpec]:
        """The schedule error that ended bootstrapping, if any."""

        return self._failure

    async def start(self) -> None:
        """Arm the bootstrap scheduler with its single retry task."""

        if self._phase is Phase.STEADY_STATE:
            return
        self._stopped = False
        self._failure = None
        await self._bootstrap.start([TaskSpec(TaskName.BOOTSTRAP.value, self._interval_ms)])

    async def stop(self) -> None:
        """Stop whichever scheduler is active.

        A bootstrap attempt still in flight is discarded when it completes.
        """

        self._stopped = True
        await self._bootstrap.stop()
        if self._steady is not None:
            await self._steady.stop()

    async def _attempt(self) -> None:
        if self._phase is Phase.STEADY_STATE or self._stopped:
            return
        try:
            controller = await self._initialize()
        except Exception as exc:
            logger.warning(
                "%s, start error: %s, retrying in %gs",
                self._name,
                exc,
                self._interval_ms / 1000,
            )
            return
        if self._stopped:
            logger.debug("%s, stopped while starting, result discarded", self._name)
            return
        try:
            specs = validate_specs(controller.tasks())
        except InvalidSpec as exc:
            # A malformed schedule ends bootstrapping for this device.
            logger.error("%s, invalid poll schedule: %s", self._name, exc)
            self._failure = exc
            await self._bootstrap.stop()
            return
        await self._enter_steady_state(controller, specs)

    async def _enter_steady_state(
        self, controller: "DeviceController", specs: Tuple[TaskSpec, ...]
    ) -> None:
        await self._bootstrap.stop()
        if self._stopped:
            return
        self._phase = Phase.STEADY_STATE
        self._controller = controller

        steady = self._scheduler_factory(f"{self._name}:poll")
        for task_name, handler in controller.handlers().items():
            steady.on(task_name, handler)
        steady.register(LifecycleEvent.STARTED, self._log_state)
        steady.register(LifecycleEvent.STOPPED, self._log_state)
        self._steady = steady
        await steady.start(specs)

        if not self._published and self._on_publish is not None and not self._stopped:
            self._published = True
            result = self._on_publish(controller.accessory)
            if inspect.isawaitable(result):
                await result

    async def _log_state(self, state: bool) -> None:
        logger.info("%s, scheduler %s", self._name, "started" if state else "stopped")

"""Service orchestration helpers."""

from .registry import HandlerRegistry, LifecycleEvent, TaskName
from .scheduler import ActiveTask, InvalidSpec, Scheduler, SchedulerError, TaskSpec
from .bootstrap import Bootstrapper, Phase
from .bridge_service import BridgeService, DeviceRuntime

__all__ = [
    "ActiveTask",
    "Bootstrapper",
    "BridgeService",
    "DeviceRuntime",
    "HandlerRegistry",
    "InvalidSpec",
    "LifecycleEvent",
    "Phase",
    "Scheduler",
    "SchedulerError",
    "TaskName",
    "TaskSpec",
]

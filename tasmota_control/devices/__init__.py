"""Per-device poll orchestrators."""
from __future__ import annotations

from typing import Any, Dict, Type

from tasmota_control.collectors import DeviceType

from .base import DeviceController
from .fans import FansController
from .lights import LightsController
from .mielhvac import MiElHvacController
from .sensors import SensorsController
from .switches import SwitchesController

CONTROLLERS: Dict[DeviceType, Type[DeviceController]] = {
    DeviceType.MIELHVAC: MiElHvacController,
    DeviceType.SWITCH: SwitchesController,
    DeviceType.LIGHT: LightsController,
    DeviceType.FAN: FansController,
    DeviceType.SENSOR: SensorsController,
}


def build_controller(device_type: DeviceType, *args: Any, **kwargs: Any) -> DeviceController:
    """Instantiate the controller class registered for ``device_type``."""

    try:
        controller_cls = CONTROLLERS[device_type]
    except KeyError:
        raise ValueError(f"unsupported device type: {device_type!r}") from None
    return controller_cls(*args, **kwargs)


__all__ = [
    "CONTROLLERS",
    "DeviceController",
    "FansController",
    "LightsController",
    "MiElHvacController",
    "SensorsController",
    "SwitchesController",
    "build_controller",
]

"""iFan style devices: a light relay plus a multi-speed fan."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from tasmota_control.accessories import Accessory, Category, Characteristic, ServiceType
from tasmota_control.collectors.tasmota_client import FAN_SPEED, power_command

from .base import DeviceController

MAX_SPEED = 3


@dataclass(slots=True)
class FanState:
    light: bool
    speed: int

    @property
    def active(self) -> bool:
        return self.speed > 0

    @property
    def rotation(self) -> int:
        """Fan speed as a 0..100 percentage."""

        return round(self.speed * 100 / MAX_SPEED)


def speed_from_rotation(rotation: float) -> int:
    """Map a 0..100 percentage onto the discrete 0..3 speeds."""

    return max(0, min(MAX_SPEED, round(float(rotation) * MAX_SPEED / 100)))


class FansController(DeviceController):
    category = Category.FAN
    kind = "Fan"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.state: Optional[FanState] = None

    async def check_state(self) -> None:
        self.events.debug("Requesting status")
        power_status = await self.client.power_status()
        self.debug_payload("Power status", power_status)
        status = await self.client.status()
        status_sts = status.get("StatusSTS") or {}

        light = (power_status.get("POWER1") or power_status.get("POWER")) == "ON"
        speed = int(status_sts.get("FanSpeed") or 0)
        async with self.state_lock:
            self.state = FanState(light=light, speed=speed)
        self.events.info(f"light: {'ON' if light else 'OFF'}")
        self.events.info(f"fan: {'ON' if speed else 'OFF'}, speed: {speed}")

    def build_services(self, accessory: Accessory) -> None:
        light_name = self.service_name(self.info.friendly_names[0] if self.info.friendly_names else "Light")
        light = accessory.add_service(ServiceType.LIGHTBULB, light_name, "light")
        light.on_set(Characteristic.ON, self._set_light)

        fan = accessory.add_service(ServiceType.FAN, self.service_name("Fan"), "fan")
        fan.on_set(Characteristic.ACTIVE, self._set_active)
        fan.on_set(Characteristic.ROTATION_SPEED, self._set_rotation)

    async def refresh_accessory(self) -> None:
        if self.accessory is None or self.state is None:
            return
        light = self.accessory.get_service("light")
        if light is not None:
            light.update_characteristic(Characteristic.ON, self.state.light)
        fan = self.accessory.get_service("fan")
        if fan is not None:
            fan.update_characteristic(Characteristic.ACTIVE, int(self.state.active))
            fan.update_characteristic(Characteristic.ROTATION_SPEED, self.state.rotation)

    async def _set_light(self, state: Any) -> None:
        await self.send(power_command(1, 1, bool(state)), f"set light: {'ON' if state else 'OFF'}")

    async def _set_active(self, value: Any) -> None:
        speed = (self.state.speed if self.state and self.state.speed else 1) if value else 0
        await self.send(f"{FAN_SPEED} {speed}", f"set fan: {'ON' if value else 'OFF'}")

    async def _set_rotation(self, value: Any) -> None:
        speed = speed_from_rotation(value)
        await self.send(f"{FAN_SPEED} {speed}", f"set fan speed: {speed}")

"""Dimmable and colour lights."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from tasmota_control.accessories import Accessory, Category, Characteristic, ServiceType
from tasmota_control.collectors.tasmota_client import (
    COLOR_TEMPERATURE,
    DIMMER,
    HSB_HUE,
    HSB_SATURATION,
    power_command,
    power_key,
)

from .base import DeviceController, scale

# Tasmota reports CT in 153..500 mired; the accessory side accepts 140..500.
CT_RANGE = (153, 500)
ACCESSORY_CT_RANGE = (140, 500)


@dataclass(slots=True)
class LightState:
    friendly_name: str
    power: bool
    brightness: Optional[int] = None
    color_temperature: Optional[int] = None
    hue: Optional[int] = None
    saturation: Optional[int] = None


def parse_hsb(value: Any) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Split ``"hue,saturation,brightness"`` into integers."""

    if not value or not isinstance(value, str):
        return None, None, None
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 3:
        return None, None, None
    try:
        hue, saturation, brightness = (int(float(part)) for part in parts)
    except ValueError:
        return None, None, None
    return hue, saturation, brightness


def light_state(friendly_name: str, power: bool, status_sts: Mapping[str, Any]) -> LightState:
    hue, saturation, hsb_brightness = parse_hsb(status_sts.get("HSBColor"))
    dimmer = status_sts.get("Dimmer")
    brightness = hsb_brightness if hsb_brightness is not None else dimmer
    ct = status_sts.get("CT")
    color_temperature = None
    if isinstance(ct, (int, float)):
        color_temperature = round(scale(ct, *CT_RANGE, *ACCESSORY_CT_RANGE))
    return LightState(
        friendly_name=friendly_name,
        power=power,
        brightness=int(brightness) if isinstance(brightness, (int, float)) else None,
        color_temperature=color_temperature,
        hue=hue,
        saturation=saturation,
    )


class LightsController(DeviceController):
    """Lightbulb services fed from ``Power0`` and ``StatusSTS``."""

    category = Category.LIGHTBULB
    kind = "Light"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lights: List[LightState] = []

    async def check_state(self) -> None:
        self.events.debug("Requesting status")
        power_status = await self.client.power_status()
        self.debug_payload("Power status", power_status)
        status = await self.client.status()
        status_sts = status.get("StatusSTS") or {}
        self.debug_payload("Status STS", status_sts)

        count = self.info.relays_count
        lights = [
            light_state(
                self.info.friendly_names[index],
                power_status.get(power_key(index + 1, count)) == "ON",
                status_sts,
            )
            for index in range(count)
        ]
        async with self.state_lock:
            self.lights = lights
        for light in lights:
            self.events.info(f"{light.friendly_name}, state: {'ON' if light.power else 'OFF'}")
            if light.brightness is not None:
                self.events.info(f"{light.friendly_name}, brightness: {light.brightness} %")
            if light.color_temperature is not None:
                self.events.info(f"{light.friendly_name}, color temperature: {light.color_temperature}")

    def build_services(self, accessory: Accessory) -> None:
        for index, light in enumerate(self.lights):
            name = self.service_name(light.friendly_name)
            service = accessory.add_service(ServiceType.LIGHTBULB, name, f"light_{index}")
            service.set_characteristic(Characteristic.CONFIGURED_NAME, name)
            service.on_set(Characteristic.ON, self._power_setter(index))
            if light.brightness is not None:
                service.on_set(Characteristic.BRIGHTNESS, self._value_setter(DIMMER, "brightness"))
            if light.color_temperature is not None:
                service.on_set(Characteristic.COLOR_TEMPERATURE, self._color_temperature_setter())
            if light.hue is not None:
                service.on_set(Characteristic.HUE, self._value_setter(HSB_HUE, "hue"))
            if light.saturation is not None:
                service.on_set(Characteristic.SATURATION, self._value_setter(HSB_SATURATION, "saturation"))

    async def refresh_accessory(self) -> None:
        if self.accessory is None:
            return
        for index, light in enumerate(self.lights):
            service = self.accessory.get_service(f"light_{index}")
            if service is None:
                continue
            service.update_characteristic(Characteristic.ON, light.power)
            for characteristic, value in (
                (Characteristic.BRIGHTNESS, light.brightness),
                (Characteristic.COLOR_TEMPERATURE, light.color_temperature),
                (Characteristic.HUE, light.hue),
                (Characteristic.SATURATION, light.saturation),
            ):
                if value is not None:
                    service.update_characteristic(characteristic, value)

    def _power_setter(self, index: int):
        async def set_power(state: Any) -> None:
            command = power_command(index + 1, self.info.relays_count, bool(state))
            name = self.lights[index].friendly_name
            await self.send(command, f"{name}, set state: {'ON' if state else 'OFF'}")

        return set_power

    def _value_setter(self, command: str, label: str):
        async def set_value(value: Any) -> None:
            await self.send(f"{command} {int(value)}", f"set {label}: {int(value)}")

        return set_value

    def _color_temperature_setter(self):
        async def set_color_temperature(value: Any) -> None:
            ct = round(scale(float(value), *ACCESSORY_CT_RANGE, *CT_RANGE))
            await self.send(f"{COLOR_TEMPERATURE} {ct}", f"set color temperature: {ct}")

        return set_color_temperature

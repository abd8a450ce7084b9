"""Relays exposed as outlets or switches."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from tasmota_control.accessories import Accessory, Category, Characteristic, ServiceType
from tasmota_control.collectors.tasmota_client import power_command, power_key

from .base import DeviceController


@dataclass(slots=True)
class RelayState:
    friendly_name: str
    power: bool


class SwitchesController(DeviceController):
    """One ``On`` characteristic per relay, fed from ``Power0``."""

    kind = "Switch"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.relays: List[RelayState] = []
        self.category = Category.SWITCH if self.config.relays_display_type == 1 else Category.OUTLET

    async def check_state(self) -> None:
        self.events.debug("Requesting status")
        power_status = await self.client.power_status()
        self.debug_payload("Power status", power_status)

        count = self.info.relays_count
        relays = [
            RelayState(
                friendly_name=self.info.friendly_names[index],
                power=power_status.get(power_key(index + 1, count)) == "ON",
            )
            for index in range(count)
        ]
        async with self.state_lock:
            self.relays = relays
        for relay in relays:
            self.events.info(f"{relay.friendly_name}, state: {'ON' if relay.power else 'OFF'}")

    def build_services(self, accessory: Accessory) -> None:
        service_type = ServiceType.SWITCH if self.config.relays_display_type == 1 else ServiceType.OUTLET
        for index, relay in enumerate(self.relays):
            name = self.service_name(relay.friendly_name)
            service = accessory.add_service(service_type, name, f"power_{index}")
            service.set_characteristic(Characteristic.CONFIGURED_NAME, name)
            service.on_set(Characteristic.ON, self._power_setter(index))

    async def refresh_accessory(self) -> None:
        if self.accessory is None:
            return
        for index, relay in enumerate(self.relays):
            service = self.accessory.get_service(f"power_{index}")
            if service is not None:
                service.update_characteristic(Characteristic.ON, relay.power)

    def _power_setter(self, index: int):
        async def set_power(state: Any) -> None:
            relay = self.relays[index]
            command = power_command(index + 1, self.info.relays_count, bool(state))
            await self.send(command, f"{relay.friendly_name}, set state: {'ON' if state else 'OFF'}")

        return set_power

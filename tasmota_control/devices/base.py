"""Shared behaviour of the per-device poll orchestrators."""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tasmota_control.accessories import (
    Accessory,
    AccessorySink,
    Category,
    Characteristic,
    ServiceType,
    accessory_uuid,
)
from tasmota_control.collectors import DeviceInfo, TasmotaClient
from tasmota_control.config import DeviceConfig
from tasmota_control.notifiers import DeviceEventLog
from tasmota_control.services.registry import TaskName
from tasmota_control.services.scheduler import TaskSpec

TickHandler = Callable[[], Awaitable[None]]


class DeviceController:
    """Poll one device and mirror its state onto an :class:`Accessory`.

    Subclasses implement :meth:`check_state` and :meth:`build_services`.  The
    scheduler calls the coroutines returned by :meth:`handlers` once per tick;
    those wrappers catch and log every failure so a broken poll never reaches
    the scheduler.
    """

    category = Category.OTHER
    kind = "Tasmota"

    def __init__(
        self,
        client: TasmotaClient,
        info: DeviceInfo,
        config: DeviceConfig,
        events: DeviceEventLog,
        sink: Optional[AccessorySink] = None,
    ) -> None:
        self.client = client
        self.info = info
        self.config = config
        self.events = events
        self.sink = sink
        self.accessory: Optional[Accessory] = None
        self.state_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> Accessory:
        """Validate reachability and build the accessory.

        Called from a bootstrap tick; any exception propagates so the tick can
        be retried.
        """

        await self.check_state()
        self.events.success("Connect Success")
        self.log_device_info()
        # Initial values are stored without notifying; the sink sees them on publish.
        self.accessory = self.prepare_accessory()
        await self.refresh_accessory()
        self.accessory.sink = self.sink
        return self.accessory

    def tasks(self) -> List[TaskSpec]:
        return [TaskSpec.every(TaskName.CHECK_STATE, self.config.refresh_interval)]

    def handlers(self) -> Dict[str, TickHandler]:
        return {TaskName.CHECK_STATE.value: self._guarded("Check state", self.poll)}

    async def poll(self) -> None:
        await self.check_state()
        await self.refresh_accessory()

    # ------------------------------------------------------------------
    # Subclass hooks
    async def check_state(self) -> None:
        """Fetch the device state and merge it into the local snapshot."""

        raise NotImplementedError

    def build_services(self, accessory: Accessory) -> None:
        """Add the device specific services to ``accessory``."""

        raise NotImplementedError

    async def refresh_accessory(self) -> None:
        """Push the current snapshot to the accessory's characteristics."""

        raise NotImplementedError

    def banner_lines(self) -> List[str]:
        return [f"Relays: {self.info.relays_count}"] if self.info.relays_count else []

    # ------------------------------------------------------------------
    # Helpers
    def prepare_accessory(self) -> Accessory:
        self.events.debug("Prepare accessory")
        name = self.info.device_name
        accessory = Accessory(
            name=name,
            uuid=accessory_uuid(self.info.serial_number),
            category=self.category,
        )
        information = accessory.add_service(ServiceType.ACCESSORY_INFORMATION, name, "info")
        (
            information.set_characteristic(Characteristic.MANUFACTURER, "Tasmota")
            .set_characteristic(Characteristic.MODEL, self.info.model_name)
            .set_characteristic(Characteristic.SERIAL_NUMBER, self.info.serial_number)
            .set_characteristic(
                Characteristic.FIRMWARE_REVISION,
                firmware_digits(self.info.firmware_revision),
            )
            .set_characteristic(Characteristic.CONFIGURED_NAME, name)
        )
        self.build_services(accessory)
        return accessory

    def log_device_info(self) -> None:
        self.events.dev_info(f"----- {self.info.device_name} -----")
        self.events.dev_info("Manufacturer: Tasmota")
        self.events.dev_info(f"Hardware: {self.info.model_name}")
        self.events.dev_info(f"Serialnr: {self.info.serial_number}")
        self.events.dev_info(f"Firmware: {self.info.firmware_revision}")
        self.events.dev_info(f"Device: {self.kind}")
        for line in self.banner_lines():
            self.events.dev_info(line)
        self.events.dev_info("----------------------------------")

    def service_name(self, friendly_name: str) -> str:
        if self.config.name_prefix:
            return f"{self.info.device_name} {friendly_name}"
        return friendly_name

    def debug_payload(self, label: str, payload: Any) -> None:
        if self.events.debug_enabled:
            self.events.debug(f"{label}: {json.dumps(payload, indent=2, default=str)}")

    async def send(self, command: str, description: str) -> None:
        """Send ``command`` to the device, logging the outcome."""

        try:
            await self.client.command(command)
        except Exception as exc:
            self.events.warn(f"{description} error: {exc}")
            raise
        self.events.info(description)

    def _guarded(self, label: str, fn: TickHandler) -> TickHandler:
        async def handler() -> None:
            try:
                await fn()
            except Exception as exc:
                self.events.error(f"{label} error: {exc}")

        handler.__name__ = f"{label.lower().replace(' ', '_')}_handler"
        return handler


def firmware_digits(revision: str) -> str:
    """Strip letters from a firmware string (``"14.2.0(tasmota)"`` -> ``"14.2.0"``)."""

    digits = re.sub(r"\(.*?\)|[A-Za-z]", "", revision).strip()
    return digits or "0"


def scale(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Linearly map ``value`` from one range onto another, clamped to the output."""

    if in_max == in_min:
        return out_min
    scaled = (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min
    return max(out_min, min(out_max, scaled))

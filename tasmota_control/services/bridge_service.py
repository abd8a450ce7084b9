"""High-level orchestration service."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from tasmota_control.accessories import Accessory, AccessorySink
from tasmota_control.collectors import (
    DeviceType,
    RemoteTemperatureClient,
    TasmotaClient,
    fetch_device_info,
)
from tasmota_control.config import BridgeConfig, DeviceConfig
from tasmota_control.devices import DeviceController, build_controller
from tasmota_control.notifiers import DeviceEventLog
from tasmota_control.storage import SetpointStore

from .bootstrap import Bootstrapper, Phase

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DeviceRuntime:
    """Bundle of the components kept alive for one configured device."""

    config: DeviceConfig
    client: TasmotaClient
    events: DeviceEventLog
    bootstrapper: Bootstrapper
    remote_sensor: Optional[RemoteTemperatureClient] = None

    @property
    def phase(self) -> Phase:
        return self.bootstrapper.phase


class BridgeService:
    """Coordinates one bootstrapper per configured device.

    Every device starts in the bootstrapping phase; once its controller comes
    up the accessory is handed to ``sink.publish`` exactly once and the device
    is polled on its own schedule from then on.
    """

    def __init__(
        self,
        config: BridgeConfig,
        sink: AccessorySink,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._transport = transport
        self._stop_event = asyncio.Event()
        self._devices: Dict[str, DeviceRuntime] = {}
        interval_ms = int(config.scheduler.bootstrap_interval.total_seconds() * 1000)
        for device in config.devices:
            if device.name in self._devices:
                raise ValueError(f"duplicate device name: {device.name!r}")
            self._devices[device.name] = self._build_runtime(device, interval_ms)

    @property
    def devices(self) -> Dict[str, DeviceRuntime]:
        return dict(self._devices)

    def accessories(self) -> List[Accessory]:
        return [
            runtime.bootstrapper.controller.accessory
            for runtime in self._devices.values()
            if runtime.bootstrapper.controller is not None
            and runtime.bootstrapper.controller.accessory is not None
        ]

    async def start(self) -> None:
        """Arm the bootstrap phase of every device."""

        for runtime in self._devices.values():
            await runtime.bootstrapper.start()
        logger.info("bridge started with %d device(s)", len(self._devices))

    async def stop(self) -> None:
        """Stop all schedulers and release HTTP clients."""

        for runtime in self._devices.values():
            await runtime.bootstrapper.stop()
            await runtime.client.close()
            if runtime.remote_sensor is not None:
                await runtime.remote_sensor.close()
        self._stop_event.set()
        logger.info("bridge stopped")

    async def run_forever(self) -> None:
        """Start the bridge and block until :meth:`shutdown` is called."""

        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    def shutdown(self) -> None:
        self._stop_event.set()

    # ------------------------------------------------------------------
    # Internals
    def _build_runtime(self, device: DeviceConfig, interval_ms: int) -> DeviceRuntime:
        client = TasmotaClient(device, transport=self._transport)
        events = DeviceEventLog.for_device(device)
        remote = device.mielhvac.remote_temperature_sensor
        remote_sensor = (
            RemoteTemperatureClient(remote, transport=self._transport) if remote is not None else None
        )

        async def initialize() -> DeviceController:
            return await self._initialize(runtime)

        bootstrapper = Bootstrapper(
            f"Device: {device.host} {device.name}",
            initialize,
            interval_ms=interval_ms,
            on_publish=self._sink.publish,
        )
        runtime = DeviceRuntime(
            config=device,
            client=client,
            events=events,
            bootstrapper=bootstrapper,
            remote_sensor=remote_sensor,
        )
        return runtime

    async def _initialize(self, runtime: DeviceRuntime) -> DeviceController:
        device = runtime.config
        info = await fetch_device_info(
            runtime.client, device.name, load_name_from_device=device.load_name_from_device
        )
        kwargs = {}
        if info.device_type is DeviceType.MIELHVAC:
            setpoints = SetpointStore(
                self._config.state_dir,
                info.serial_number,
                heating_default=device.mielhvac.heating_default,
                cooling_default=device.mielhvac.cooling_default,
            )
            await setpoints.ensure()
            kwargs = {"setpoints": setpoints, "remote_sensor": runtime.remote_sensor}
        controller = build_controller(
            info.device_type,
            runtime.client,
            info,
            device,
            runtime.events,
            self._sink,
            **kwargs,
        )
        await controller.start()
        return controller

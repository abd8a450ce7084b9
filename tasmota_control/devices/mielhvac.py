"""Mitsubishi air conditioners driven through the MiElHVAC Tasmota driver."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from tasmota_control.accessories import Accessory, Category, Characteristic, ServiceType
from tasmota_control.collectors import RemoteTemperatureClient
from tasmota_control.services.registry import TaskName
from tasmota_control.services.scheduler import TaskSpec
from tasmota_control.storage import SetpointStore

from .base import DeviceController, TickHandler

SET_MODE = "HVACSetMode"
SET_TEMP = "HVACSetTemp"
SET_FAN_SPEED = "HVACSetFanSpeed"
SET_SWING_V = "HVACSetSwingV"
SET_SWING_H = "HVACSetSwingH"
SET_PROHIBIT = "HVACSetProhibit"
SET_REMOTE_TEMP = "HVACRemoteTemp"

# CurrentHeaterCoolerState: 0 inactive, 1 idle, 2 heating, 3 cooling
# TargetHeaterCoolerState: 0 auto, 1 heat, 2 cool
MODE_STATUS_INDEX = {
    "manual": 0,
    "heat": 2,
    "dry": 1,
    "cool": 3,
    "fan": 1,
    "heat_isee": 2,
    "dry_isee": 1,
    "cool_isee": 3,
    "auto_fan": 1,
    "auto_heat": 2,
    "auto_cool": 3,
    "auto_leader": 4,
}

# mode -> (current state per status index, target state or None to keep the last one)
MODE_TABLE = {
    "heat": ((2, 1, 2, 3, 0), 1),
    "heat_isee": ((2, 1, 2, 3, 0), 1),
    "cool": ((3, 1, 2, 3, 0), 2),
    "cool_isee": ((3, 1, 2, 3, 0), 2),
    "auto": ((2, 1, 2, 3, 0), 0),
    "dry": ((1, 1, 2, 3, 0), None),
    "dry_isee": ((1, 1, 2, 3, 0), None),
    "fan": ((1, 1, 2, 3, 0), None),
}

TARGET_MODES = ("auto", "heat", "cool")

# Five fan speeds plus automatic: 'auto' is published as the top value.
FAN_SPEED_INDEX = {"auto": 0, "quiet": 1, "1": 2, "2": 3, "3": 4, "4": 5}
FAN_ROTATION = (6, 1, 2, 3, 4, 5)
ROTATION_FAN_SPEED = ("auto", "quiet", "1", "2", "3", "4", "auto")
FAN_ROTATION_MAX = 6


class UnknownModeError(ValueError):
    """Raised when the driver reports an operation mode we cannot map."""


@dataclass(slots=True)
class HvacState:
    power: bool
    room_temperature: float
    set_temperature: float
    operation_mode: str
    operation_mode_status: str
    current_operation_mode: int
    target_operation_mode: int
    fan_speed: str
    rotation_speed: int
    swing_v: str
    swing_h: str
    swing_mode: int
    prohibit: str
    use_fahrenheit: bool
    outdoor_temperature: Optional[float] = None
    remote_temperature: Optional[float] = None

    @property
    def temperature_unit(self) -> str:
        return "F" if self.use_fahrenheit else "°C"


def parse_hvac(
    status_sns: Mapping[str, Any], *, previous_target: int = 0
) -> Optional[HvacState]:
    """Translate ``StatusSNS.MiElHVAC`` into :class:`HvacState`.

    Returns ``None`` when the driver has not reported a room temperature yet.
    """

    data = status_sns.get("MiElHVAC") or {}
    room_temperature = data.get("Temperature")
    if not data or room_temperature is None:
        return None

    power = str(data.get("Power", "off")).lower() == "on"
    mode = str(data.get("Mode", "unknown"))
    mode_status = str(data.get("ModeStatus", "unknown"))
    if mode not in MODE_TABLE:
        raise UnknownModeError(mode)
    current_by_status, target = MODE_TABLE[mode]
    current = current_by_status[MODE_STATUS_INDEX.get(mode_status, 0)]
    if not power:
        current = 0

    fan_speed = str(data.get("FanSpeed", "auto"))
    fan_index = FAN_SPEED_INDEX.get(fan_speed)
    rotation = FAN_ROTATION[fan_index] if fan_index is not None else 0

    swing_v = str(data.get("SwingV", "auto"))
    swing_h = str(data.get("SwingH", "center"))
    outdoor = data.get("OutdoorTemperature")

    return HvacState(
        power=power,
        room_temperature=float(room_temperature),
        set_temperature=float(data.get("SetTemperature", room_temperature)),
        operation_mode=mode,
        operation_mode_status=mode_status,
        current_operation_mode=current,
        target_operation_mode=previous_target if target is None else target,
        fan_speed=fan_speed,
        rotation_speed=min(rotation, FAN_ROTATION_MAX),
        swing_v=swing_v,
        swing_h=swing_h,
        swing_mode=int(swing_v == "swing" and swing_h == "swing"),
        prohibit=str(data.get("Prohibit", "off")),
        use_fahrenheit=status_sns.get("TempUnit") == "F",
        outdoor_temperature=float(outdoor) if isinstance(outdoor, (int, float)) else None,
    )


class MiElHvacController(DeviceController):
    """HeaterCooler accessory with persisted AUTO-mode thresholds.

    In AUTO mode the device only knows a single set temperature, so the
    heating and cooling thresholds shown to the user are kept in two setpoint
    files and the device receives their midpoint.
    """

    category = Category.AIR_CONDITIONER
    kind = "MiElHVAC"

    def __init__(
        self,
        *args: Any,
        setpoints: SetpointStore,
        remote_sensor: Optional[RemoteTemperatureClient] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.setpoints = setpoints
        self.remote_sensor = remote_sensor
        self.state: Optional[HvacState] = None
        self.heating_default = 20.0
        self.cooling_default = 24.0

    # ------------------------------------------------------------------
    # Scheduling
    def tasks(self) -> List[TaskSpec]:
        tasks = super().tasks()
        remote = self.config.mielhvac.remote_temperature_sensor
        if self.remote_sensor is not None and remote is not None:
            tasks.append(TaskSpec.every(TaskName.UPDATE_REMOTE_TEMP, remote.refresh_interval))
        return tasks

    def handlers(self) -> Dict[str, TickHandler]:
        handlers = super().handlers()
        if self.remote_sensor is not None:
            handlers[TaskName.UPDATE_REMOTE_TEMP.value] = self._guarded(
                "Update remote temperature", self.update_remote_temperature
            )
        return handlers

    # ------------------------------------------------------------------
    # Polling
    async def check_state(self) -> None:
        self.events.debug("Requesting status")
        status = await self.client.status()
        status_sns = status.get("StatusSNS") or {}
        self.debug_payload("Sensors status", status_sns)

        previous_target = self.state.target_operation_mode if self.state else 0
        try:
            state = parse_hvac(status_sns, previous_target=previous_target)
        except UnknownModeError as exc:
            self.events.warn(f"Unknown operating mode: {exc}")
            return
        if state is None:
            self.events.warn("Empty data received")
            return

        heating_default = await self.setpoints.read_heating()
        cooling_default = await self.setpoints.read_cooling()
        async with self.state_lock:
            if self.state is not None:
                state.remote_temperature = self.state.remote_temperature
            self.state = state
            self.heating_default = heating_default
            self.cooling_default = cooling_default
        self._log_state(state)

    async def update_remote_temperature(self) -> None:
        if self.remote_sensor is None:
            return
        value = await self.remote_sensor.read()
        self.debug_payload("Remote temperature", value)
        await self.client.command(f"{SET_REMOTE_TEMP} {value}")
        async with self.state_lock:
            if self.state is not None:
                self.state.remote_temperature = value

    # ------------------------------------------------------------------
    # Accessory
    def build_services(self, accessory: Accessory) -> None:
        name = self.info.device_name
        service = accessory.add_service(ServiceType.HEATER_COOLER, name, "hvac")
        service.on_set(Characteristic.ACTIVE, self._set_active)
        service.on_set(Characteristic.TARGET_HEATER_COOLER_STATE, self._set_target_mode)
        service.on_set(Characteristic.COOLING_THRESHOLD_TEMPERATURE, self._set_cooling_threshold)
        service.on_set(Characteristic.HEATING_THRESHOLD_TEMPERATURE, self._set_heating_threshold)
        service.on_set(Characteristic.ROTATION_SPEED, self._set_rotation_speed)
        service.on_set(Characteristic.SWING_MODE, self._set_swing_mode)
        service.on_set(Characteristic.LOCK_PHYSICAL_CONTROLS, self._set_lock)

        hvac = self.config.mielhvac
        if hvac.room_temperature_sensor:
            accessory.add_service(ServiceType.TEMPERATURE_SENSOR, self.service_name("Room"), "room")
        if hvac.outdoor_temperature_sensor and self.state and self.state.outdoor_temperature is not None:
            accessory.add_service(ServiceType.TEMPERATURE_SENSOR, self.service_name("Outdoor"), "outdoor")

    async def refresh_accessory(self) -> None:
        state = self.state
        if self.accessory is None or state is None:
            return
        service = self.accessory.get_service("hvac")
        if service is not None:
            (
                service.update_characteristic(Characteristic.ACTIVE, int(state.power))
                .update_characteristic(Characteristic.CURRENT_HEATER_COOLER_STATE, state.current_operation_mode)
                .update_characteristic(Characteristic.TARGET_HEATER_COOLER_STATE, state.target_operation_mode)
                .update_characteristic(Characteristic.CURRENT_TEMPERATURE, state.room_temperature)
                .update_characteristic(Characteristic.LOCK_PHYSICAL_CONTROLS, int(state.prohibit == "all"))
                .update_characteristic(Characteristic.TEMPERATURE_DISPLAY_UNITS, int(state.use_fahrenheit))
                .update_characteristic(Characteristic.SWING_MODE, state.swing_mode)
                .update_characteristic(Characteristic.ROTATION_SPEED, state.rotation_speed)
            )
            target = state.target_operation_mode
            if target in (0, 2):
                value = self.cooling_default if target == 0 else state.set_temperature
                service.update_characteristic(Characteristic.COOLING_THRESHOLD_TEMPERATURE, value)
            if target in (0, 1):
                value = self.heating_default if target == 0 else state.set_temperature
                service.update_characteristic(Characteristic.HEATING_THRESHOLD_TEMPERATURE, value)

        room = self.accessory.get_service("room")
        if room is not None:
            room.update_characteristic(Characteristic.CURRENT_TEMPERATURE, state.room_temperature)
        outdoor = self.accessory.get_service("outdoor")
        if outdoor is not None and state.outdoor_temperature is not None:
            outdoor.update_characteristic(Characteristic.CURRENT_TEMPERATURE, state.outdoor_temperature)

    # ------------------------------------------------------------------
    # Setters
    async def _set_active(self, value: Any) -> None:
        await self.send("Power on" if value else "Power off", f"Set power: {'ON' if value else 'OFF'}")

    async def _set_target_mode(self, value: Any) -> None:
        mode = TARGET_MODES[int(value)]
        await self.send(f"{SET_MODE} {mode}", f"Set operation mode: {mode.upper()}")

    async def _set_cooling_threshold(self, value: Any) -> None:
        value = float(value)
        if self.state is not None and self.state.target_operation_mode == 0:
            await self.setpoints.write_cooling(value)
            self.cooling_default = value
            value = (value + self.heating_default) / 2
        await self.send(f"{SET_TEMP} {value}", f"Set cooling threshold temperature: {value}")

    async def _set_heating_threshold(self, value: Any) -> None:
        value = float(value)
        if self.state is not None and self.state.target_operation_mode == 0:
            await self.setpoints.write_heating(value)
            self.heating_default = value
            value = (value + self.cooling_default) / 2
        await self.send(f"{SET_TEMP} {value}", f"Set heating threshold temperature: {value}")

    async def _set_rotation_speed(self, value: Any) -> None:
        index = max(0, min(FAN_ROTATION_MAX, int(value)))
        speed = ROTATION_FAN_SPEED[index]
        await self.send(f"{SET_FAN_SPEED} {speed}", f"Set fan speed mode: {speed.upper()}")

    async def _set_swing_mode(self, value: Any) -> None:
        if value:
            await self.send(f"{SET_SWING_V} swing", "Set vane vertical: SWING")
            await self.send(f"{SET_SWING_H} swing", "Set vane horizontal: SWING")
        else:
            await self.send(f"{SET_SWING_V} auto", "Set vane vertical: AUTO")
            await self.send(f"{SET_SWING_H} center", "Set vane horizontal: CENTER")

    async def _set_lock(self, value: Any) -> None:
        prohibit = "all" if value else "off"
        await self.send(f"{SET_PROHIBIT} {prohibit}", f"Set local physical controls: {'LOCK' if value else 'UNLOCK'}")

    def _log_state(self, state: HvacState) -> None:
        unit = state.temperature_unit
        self.events.info(f"Power: {'ON' if state.power else 'OFF'}")
        if not state.power:
            return
        self.events.info(f"Target operation mode: {state.operation_mode.upper()}")
        self.events.info(f"Current operation mode: {state.operation_mode_status.upper()}")
        self.events.info(f"Target temperature: {state.set_temperature}{unit}")
        self.events.info(f"Current temperature: {state.room_temperature}{unit}")
        if state.outdoor_temperature is not None:
            self.events.info(f"Outdoor temperature: {state.outdoor_temperature}{unit}")
        self.events.info(f"Fan speed: {state.fan_speed.upper()}")

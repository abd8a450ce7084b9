"""Environmental sensors and energy meters reported under ``StatusSNS``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tasmota_control.accessories import Accessory, Category, Characteristic, ServiceType
from tasmota_control.collectors.device_info import sensor_entries

from .base import DeviceController

CO2_ALERT_LEVEL = 1000
ENERGY_SENSOR = "ENERGY"

# (reading attribute, service type, characteristic, subtype suffix, name suffix)
_READINGS: Tuple[Tuple[str, ServiceType, str, str, str], ...] = (
    ("temperature", ServiceType.TEMPERATURE_SENSOR, Characteristic.CURRENT_TEMPERATURE, "temperature", "Temperature"),
    (
        "reference_temperature",
        ServiceType.TEMPERATURE_SENSOR,
        Characteristic.CURRENT_TEMPERATURE,
        "reference_temperature",
        "Reference Temperature",
    ),
    ("obj_temperature", ServiceType.TEMPERATURE_SENSOR, Characteristic.CURRENT_TEMPERATURE, "obj_temperature", "Obj"),
    ("amb_temperature", ServiceType.TEMPERATURE_SENSOR, Characteristic.CURRENT_TEMPERATURE, "amb_temperature", "Amb"),
    ("dew_point", ServiceType.TEMPERATURE_SENSOR, Characteristic.CURRENT_TEMPERATURE, "dew_point", "Dew Point"),
    ("humidity", ServiceType.HUMIDITY_SENSOR, Characteristic.CURRENT_RELATIVE_HUMIDITY, "humidity", "Humidity"),
    ("carbon_dioxide", ServiceType.CARBON_DIOXIDE_SENSOR, Characteristic.CARBON_DIOXIDE_LEVEL, "co2", "Carbon Dioxide"),
    ("ambient_light", ServiceType.LIGHT_SENSOR, Characteristic.CURRENT_AMBIENT_LIGHT_LEVEL, "ambient_light", "Ambient Light"),
    ("motion", ServiceType.MOTION_SENSOR, Characteristic.MOTION_DETECTED, "motion", "Motion"),
)

# (energy attribute, characteristic, unit)
_ENERGY_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("power", Characteristic.POWER, "W"),
    ("apparent_power", Characteristic.APPARENT_POWER, "VA"),
    ("reactive_power", Characteristic.REACTIVE_POWER, "VAr"),
    ("today", Characteristic.ENERGY_TODAY, "kWh"),
    ("yesterday", Characteristic.ENERGY_LAST_DAY, "kWh"),
    ("total", Characteristic.ENERGY_LIFETIME, "kWh"),
    ("current", Characteristic.CURRENT, "A"),
    ("voltage", Characteristic.VOLTAGE, "V"),
    ("factor", Characteristic.FACTOR, "cos φ"),
    ("frequency", Characteristic.FREQUENCY, "Hz"),
)


@dataclass(slots=True)
class EnergyReading:
    """Values of the ``ENERGY`` block reported by metering plugs."""

    power: Optional[float] = None
    apparent_power: Optional[float] = None
    reactive_power: Optional[float] = None
    today: Optional[float] = None
    yesterday: Optional[float] = None
    total: Optional[float] = None
    current: Optional[float] = None
    voltage: Optional[float] = None
    factor: Optional[float] = None
    frequency: Optional[float] = None
    reading_time: Optional[str] = None


@dataclass(slots=True)
class SensorReading:
    name: str
    temperature: Optional[float] = None
    reference_temperature: Optional[float] = None
    obj_temperature: Optional[float] = None
    amb_temperature: Optional[float] = None
    dew_point: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    gas: Optional[float] = None
    carbon_dioxide: Optional[float] = None
    ambient_light: Optional[float] = None
    motion: Optional[bool] = None
    energy: Optional[EnergyReading] = None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_energy(data: Mapping[str, Any], reading_time: Optional[str] = None) -> EnergyReading:
    return EnergyReading(
        power=_number(data.get("Power")),
        apparent_power=_number(data.get("ApparentPower")),
        reactive_power=_number(data.get("ReactivePower")),
        today=_number(data.get("Today")),
        yesterday=_number(data.get("Yesterday")),
        total=_number(data.get("Total")),
        current=_number(data.get("Current")),
        voltage=_number(data.get("Voltage")),
        factor=_number(data.get("Factor")),
        frequency=_number(data.get("Frequency")),
        reading_time=reading_time,
    )


def parse_sensors(status_sns: Mapping[str, Any]) -> List[SensorReading]:
    readings = []
    reading_time = status_sns.get("Time")
    for name, data in sensor_entries(status_sns).items():
        motion = data.get("Motion")
        readings.append(
            SensorReading(
                name=name,
                temperature=_number(data.get("Temperature")),
                reference_temperature=_number(data.get("ReferenceTemperature")),
                obj_temperature=_number(data.get("OBJTMP")),
                amb_temperature=_number(data.get("AMBTMP")),
                dew_point=_number(data.get("DewPoint")),
                humidity=_number(data.get("Humidity")),
                pressure=_number(data.get("Pressure")),
                gas=_number(data.get("Gas")),
                carbon_dioxide=_number(data.get("CarbonDioxide", data.get("CarbonDioxyde"))),
                ambient_light=_number(data.get("Illuminance", data.get("Ambient"))),
                motion=None if motion is None else motion in (1, True, "ON", "On", "on"),
                energy=parse_energy(data, reading_time) if name == ENERGY_SENSOR else None,
            )
        )
    return readings


class SensorsController(DeviceController):
    category = Category.SENSOR
    kind = "Sensor"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.readings: Dict[str, SensorReading] = {}

    def banner_lines(self) -> List[str]:
        return [f"Sensors: {len(self.info.sensor_names)}"]

    async def check_state(self) -> None:
        self.events.debug("Requesting status")
        status = await self.client.status()
        status_sns = status.get("StatusSNS") or {}
        self.debug_payload("Sensors status", status_sns)
        readings = {reading.name: reading for reading in parse_sensors(status_sns)}
        async with self.state_lock:
            self.readings = readings
        for reading in readings.values():
            if reading.temperature is not None:
                self.events.info(f"sensor: {reading.name} temperature: {reading.temperature}")
            if reading.humidity is not None:
                self.events.info(f"sensor: {reading.name} humidity: {reading.humidity} %")
            if reading.pressure is not None:
                self.events.info(f"sensor: {reading.name} pressure: {reading.pressure}")
            if reading.gas is not None:
                self.events.info(f"sensor: {reading.name} gas: {reading.gas}")
            if reading.energy is not None:
                for attribute, _, unit in _ENERGY_FIELDS:
                    value = getattr(reading.energy, attribute)
                    if value is not None:
                        self.events.info(f"sensor: {reading.name} {attribute.replace('_', ' ')}: {value} {unit}")

    def build_services(self, accessory: Accessory) -> None:
        for reading in self.readings.values():
            for attribute, service_type, _, suffix, label in _READINGS:
                if getattr(reading, attribute) is None:
                    continue
                name = self.service_name(f"{reading.name} {label}")
                accessory.add_service(service_type, name, f"{reading.name}_{suffix}")
            if reading.energy is not None:
                name = self.service_name(f"{reading.name} Power And Energy")
                accessory.add_service(ServiceType.POWER_AND_ENERGY, name, f"{reading.name}_energy")

    async def refresh_accessory(self) -> None:
        if self.accessory is None:
            return
        for reading in self.readings.values():
            for attribute, _, characteristic, suffix, _ in _READINGS:
                value = getattr(reading, attribute)
                service = self.accessory.get_service(f"{reading.name}_{suffix}")
                if service is None or value is None:
                    continue
                service.update_characteristic(characteristic, value)
                if attribute == "carbon_dioxide":
                    service.update_characteristic(
                        Characteristic.CARBON_DIOXIDE_DETECTED, int(value > CO2_ALERT_LEVEL)
                    )
            energy = reading.energy
            service = self.accessory.get_service(f"{reading.name}_energy")
            if energy is None or service is None:
                continue
            for attribute, characteristic, _ in _ENERGY_FIELDS:
                value = getattr(energy, attribute)
                if value is not None:
                    service.update_characteristic(characteristic, value)
            if energy.reading_time is not None:
                service.update_characteristic(Characteristic.READING_TIME, energy.reading_time)

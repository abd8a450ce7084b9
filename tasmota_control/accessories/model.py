"""In-process representation of a published accessory."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterator, List, Optional

if TYPE_CHECKING:
    from .sink import AccessorySink

SetHandler = Callable[[Any], Awaitable[None]]

_UUID_NAMESPACE = uuid.UUID("6f1c3b52-40a4-4c0b-9d0e-2f9b2f1a7c11")


class Category(str, Enum):
    OTHER = "other"
    OUTLET = "outlet"
    SWITCH = "switch"
    LIGHTBULB = "lightbulb"
    FAN = "fan"
    SENSOR = "sensor"
    AIR_HEATER = "air_heater"
    AIR_CONDITIONER = "air_conditioner"


class ServiceType(str, Enum):
    ACCESSORY_INFORMATION = "AccessoryInformation"
    OUTLET = "Outlet"
    SWITCH = "Switch"
    LIGHTBULB = "Lightbulb"
    FAN = "Fanv2"
    HEATER_COOLER = "HeaterCooler"
    TEMPERATURE_SENSOR = "TemperatureSensor"
    HUMIDITY_SENSOR = "HumiditySensor"
    CARBON_DIOXIDE_SENSOR = "CarbonDioxideSensor"
    LIGHT_SENSOR = "LightSensor"
    MOTION_SENSOR = "MotionSensor"
    POWER_AND_ENERGY = "PowerAndEnergy"


class Characteristic:
    """Characteristic names understood by the accessory framework."""

    NAME = "Name"
    MANUFACTURER = "Manufacturer"
    MODEL = "Model"
    SERIAL_NUMBER = "SerialNumber"
    FIRMWARE_REVISION = "FirmwareRevision"
    CONFIGURED_NAME = "ConfiguredName"
    ON = "On"
    ACTIVE = "Active"
    BRIGHTNESS = "Brightness"
    COLOR_TEMPERATURE = "ColorTemperature"
    HUE = "Hue"
    SATURATION = "Saturation"
    ROTATION_SPEED = "RotationSpeed"
    CURRENT_TEMPERATURE = "CurrentTemperature"
    CURRENT_RELATIVE_HUMIDITY = "CurrentRelativeHumidity"
    CARBON_DIOXIDE_DETECTED = "CarbonDioxideDetected"
    CARBON_DIOXIDE_LEVEL = "CarbonDioxideLevel"
    CURRENT_AMBIENT_LIGHT_LEVEL = "CurrentAmbientLightLevel"
    MOTION_DETECTED = "MotionDetected"
    CURRENT_HEATER_COOLER_STATE = "CurrentHeaterCoolerState"
    TARGET_HEATER_COOLER_STATE = "TargetHeaterCoolerState"
    COOLING_THRESHOLD_TEMPERATURE = "CoolingThresholdTemperature"
    HEATING_THRESHOLD_TEMPERATURE = "HeatingThresholdTemperature"
    LOCK_PHYSICAL_CONTROLS = "LockPhysicalControls"
    TEMPERATURE_DISPLAY_UNITS = "TemperatureDisplayUnits"
    SWING_MODE = "SwingMode"
    POWER = "Power"
    APPARENT_POWER = "ApparentPower"
    REACTIVE_POWER = "ReactivePower"
    ENERGY_TODAY = "EnergyToday"
    ENERGY_LAST_DAY = "EnergyLastDay"
    ENERGY_LIFETIME = "EnergyLifetime"
    CURRENT = "Current"
    VOLTAGE = "Voltage"
    FACTOR = "Factor"
    FREQUENCY = "Frequency"
    READING_TIME = "ReadingTime"


def accessory_uuid(serial_number: str) -> str:
    """Derive a stable accessory identifier from a device serial number."""

    return str(uuid.uuid5(_UUID_NAMESPACE, serial_number))


@dataclass(slots=True, eq=False)
class Service:
    """A group of characteristics exposed by an accessory."""

    type: ServiceType
    name: str
    subtype: str
    characteristics: Dict[str, Any] = field(default_factory=dict)
    _accessory: Optional["Accessory"] = field(default=None, repr=False)
    _setters: Dict[str, SetHandler] = field(default_factory=dict, repr=False)

    def set_characteristic(self, characteristic: str, value: Any) -> "Service":
        """Store ``value`` without notifying the sink."""

        self.characteristics[characteristic] = value
        return self

    def update_characteristic(self, characteristic: str, value: Any) -> "Service":
        """Store ``value`` and push it to the sink when it changed."""

        if self.characteristics.get(characteristic, _MISSING) == value:
            return self
        self.characteristics[characteristic] = value
        if self._accessory is not None:
            self._accessory.notify(self, characteristic, value)
        return self

    def on_set(self, characteristic: str, handler: SetHandler) -> "Service":
        """Register the coroutine run when the framework writes ``characteristic``."""

        self._setters[characteristic] = handler
        return self

    async def handle_set(self, characteristic: str, value: Any) -> None:
        handler = self._setters.get(characteristic)
        if handler is None:
            raise KeyError(f"{self.name}: {characteristic} is read-only")
        await handler(value)

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.type.value,
            "name": self.name,
            "subtype": self.subtype,
            "characteristics": dict(self.characteristics),
        }


_MISSING = object()


@dataclass(slots=True, eq=False)
class Accessory:
    """Externally published representation of one device."""

    name: str
    uuid: str
    category: Category
    services: List[Service] = field(default_factory=list)
    sink: Optional["AccessorySink"] = field(default=None, repr=False)

    def add_service(self, service_type: ServiceType, name: str, subtype: str = "") -> Service:
        service = Service(type=service_type, name=name, subtype=subtype or name, _accessory=self)
        self.services.append(service)
        return service

    def get_service(self, subtype: str) -> Optional[Service]:
        for service in self.services:
            if service.subtype == subtype:
                return service
        return None

    def iter_services(self, service_type: ServiceType) -> Iterator[Service]:
        return (service for service in self.services if service.type is service_type)

    async def set(self, subtype: str, characteristic: str, value: Any) -> None:
        """Entry point for writes coming from the accessory framework."""

        service = self.get_service(subtype)
        if service is None:
            raise KeyError(f"unknown service: {subtype}")
        await service.handle_set(characteristic, value)

    def notify(self, service: Service, characteristic: str, value: Any) -> None:
        if self.sink is not None:
            self.sink.update(self, service, characteristic, value)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "uuid": self.uuid,
            "category": self.category.value,
            "services": [service.to_dict() for service in self.services],
        }

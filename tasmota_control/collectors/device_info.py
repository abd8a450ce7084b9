"""Resolve a device's identity and kind from its ``Status 0`` document."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Sequence

from .tasmota_client import TasmotaClient, TasmotaError

LIGHT_KEYS = (
    "Dimmer",
    "Color",
    "HSBColor",
    "HSBColor1",
    "HSBColor2",
    "HSBColor3",
    "White",
    "CT",
)

SENSOR_KEYS = (
    "AHT1X", "AHT2X", "AM2301", "AM2302", "AM2320", "AM2321", "APDS9960",
    "AZ7798", "BME280", "BME680", "CCS811", "DHT11", "DHT12", "DS1621",
    "DS1624", "DS18B20", "DS18S20", "DS1822", "ESP32", "ENS161", "EZO",
    "HDC1080", "HDC2010", "HP303B", "HYT", "K30", "K70", "LM75AD", "LMT01",
    "MAX6675", "MAX31855", "MAX31865", "MAX44009", "MCP9808", "MHZ19",
    "MLX90614", "MLX90640", "HTU21", "SCD30", "SCD40", "SCD41", "SEN54",
    "SEN55", "SEN0390", "SGP30", "SGP40", "SGP41", "Si114", "Si7021",
    "SHT1X", "SHT10", "SHT3X", "SHT30", "SHT4X", "SHT40", "T6703", "T6713",
    "TC74", "VEML7700", "PIR", "ENERGY",
)


class DeviceInfoError(TasmotaError):
    """Raised when ``Status 0`` lacks the fields needed to identify a device."""


class DeviceType(IntEnum):
    MIELHVAC = 0
    SWITCH = 1
    LIGHT = 2
    FAN = 3
    SENSOR = 4


@dataclass(slots=True)
class DeviceInfo:
    """Identity of a Tasmota device as reported by ``Status 0``."""

    device_type: DeviceType
    device_name: str
    friendly_names: Sequence[str]
    model_name: str
    serial_number: str
    firmware_revision: str
    sensor_names: Sequence[str] = field(default_factory=tuple)

    @property
    def relays_count(self) -> int:
        return len(self.friendly_names)

    def to_dict(self) -> Dict[str, object]:
        return {
            "device_type": self.device_type.name.lower(),
            "device_name": self.device_name,
            "friendly_names": list(self.friendly_names),
            "model_name": self.model_name,
            "serial_number": self.serial_number,
            "firmware_revision": self.firmware_revision,
            "relays_count": self.relays_count,
            "sensor_names": list(self.sensor_names),
        }


def sensor_entries(status_sns: Mapping[str, Any]) -> Dict[str, Mapping[str, Any]]:
    """Return the ``StatusSNS`` entries that belong to a known sensor type."""

    found: Dict[str, Mapping[str, Any]] = {}
    for key, value in status_sns.items():
        if not isinstance(value, Mapping):
            continue
        if any(sensor_type in key for sensor_type in SENSOR_KEYS):
            found[key] = value
    return found


def parse_device_info(
    payload: Mapping[str, Any], name: str, *, load_name_from_device: bool = False
) -> DeviceInfo:
    """Build :class:`DeviceInfo` from a ``Status 0`` payload."""

    status = payload.get("Status") or {}
    device_name = str(status.get("DeviceName") or "Unknown") if load_name_from_device else name

    raw_names = status.get("FriendlyName") or []
    if not isinstance(raw_names, list):
        raw_names = [raw_names]
    friendly_names: List[str] = [
        str(item) if item else f"Unknown Name {index}" for index, item in enumerate(raw_names)
    ]

    status_fwr = payload.get("StatusFWR") or {}
    firmware_revision = str(status_fwr.get("Version") or "Unknown")
    model_name = str(status_fwr.get("Hardware") or "Unknown")

    status_net = payload.get("StatusNET") or {}
    serial_number = status_net.get("Mac")
    if not serial_number:
        raise DeviceInfoError("missing MAC address in Status 0 response")

    status_sns = payload.get("StatusSNS") or {}
    status_sts = payload.get("StatusSTS") or {}
    sensors = tuple(sensor_entries(status_sns))

    has_relays = any(str(key).startswith("POWER") for key in status_sts)

    if "MiElHVAC" in status_sns:
        device_type = DeviceType.MIELHVAC
    elif any(key in status_sts for key in LIGHT_KEYS):
        device_type = DeviceType.LIGHT
    elif "FanSpeed" in status_sts:
        device_type = DeviceType.FAN
    elif sensors and not has_relays:
        device_type = DeviceType.SENSOR
    else:
        device_type = DeviceType.SWITCH

    return DeviceInfo(
        device_type=device_type,
        device_name=device_name,
        friendly_names=tuple(friendly_names),
        model_name=model_name,
        serial_number=str(serial_number),
        firmware_revision=firmware_revision,
        sensor_names=sensors,
    )


async def fetch_device_info(
    client: TasmotaClient, name: str, *, load_name_from_device: bool = False
) -> DeviceInfo:
    """Query ``Status 0`` and resolve the device's identity."""

    payload = await client.status()
    return parse_device_info(payload, name, load_name_from_device=load_name_from_device)

"""Data collection interfaces for the bridge."""

from .device_info import (
    DeviceInfo,
    DeviceInfoError,
    DeviceType,
    fetch_device_info,
    parse_device_info,
)
from .remote_sensor import RemoteSensorError, RemoteTemperatureClient
from .tasmota_client import (
    TasmotaAuthenticationError,
    TasmotaClient,
    TasmotaError,
)

__all__ = [
    "DeviceInfo",
    "DeviceInfoError",
    "DeviceType",
    "fetch_device_info",
    "parse_device_info",
    "RemoteSensorError",
    "RemoteTemperatureClient",
    "TasmotaAuthenticationError",
    "TasmotaClient",
    "TasmotaError",
]

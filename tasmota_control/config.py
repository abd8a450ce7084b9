"""Configuration schema for the Tasmota bridge.

The dataclasses below describe how a bridge process is configured: which
devices it polls, how often, how it authenticates against them and which
messages end up in the log.  :mod:`tasmota_control.config_loader` turns a YAML
file into these structures.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence


@dataclass(slots=True)
class AuthConfig:
    """Web credentials accepted by the Tasmota ``/cm`` endpoint."""

    user: str = "admin"
    password: str = ""


@dataclass(slots=True)
class LogConfig:
    """Per-device switches for the leveled event log."""

    device_info: bool = True
    success: bool = True
    info: bool = True
    warn: bool = True
    error: bool = True
    debug: bool = False


@dataclass(slots=True)
class RemoteSensorConfig:
    """External temperature source fed into the HVAC controller."""

    url: str
    refresh_interval: timedelta = timedelta(seconds=5)
    auth: Optional[AuthConfig] = None
    request_timeout: float = 10.0


@dataclass(slots=True)
class MiElHvacConfig:
    """Options that only apply to MiElHVAC air conditioners."""

    heating_default: float = 20.0
    cooling_default: float = 24.0
    room_temperature_sensor: bool = False
    outdoor_temperature_sensor: bool = False
    remote_temperature_sensor: Optional[RemoteSensorConfig] = None


@dataclass(slots=True)
class DeviceConfig:
    """A single Tasmota device polled by the bridge."""

    name: str
    host: str
    auth: Optional[AuthConfig] = None
    refresh_interval: timedelta = timedelta(seconds=5)
    request_timeout: float = 10.0
    load_name_from_device: bool = False
    relays_display_type: int = 0  # 0 - outlet, 1 - switch
    name_prefix: bool = False
    log: LogConfig = field(default_factory=LogConfig)
    mielhvac: MiElHvacConfig = field(default_factory=MiElHvacConfig)


@dataclass(slots=True)
class SchedulerConfig:
    """Timing knobs for the bootstrap phase."""

    bootstrap_interval: timedelta = timedelta(seconds=45)


@dataclass(slots=True)
class BridgeConfig:
    """Top-level configuration bundle for one bridge process."""

    devices: Sequence[DeviceConfig]
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    state_dir: Path = field(default_factory=lambda: Path("./state"))

"""Utilities to load :mod:`tasmota_control.config` structures from YAML files."""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .config import (
    AuthConfig,
    BridgeConfig,
    DeviceConfig,
    LogConfig,
    MiElHvacConfig,
    RemoteSensorConfig,
    SchedulerConfig,
)

_DURATION_UNITS = {
    "ms": _dt.timedelta(milliseconds=1),
    "s": _dt.timedelta(seconds=1),
    "m": _dt.timedelta(minutes=1),
    "h": _dt.timedelta(hours=1),
}


_MIN_INTERVAL = _dt.timedelta(milliseconds=1)


def load_config(path: Path) -> BridgeConfig:
    """Load a configuration file into :class:`BridgeConfig`.

    Durations accept human friendly values such as ``"5s"`` or ``"1m"`` as well
    as bare numbers, which are read as seconds.  Devices without a ``name`` or
    ``host`` are rejected; everything else falls back to the defaults declared
    in :mod:`tasmota_control.config`.
    """

    raw = _load_yaml(path)

    devices_section = raw.get("devices") or []
    if not isinstance(devices_section, list):
        raise ValueError("'devices' must be a list")
    devices = tuple(_parse_device(item) for item in devices_section)

    scheduler_section = raw.get("scheduler") or {}
    scheduler = SchedulerConfig(
        bootstrap_interval=_parse_interval(scheduler_section.get("bootstrap_interval", "45s"), "bootstrap_interval"),
    )

    state_dir = Path(raw.get("state_dir", "./state"))

    return BridgeConfig(devices=devices, scheduler=scheduler, state_dir=state_dir)


def _parse_device(item: Mapping[str, Any]) -> DeviceConfig:
    if not isinstance(item, Mapping):
        raise ValueError("device entries must be mappings")
    name = str(item.get("name") or "").strip()
    host = str(item.get("host") or "").strip()
    if not name:
        raise ValueError("device name missing")
    if not host:
        raise ValueError(f"device {name!r}: host missing")

    log_section = item.get("log") or {}
    log = LogConfig(
        device_info=bool(log_section.get("device_info", True)),
        success=bool(log_section.get("success", True)),
        info=bool(log_section.get("info", True)),
        warn=bool(log_section.get("warn", True)),
        error=bool(log_section.get("error", True)),
        debug=bool(log_section.get("debug", False)),
    )

    hvac_section = item.get("mielhvac") or {}
    remote_section = hvac_section.get("remote_temperature_sensor") or {}
    remote = None
    if remote_section and remote_section.get("enable", True) and remote_section.get("url"):
        remote = RemoteSensorConfig(
            url=str(remote_section["url"]),
            refresh_interval=_parse_interval(
                remote_section.get("refresh_interval", "5s"), f"device {name!r}: remote_temperature_sensor.refresh_interval"
            ),
            auth=_parse_auth(remote_section.get("auth")),
            request_timeout=float(remote_section.get("request_timeout", 10.0)),
        )
    mielhvac = MiElHvacConfig(
        heating_default=float(hvac_section.get("heating_default", 20.0)),
        cooling_default=float(hvac_section.get("cooling_default", 24.0)),
        room_temperature_sensor=bool(hvac_section.get("room_temperature_sensor", False)),
        outdoor_temperature_sensor=bool(hvac_section.get("outdoor_temperature_sensor", False)),
        remote_temperature_sensor=remote,
    )

    return DeviceConfig(
        name=name,
        host=host,
        auth=_parse_auth(item.get("auth")),
        refresh_interval=_parse_interval(item.get("refresh_interval", "5s"), f"device {name!r}: refresh_interval"),
        request_timeout=float(item.get("request_timeout", 10.0)),
        load_name_from_device=bool(item.get("load_name_from_device", False)),
        relays_display_type=int(item.get("relays_display_type", 0)),
        name_prefix=bool(item.get("name_prefix", False)),
        log=log,
        mielhvac=mielhvac,
    )


def _parse_auth(section: Any) -> Optional[AuthConfig]:
    if not section:
        return None
    if not isinstance(section, Mapping):
        raise ValueError("auth section must be a mapping")
    return AuthConfig(
        user=str(section.get("user", "admin")),
        password=str(section.get("password", "")),
    )


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, Mapping):
        raise ValueError("configuration root must be a mapping")
    return data


def _parse_duration(value: Any) -> _dt.timedelta:
    if isinstance(value, _dt.timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"unsupported duration value: {value!r}")
    if isinstance(value, (int, float)):
        return _dt.timedelta(seconds=float(value))
    if not isinstance(value, str):
        raise ValueError(f"unsupported duration value: {value!r}")
    value = value.strip()
    if value.isdigit():
        return _dt.timedelta(seconds=int(value))
    unit = "ms" if value.lower().endswith("ms") else value[-1:].lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"unknown duration unit: {value}")
    amount = float(value[: -len(unit)])
    base = _DURATION_UNITS[unit]
    return _dt.timedelta(seconds=base.total_seconds() * amount)


def _parse_interval(value: Any, label: str) -> _dt.timedelta:
    """Parse a scheduling period; it must be at least one millisecond."""

    interval = _parse_duration(value)
    if interval < _MIN_INTERVAL:
        raise ValueError(f"{label} must be at least 1ms, got {value!r}")
    return interval

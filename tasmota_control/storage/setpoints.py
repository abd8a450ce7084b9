"""File-backed persistence of the two default HVAC setpoints."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Union

Number = Union[int, float]

HEATING_SUFFIX = "defaultHeatingSetTemperature"
COOLING_SUFFIX = "defaultCoolingSetTemperature"


class SetpointError(RuntimeError):
    """Raised when a setpoint file cannot be read or written."""


class SetpointStore:
    """Two numeric file slots keyed by the device serial number.

    Each slot holds a single JSON number.  Missing slots are created with the
    given defaults by :meth:`ensure`.
    """

    def __init__(
        self,
        directory: Path,
        serial_number: str,
        *,
        heating_default: Number = 20.0,
        cooling_default: Number = 24.0,
    ) -> None:
        safe_serial = serial_number.replace(":", "")
        self._directory = Path(directory)
        self.heating_path = self._directory / f"{safe_serial}.{HEATING_SUFFIX}"
        self.cooling_path = self._directory / f"{safe_serial}.{COOLING_SUFFIX}"
        self._heating_default = float(heating_default)
        self._cooling_default = float(cooling_default)

    async def ensure(self) -> None:
        """Create the directory and any missing slot with its default value."""

        await asyncio.to_thread(self._ensure_sync)

    async def read_heating(self) -> float:
        return await asyncio.to_thread(self._read, self.heating_path)

    async def read_cooling(self) -> float:
        return await asyncio.to_thread(self._read, self.cooling_path)

    async def write_heating(self, value: Number) -> None:
        await asyncio.to_thread(self._write, self.heating_path, value)

    async def write_cooling(self, value: Number) -> None:
        await asyncio.to_thread(self._write, self.cooling_path, value)

    # ------------------------------------------------------------------
    def _ensure_sync(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        for path, default in (
            (self.heating_path, self._heating_default),
            (self.cooling_path, self._cooling_default),
        ):
            if not path.exists():
                self._write(path, default)

    @staticmethod
    def _read(path: Path) -> float:
        try:
            return float(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError) as exc:
            raise SetpointError(f"read {path.name}: {exc}") from exc

    @staticmethod
    def _write(path: Path, value: Number) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SetpointError(f"setpoint must be a number, got {value!r}")
        try:
            path.write_text(json.dumps(float(value)), encoding="utf-8")
        except OSError as exc:
            raise SetpointError(f"write {path.name}: {exc}") from exc

"""Destinations for published accessories and characteristic updates."""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Protocol, TextIO, Tuple

from .model import Accessory, Service


class AccessorySink(Protocol):
    """What the device controllers need from the accessory framework."""

    def publish(self, accessory: Accessory) -> None:
        ...

    def update(self, accessory: Accessory, service: Service, characteristic: str, value: Any) -> None:
        ...


@dataclass(slots=True)
class MemorySink:
    """Record publications and updates in memory."""

    published: List[Accessory] = field(default_factory=list)
    updates: List[Tuple[str, str, str, Any]] = field(default_factory=list)

    def publish(self, accessory: Accessory) -> None:
        self.published.append(accessory)

    def update(self, accessory: Accessory, service: Service, characteristic: str, value: Any) -> None:
        self.updates.append((accessory.name, service.subtype, characteristic, value))

    def values(self, subtype: str, characteristic: str) -> List[Any]:
        return [value for _, sub, char, value in self.updates if sub == subtype and char == characteristic]


class JsonLinesSink:
    """Write one JSON object per event to ``stream``."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def publish(self, accessory: Accessory) -> None:
        self._write({"event": "publish", "accessory": accessory.to_dict()})

    def update(self, accessory: Accessory, service: Service, characteristic: str, value: Any) -> None:
        self._write(
            {
                "event": "update",
                "accessory": accessory.name,
                "service": service.subtype,
                "characteristic": characteristic,
                "value": value,
            }
        )

    def _write(self, record: dict) -> None:
        record["time"] = datetime.now(timezone.utc).isoformat()
        self._stream.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        self._stream.flush()

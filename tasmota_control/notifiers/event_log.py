"""Leveled device event stream backed by :mod:`logging`."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from tasmota_control.config import DeviceConfig, LogConfig

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

logger = logging.getLogger("tasmota_control.device")


@dataclass(slots=True)
class Notification:
    """A single message emitted by a device controller."""

    level: str
    message: str


class DeviceEventLog:
    """Route ``success``/``info``/``warn``/``error``/``debug`` messages to a logger.

    Messages are prefixed with the device host and name.  Each level can be
    switched off through the device's ``log`` configuration section;
    ``dev_info`` lines (the device banner printed after a successful connect)
    follow the ``device_info`` switch.
    """

    def __init__(
        self,
        host: str,
        name: str,
        flags: Optional[LogConfig] = None,
        *,
        base_logger: Optional[logging.Logger] = None,
    ) -> None:
        self._flags = flags or LogConfig()
        self._adapter = logging.LoggerAdapter(base_logger or logger, {"device": name, "host": host})
        self._prefix = f"Device: {host} {name}, "
        self.history: List[Notification] = []

    @classmethod
    def for_device(cls, config: DeviceConfig) -> "DeviceEventLog":
        return cls(config.host, config.name, config.log)

    @property
    def debug_enabled(self) -> bool:
        return self._flags.debug

    def success(self, message: str) -> None:
        if self._flags.success:
            self._emit("success", SUCCESS, message)

    def info(self, message: str) -> None:
        if self._flags.info:
            self._emit("info", logging.INFO, message)

    def dev_info(self, message: str) -> None:
        if self._flags.device_info:
            self._emit("dev_info", logging.INFO, message)

    def warn(self, message: str) -> None:
        if self._flags.warn:
            self._emit("warn", logging.WARNING, message)

    def error(self, message: str) -> None:
        if self._flags.error:
            self._emit("error", logging.ERROR, message)

    def debug(self, message: str) -> None:
        if self._flags.debug:
            self._emit("debug", logging.DEBUG, message)

    def _emit(self, level: str, levelno: int, message: str) -> None:
        self.history.append(Notification(level=level, message=message))
        del self.history[:-100]
        self._adapter.log(levelno, "%s%s", self._prefix, message)

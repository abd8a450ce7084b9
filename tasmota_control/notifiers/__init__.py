"""Device event notifications."""

from .event_log import SUCCESS, DeviceEventLog, Notification

__all__ = ["SUCCESS", "DeviceEventLog", "Notification"]

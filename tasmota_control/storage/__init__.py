"""Persistent device state."""

from .setpoints import SetpointError, SetpointStore

__all__ = ["SetpointError", "SetpointStore"]

"""Accessory representation and publish sinks."""

from .model import Accessory, Category, Characteristic, Service, ServiceType, accessory_uuid
from .sink import AccessorySink, JsonLinesSink, MemorySink

__all__ = [
    "Accessory",
    "AccessorySink",
    "Category",
    "Characteristic",
    "JsonLinesSink",
    "MemorySink",
    "Service",
    "ServiceType",
    "accessory_uuid",
]

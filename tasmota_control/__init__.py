"""Tasmota device bridge: bootstrap, poll and publish Tasmota devices."""

from .cli import main as cli_main
from .config_loader import load_config

__all__ = [
    "cli_main",
    "load_config",
    "accessories",
    "collectors",
    "config",
    "devices",
    "notifiers",
    "services",
    "storage",
]

"""Command line entry point for the Tasmota bridge."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from .accessories import JsonLinesSink
from .collectors import TasmotaClient, TasmotaError, fetch_device_info
from .config import BridgeConfig
from .config_loader import load_config
from .notifiers import SUCCESS
from .services import BridgeService

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tasmota bridge CLI")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"],
        help="Minimum level written to stderr (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser(
        "run",
        help="Bootstrap every configured device and poll it until interrupted",
    )
    run.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )

    info = sub.add_parser(
        "info",
        help="Query each device once and print its identity",
    )
    info.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )
    info.add_argument(
        "--device",
        help="Only query the device with this name",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "run":
        return _command_run(args)
    if args.command == "info":
        return _command_info(args)

    parser.error("unknown command")
    return 1


def _configure_logging(level: str) -> None:
    numeric = SUCCESS if level == "SUCCESS" else getattr(logging, level)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, stream=sys.stderr)


def _command_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if not config.devices:
        print("No devices configured", file=sys.stderr)
        return 1

    service = BridgeService(config, JsonLinesSink())
    try:
        asyncio.run(service.run_forever())
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        print("Interrupted, shutting down...", file=sys.stderr)
    return 0


def _command_info(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    devices = [device for device in config.devices if args.device in (None, device.name)]
    if not devices:
        print(f"Unknown device: {args.device}", file=sys.stderr)
        return 1

    output = asyncio.run(_collect_info(config, [device.name for device in devices]))
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0 if all("error" not in entry for entry in output["devices"]) else 2


async def _collect_info(config: BridgeConfig, names: Sequence[str]) -> Dict[str, Any]:
    output: Dict[str, Any] = {"devices": []}
    for device in config.devices:
        if device.name not in names:
            continue
        entry: Dict[str, Any] = {"name": device.name, "host": device.host}
        async with TasmotaClient(device) as client:
            try:
                info = await fetch_device_info(
                    client, device.name, load_name_from_device=device.load_name_from_device
                )
            except TasmotaError as exc:
                entry["error"] = str(exc)
            else:
                entry.update(info.to_dict())
        output["devices"].append(entry)
    return output


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

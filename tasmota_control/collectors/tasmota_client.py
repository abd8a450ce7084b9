"""HTTP client that talks to the Tasmota ``/cm`` command endpoint."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from tasmota_control.config import DeviceConfig

COMMAND_ENDPOINT = "/cm"

STATUS = "Status 0"
POWER_STATUS = "Power0"
POWER = "Power"
POWER_ON = "Power on"
POWER_OFF = "Power off"
DIMMER = "Dimmer"
COLOR_TEMPERATURE = "CT"
HSB_HUE = "HSBColor1"
HSB_SATURATION = "HSBColor2"
FAN_SPEED = "FanSpeed"


class TasmotaError(RuntimeError):
    """Generic Tasmota communication error."""


class TasmotaAuthenticationError(TasmotaError):
    """Raised when the device rejects the configured credentials."""


def power_command(relay: int, relays_count: int, state: bool) -> str:
    """Return the ``Power`` command switching ``relay`` (1-based) on or off."""

    if relays_count == 1:
        return POWER_ON if state else POWER_OFF
    return f"{POWER}{relay} {'on' if state else 'off'}"


def power_key(relay: int, relays_count: int) -> str:
    """Return the ``Power0`` response key describing ``relay`` (1-based)."""

    return "POWER" if relays_count == 1 else f"POWER{relay}"


class TasmotaClient:
    """Thin async wrapper around ``http://<host>/cm?cmnd=...``.

    Every Tasmota command is a ``GET`` request carrying the command text in the
    ``cmnd`` query parameter; web credentials, when configured, travel as the
    ``user`` and ``password`` parameters.  Responses are JSON objects.
    """

    def __init__(
        self,
        config: DeviceConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        host = config.host.strip().rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        params: Dict[str, str] = {}
        if config.auth is not None:
            params = {"user": config.auth.user, "password": config.auth.password}
        self._client = httpx.AsyncClient(
            base_url=host,
            params=params,
            timeout=config.request_timeout,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def host(self) -> str:
        return self._config.host

    # ------------------------------------------------------------------
    # Public API
    async def status(self) -> Dict[str, Any]:
        """Return the full ``Status 0`` document."""

        return await self.command(STATUS)

    async def power_status(self) -> Dict[str, Any]:
        """Return the ``Power0`` document (``{"POWER1": "ON", ...}``)."""

        return await self.command(POWER_STATUS)

    async def command(self, cmnd: str) -> Dict[str, Any]:
        """Send ``cmnd`` and return the decoded JSON payload."""

        try:
            response = await self._client.get(COMMAND_ENDPOINT, params={"cmnd": cmnd})
        except httpx.HTTPError as exc:
            raise TasmotaError(f"{cmnd}: {exc}") from exc
        self._validate_response(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TasmotaError(f"{cmnd}: invalid JSON response") from exc
        if not isinstance(payload, dict):
            raise TasmotaError("unexpected payload type from device")
        if "need user" in str(payload.get("WARNING", "")).lower():
            raise TasmotaAuthenticationError(str(payload["WARNING"]))
        return payload

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""

        await self._client.aclose()

    async def __aenter__(self) -> "TasmotaClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    @staticmethod
    def _validate_response(response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise TasmotaAuthenticationError(f"HTTP {response.status_code}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TasmotaError(str(exc)) from exc

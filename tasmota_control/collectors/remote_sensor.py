"""Client for an external temperature source."""
from __future__ import annotations

from typing import Any, Optional

import httpx

from tasmota_control.config import RemoteSensorConfig


class RemoteSensorError(RuntimeError):
    """Raised when the remote sensor cannot be read."""


class RemoteTemperatureClient:
    """Read a temperature from a plain HTTP endpoint.

    The endpoint may answer with a bare number (``"21.5"``) or with a JSON
    object carrying a ``temperature`` or ``Temperature`` field.
    """

    def __init__(
        self,
        config: RemoteSensorConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        auth = None
        if config.auth is not None:
            auth = httpx.BasicAuth(config.auth.user, config.auth.password)
        self._url = config.url
        self._client = httpx.AsyncClient(
            timeout=config.request_timeout,
            auth=auth,
            follow_redirects=True,
            transport=transport,
        )

    async def read(self) -> float:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RemoteSensorError(str(exc)) from exc
        return self._parse(response)

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _parse(response: httpx.Response) -> float:
        text = response.text.strip()
        value: Any = text
        if text.startswith("{"):
            try:
                payload = response.json()
            except ValueError as exc:
                raise RemoteSensorError("invalid JSON response") from exc
            value = payload.get("temperature", payload.get("Temperature"))
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise RemoteSensorError(f"not a temperature: {text!r}") from exc

from __future__ import annotations

import math
from typing import Any, Dict

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the level monitor service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_level(self, level: float) -> Dict[str, Any]:
        if not math.isfinite(level):
            raise typer.BadParameter(f"Level must be a finite number, got {level}.")
        try:
            response = self._client.post("/api", json={"level": level})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if not isinstance(payload, dict) or payload.get("status") != "success":
            raise typer.BadParameter("Unexpected response payload when sending level.")
        return payload

    def get_latest_level(self) -> float:
        try:
            response = self._client.get("/api/level")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            raise typer.BadParameter("Unexpected response payload when fetching level.")
        return float(payload)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_transport_error(exc: httpx.HTTPError) -> None:
        typer.secho(f"Could not reach service: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

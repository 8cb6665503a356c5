from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the report service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_report(self, day_offset: Optional[int] = None, target_date: Optional[date] = None) -> Dict[str, Any]:
        try:
            response = self._client.get("/reports/daily", params=self._params(day_offset, target_date))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def send_report(self, day_offset: Optional[int] = None, target_date: Optional[date] = None) -> Dict[str, Any]:
        try:
            response = self._client.post(
                "/reports/daily/send", params=self._params(day_offset, target_date)
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _params(day_offset: Optional[int], target_date: Optional[date]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if day_offset is not None:
            params["day_offset"] = day_offset
        if target_date is not None:
            params["date"] = target_date.isoformat()
        return params

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

from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _describe_reading(reading: Dict[str, Any] | None) -> str:
    if not reading:
        return "-"
    return f"{reading.get('value')} @ {reading.get('timestamp')}"


def render_result(payload: Dict[str, Any]) -> None:
    echo_heading("Production Result")
    echo_key_values(
        [
            ("window_label", payload.get("window_label")),
            ("window", f"[{payload.get('window_start')}, {payload.get('window_end')})"),
            ("status", payload.get("status")),
            ("delta", payload.get("delta")),
            ("reading_count_in_window", payload.get("reading_count_in_window")),
            ("used_fallback", payload.get("used_fallback")),
        ]
    )

    typer.echo()
    echo_heading("Boundary Readings")
    echo_key_values(
        [
            ("first_reading", _describe_reading(payload.get("first_reading"))),
            ("last_reading", _describe_reading(payload.get("last_reading"))),
        ]
    )

    verified = payload.get("verified_delta")
    if verified is not None:
        echo_key_values([("verified_delta", verified)])

    malformed = payload.get("malformed_count") or 0
    if malformed:
        echo_key_values([("malformed_count", malformed)])

    warning = payload.get("warning")
    if warning:
        typer.echo()
        typer.secho(f"Warning: {warning}", fg=typer.colors.YELLOW)

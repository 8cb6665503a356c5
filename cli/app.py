from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_result
from logging_config import configure_logging
from notify.mailer import NotificationError
from notify.render import render_html
from services.report import build_default_service
from services.window import InvalidWindow
from settings import get_settings, missing_notification_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for computing and sending daily production reports.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Report API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait for an API response.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("report")
def report_command(
    ctx: typer.Context,
    day_offset: Optional[int] = typer.Option(
        None, "--day-offset", help="Days relative to today (defaults to the server's REPORT_DAY_OFFSET)."
    ),
    target_date: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Explicit local date; overrides --day-offset."
    ),
) -> None:
    """Fetch the production figure for one day from the API."""
    state = _get_state(ctx)
    payload = state.client.get_report(day_offset=day_offset, target_date=_as_date(target_date))
    render_result(payload)


@app.command("send")
def send_command(
    ctx: typer.Context,
    day_offset: Optional[int] = typer.Option(
        None, "--day-offset", help="Days relative to today (defaults to the server's REPORT_DAY_OFFSET)."
    ),
    target_date: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Explicit local date; overrides --day-offset."
    ),
) -> None:
    """Ask the API to compute and email the report for one day."""
    state = _get_state(ctx)
    payload = state.client.send_report(day_offset=day_offset, target_date=_as_date(target_date))
    typer.secho(f"Report for {payload.get('window_label')} sent.", fg=typer.colors.GREEN)
    render_result(payload)


@app.command("run")
def run_command(
    day_offset: Optional[int] = typer.Option(
        None, "--day-offset", help="Days relative to today (defaults to REPORT_DAY_OFFSET)."
    ),
    target_date: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Explicit local date; overrides --day-offset."
    ),
    send: bool = typer.Option(False, "--send/--no-send", help="Email the result after computing it."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", dir_okay=False, help="Also write the HTML report to this file."
    ),
) -> None:
    """Compute the report locally against the configured reading store."""
    configure_logging()
    settings = get_settings()
    if send:
        missing = missing_notification_settings(settings)
        if missing:
            typer.secho(f"Missing required settings: {', '.join(missing)}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    service = build_default_service()
    try:
        result = service.compute(day_offset=day_offset, target_date=_as_date(target_date))
    except InvalidWindow as exc:
        typer.secho(f"Invalid report window: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    render_result(result.model_dump(mode="json"))

    if output is not None:
        try:
            output.write_text(render_html(result, settings.timezone_offset_seconds), encoding="utf-8")
        except OSError as exc:
            typer.secho(f"Could not write report to {output}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        typer.secho(f"HTML report written to {output}", fg=typer.colors.GREEN)

    if not send:
        return
    if service.notifier is None:
        typer.secho("No notifier configured.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    try:
        service.notifier.send(result)
    except NotificationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho(f"Report for {result.window_label} sent.", fg=typer.colors.GREEN)

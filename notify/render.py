"""Jinja2 rendering of production results for email delivery."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.schemas import ProductionResult

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_environment = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    keep_trailing_newline=True,
)


def format_offset(offset_seconds: int) -> str:
    sign = "-" if offset_seconds < 0 else "+"
    hours, remainder = divmod(abs(offset_seconds), 3600)
    return f"{sign}{hours:02d}:{remainder // 60:02d}"


def format_local_time(timestamp: int, offset_seconds: int) -> str:
    return datetime.fromtimestamp(timestamp + offset_seconds, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


_environment.filters["local_time"] = format_local_time


def build_subject(result: ProductionResult) -> str:
    return f"Production Report - {result.window_label}"


def _render(template_name: str, result: ProductionResult, offset_seconds: int, generated_at: Optional[datetime]) -> str:
    template = _environment.get_template(template_name)
    stamp = generated_at or datetime.now(timezone.utc)
    return template.render(
        result=result,
        offset_label=format_offset(offset_seconds),
        offset_seconds=offset_seconds,
        generated_at=stamp.isoformat(timespec="seconds"),
    )


def render_html(
    result: ProductionResult,
    offset_seconds: int = 0,
    generated_at: Optional[datetime] = None,
) -> str:
    return _render("report.html", result, offset_seconds, generated_at)


def render_text(
    result: ProductionResult,
    offset_seconds: int = 0,
    generated_at: Optional[datetime] = None,
) -> str:
    return _render("report.txt", result, offset_seconds, generated_at)

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_READINGS_PATH_ENV = "READINGS_PATH"
_COLLECTION_ENV = "READINGS_COLLECTION"
_TZ_OFFSET_ENV = "TIMEZONE_OFFSET"
_DAY_OFFSET_ENV = "REPORT_DAY_OFFSET"
_FALLBACK_MODE_ENV = "FALLBACK_MODE"
_FALLBACK_SPAN_ENV = "FALLBACK_SPAN_HOURS"
_SMTP_HOST_ENV = "SMTP_HOST"
_SMTP_PORT_ENV = "SMTP_PORT"
_SMTP_STARTTLS_ENV = "SMTP_STARTTLS"
_SENDER_ENV = "SENDER_EMAIL"
_RECIPIENT_ENV = "RECIPIENT_EMAIL"
_PASSWORD_ENV = "SMTP_PASSWORD"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_FALLBACK_MODES = {"off", "bounded", "latest"}
_OFFSET_PATTERN = re.compile(r"^([+-]?)(\d{1,2}):?(\d{2})$")


@dataclass(frozen=True)
class Settings:
    readings_path: Optional[str]
    readings_collection: str
    timezone_offset_seconds: int
    day_offset: int
    fallback_mode: str
    fallback_span_seconds: int
    smtp_host: str
    smtp_port: int
    smtp_starttls: bool
    sender_email: Optional[str]
    recipient_email: Optional[str]
    smtp_password: Optional[str]
    log_level: str


def parse_utc_offset(value: str) -> int:
    """Convert ``+05:30``, ``-0800``, ``Z`` or fractional hours (``5.5``) to seconds."""
    candidate = value.strip()
    if candidate.upper() in {"Z", "UTC"}:
        return 0
    match = _OFFSET_PATTERN.match(candidate)
    if match:
        sign, hours, minutes = match.groups()
        if int(minutes) >= 60:
            raise ValueError(f"Invalid minutes in UTC offset {value!r}")
        seconds = int(hours) * 3600 + int(minutes) * 60
        return -seconds if sign == "-" else seconds
    try:
        hours_float = float(candidate)
    except ValueError as exc:
        raise ValueError(f"Unrecognised UTC offset {value!r}") from exc
    return int(round(hours_float * 3600))


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    if minimum is not None and parsed < minimum:
        return default
    return parsed


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_timezone_offset(default: int) -> int:
    value = os.getenv(_TZ_OFFSET_ENV)
    if value is None or not value.strip():
        return default
    try:
        parsed = parse_utc_offset(value)
    except ValueError:
        return default
    return parsed if abs(parsed) <= 86400 else default


def _read_fallback_mode(default: str) -> str:
    value = os.getenv(_FALLBACK_MODE_ENV)
    if value is None:
        return default
    candidate = value.strip().lower()
    return candidate if candidate in _FALLBACK_MODES else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        readings_path=_read_optional_env(_READINGS_PATH_ENV, "./tmp/readings.json"),
        readings_collection=_read_str_env(_COLLECTION_ENV, "production"),
        timezone_offset_seconds=_read_timezone_offset(0),
        day_offset=_read_int_env(_DAY_OFFSET_ENV, -1),
        fallback_mode=_read_fallback_mode("bounded"),
        fallback_span_seconds=_read_int_env(_FALLBACK_SPAN_ENV, 24, minimum=1) * 3600,
        smtp_host=_read_str_env(_SMTP_HOST_ENV, "smtp.gmail.com"),
        smtp_port=_read_int_env(_SMTP_PORT_ENV, 465, minimum=1),
        smtp_starttls=_read_bool_env(_SMTP_STARTTLS_ENV, False),
        sender_email=_read_optional_env(_SENDER_ENV, None),
        recipient_email=_read_optional_env(_RECIPIENT_ENV, None),
        smtp_password=_read_optional_env(_PASSWORD_ENV, None),
        log_level=_read_log_level("INFO"),
    )


def missing_notification_settings(settings: Settings) -> list[str]:
    """Return the env vars that must be set before a report can be emailed."""
    missing: list[str] = []
    if not settings.sender_email:
        missing.append(_SENDER_ENV)
    if not settings.recipient_email:
        missing.append(_RECIPIENT_ENV)
    if not settings.smtp_password:
        missing.append(_PASSWORD_ENV)
    return missing

"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductionStatus(str, Enum):
    """Sufficiency classification assigned to each computed day."""

    no_data = "NO_DATA"
    single_reading = "SINGLE_READING"
    exact = "EXACT"
    fallback = "FALLBACK"


class FallbackMode(str, Enum):
    """Where boundary readings may come from when the day itself is sparse."""

    off = "off"
    bounded = "bounded"
    latest = "latest"


class ReadingOut(BaseModel):
    """A boundary reading as exposed in results."""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    value: float


class ReadingIn(BaseModel):
    """Payload for ingesting one counter reading."""

    timestamp: int = Field(..., ge=0, description="Seconds since epoch (UTC).")
    value: float = Field(..., ge=0, description="Cumulative counter value.")


class ReadingAccepted(BaseModel):
    key: str = Field(..., description="Key the reading was stored under.")


class ProductionResult(BaseModel):
    """Production figure for one local calendar day."""

    model_config = ConfigDict(frozen=True)

    window_label: str = Field(..., description="Local calendar date, YYYY-MM-DD.")
    window_start: int
    window_end: int
    status: ProductionStatus
    delta: float = 0.0
    first_reading: Optional[ReadingOut] = None
    last_reading: Optional[ReadingOut] = None
    reading_count_in_window: int = Field(default=0, ge=0)
    used_fallback: bool = False
    verified_delta: Optional[float] = Field(
        default=None,
        description="Sum of positive increments across the in-window sequence.",
    )
    warning: Optional[str] = None
    malformed_count: int = Field(default=0, ge=0)

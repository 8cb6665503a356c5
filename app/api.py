"""HTTP route definitions for the service."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import ProductionResult, ReadingAccepted, ReadingIn
from notify.mailer import NotificationError, NotifierUnavailable
from services.report import ReportService, build_default_service
from services.window import InvalidWindow

router = APIRouter()


def get_service() -> ReportService:
    return build_default_service()


def _compute(
    service: ReportService,
    day_offset: Optional[int],
    date: Optional[dt.date],
) -> ProductionResult:
    try:
        return service.compute(day_offset=day_offset, target_date=date)
    except InvalidWindow as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get(
    "/reports/daily",
    response_model=ProductionResult,
    summary="Compute production for one local calendar day.",
)
async def get_daily_report(
    day_offset: Optional[int] = Query(
        None, description="Days relative to today; defaults to REPORT_DAY_OFFSET."
    ),
    date: Optional[dt.date] = Query(None, description="Explicit local date; overrides day_offset."),
    service: ReportService = Depends(get_service),
) -> ProductionResult:
    return _compute(service, day_offset, date)


@router.post(
    "/reports/daily/send",
    response_model=ProductionResult,
    summary="Compute production for one day and email it.",
)
async def send_daily_report(
    day_offset: Optional[int] = Query(
        None, description="Days relative to today; defaults to REPORT_DAY_OFFSET."
    ),
    date: Optional[dt.date] = Query(None, description="Explicit local date; overrides day_offset."),
    service: ReportService = Depends(get_service),
) -> ProductionResult:
    try:
        return service.send(day_offset=day_offset, target_date=date)
    except InvalidWindow as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except NotifierUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except NotificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc


@router.post(
    "/readings",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingAccepted,
    summary="Record one counter reading.",
)
async def add_reading(
    reading: ReadingIn,
    service: ReportService = Depends(get_service),
) -> ReadingAccepted:
    put_record = getattr(service.store, "put_record", None)
    if put_record is None:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="The configured reading store is read-only.",
        )
    key = put_record(reading.model_dump())
    return ReadingAccepted(key=key)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}

"""FastAPI application exposing the normalization endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from voice_common import __version__
from voice_common.cache import TTLCache, cached_call
from voice_common.observability import install_request_context
from voice_common.timeutils import InvalidTimezoneError, load_zone, now_in_timezone

from .config import Settings
from .date_formatter import describe_relative_time, format_appointment_datetime, format_appointments_batch
from .dob_normalizer import DOBNormalizer
from .models import Confidence, NormalizedDateTime
from .time_normalizer import TimeNormalizer

LOGGER = structlog.get_logger(__name__)

SERVICE_NAME = "voice-normalizer"

Clock = Callable[[str], datetime]


class TimeRequestData(BaseModel):
    datetime_request: Optional[str] = None
    timezone: Optional[str] = None


class TimeParseRequest(BaseModel):
    """Body of /api/enhanced-parse-natural-time."""

    data: Optional[TimeRequestData] = None


class DOBRequestData(BaseModel):
    raw_dob: Optional[str] = None


class DOBRequest(BaseModel):
    """Accepts ``{raw_dob}`` as well as the wrapped ``{data: {raw_dob}}``."""

    raw_dob: Optional[str] = None
    data: Optional[DOBRequestData] = None

    def value(self) -> Optional[str]:
        if self.raw_dob is not None:
            return self.raw_dob
        return self.data.raw_dob if self.data else None


class DOBResponse(BaseModel):
    dob_iso: Optional[str]
    type: str


class FormatRequest(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    timezone: Optional[str] = None


class BatchFormatRequest(BaseModel):
    appointments: Optional[List[Dict[str, Any]]] = None
    timezone: Optional[str] = None


class BatchFormatResponse(BaseModel):
    formatted_appointments: List[Dict[str, Any]]
    total: int


def create_app(
    settings: Optional[Settings] = None,
    *,
    clock: Clock = now_in_timezone,
    cache: Optional[TTLCache] = None,
) -> FastAPI:
    """Build the normalizer app; ``clock`` returns "now" for an IANA zone name."""
    settings = settings or Settings()
    if cache is None and settings.cache_enabled:
        cache = TTLCache(default_ttl=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries)

    time_normalizer = TimeNormalizer()
    dob_normalizer = DOBNormalizer(settings.dob_validation_level)

    app = FastAPI(title="Voice Normalizer", version=__version__)
    install_request_context(app, SERVICE_NAME)

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        LOGGER.info("request.invalid_body", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(status_code=400, content={"detail": "Malformed request body"})

    def resolve_timezone(requested: Optional[str]) -> str:
        timezone = requested or settings.default_timezone
        try:
            load_zone(timezone)
        except InvalidTimezoneError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid timezone: {timezone}") from exc
        return timezone

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "healthy", "service": SERVICE_NAME, "version": __version__}

    @app.post("/api/enhanced-parse-natural-time")
    async def parse_natural_time_endpoint(payload: TimeParseRequest) -> JSONResponse:
        text = payload.data.datetime_request if payload.data else None
        if not text or not text.strip():
            raise HTTPException(status_code=400, detail="Missing required field: data.datetime_request")
        timezone = resolve_timezone(payload.data.timezone)

        now = clock(timezone)
        # Bare clock times resolve against the current minute, so the key carries it.
        key = f"time:{timezone}:{now:%Y-%m-%dT%H:%M}:{text.strip().lower()}"
        result: NormalizedDateTime = cached_call(cache, key, lambda: time_normalizer.parse(text, timezone, now=now))

        if result.confidence.at_least(Confidence.MEDIUM):
            return JSONResponse(
                content={
                    "success": True,
                    "message": f"Successfully parsed date/time using {result.method} method.",
                    "parsed": result.to_dict(),
                }
            )

        LOGGER.info("time.parse.unresolved", confidence=result.confidence.value)
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "message": f'Could not confidently parse the date/time from input: "{text}"',
                "needs_clarification": True,
                "partial": result.to_dict() if result.confidence is Confidence.LOW else None,
            },
        )

    @app.post("/api/enhanced-dob-normalize", response_model=DOBResponse)
    async def normalize_dob_endpoint(payload: DOBRequest) -> DOBResponse:
        raw_dob = payload.value()
        if not raw_dob or not raw_dob.strip():
            raise HTTPException(status_code=400, detail="Missing required field: raw_dob")

        today = clock(settings.default_timezone).date()
        key = f"dob:{dob_normalizer.validation_level}:{today.isoformat()}:{raw_dob.strip().lower()}"
        result = cached_call(cache, key, lambda: dob_normalizer.normalize(raw_dob, today=today))
        return DOBResponse(**result.to_dict())

    @app.post("/api/format-appointment-date")
    async def format_appointment_date(payload: FormatRequest) -> Dict[str, Any]:
        if not payload.date:
            raise HTTPException(status_code=400, detail="Missing required field: date")
        timezone = resolve_timezone(payload.timezone)
        today = clock(timezone).date()
        return format_appointment_datetime(payload.date, payload.time, timezone, today=today).to_dict()

    @app.post("/api/format-appointment-dates-batch", response_model=BatchFormatResponse)
    async def format_appointment_dates_batch(payload: BatchFormatRequest) -> BatchFormatResponse:
        if payload.appointments is None:
            raise HTTPException(status_code=400, detail="Missing or invalid appointments array")
        timezone = resolve_timezone(payload.timezone)
        formatted = format_appointments_batch(payload.appointments, timezone, today=clock(timezone).date())
        return BatchFormatResponse(formatted_appointments=formatted, total=len(formatted))

    @app.post("/api/relative-time")
    async def relative_time(payload: FormatRequest) -> Dict[str, Any]:
        if not payload.date:
            raise HTTPException(status_code=400, detail="Missing required field: date")
        timezone = resolve_timezone(payload.timezone)
        described = describe_relative_time(payload.date, payload.time, timezone, now=clock(timezone))
        if described is None:
            raise HTTPException(status_code=400, detail="Invalid date format")
        return described.to_dict()

    return app

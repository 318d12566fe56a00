"""FastAPI application exposing the scheduling webhooks."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone as dt_timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import structlog
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from voice_common import __version__
from voice_common.cache import TTLCache
from voice_common.observability import install_request_context
from voice_common.timeutils import DEFAULT_TIMEZONE, InvalidTimezoneError, load_zone, now_in_timezone

from .availability import (
    NEEDS_STATE_RESPONSE,
    AvailabilityQuery,
    availability_response,
    blank_placeholders,
    is_placeholder,
    list_available_slots,
    resolve_patient_state,
    to_bool,
)
from .config import Settings
from .matcher import SlotMatcher
from .models import SchedulingPreference, ScoredSlot, TimeRange
from .signature import SIGNATURE_HEADER, SignatureVerifier
from .states import timezone_for_state
from .store import CachingSlotStore, InMemorySlotStore, SlotStore, StoreError
from .zip_lookup import lookup_zip

LOGGER = structlog.get_logger(__name__)

SERVICE_NAME = "slot-matcher"
CLIENT_CLOSED_REQUEST = 499

T = TypeVar("T")


class TimeslotData(BaseModel):
    """Voice-flow variables; several spellings are accepted for each."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    state: Optional[str] = Field(None, validation_alias=AliasChoices("state", "State"))
    state_abbreviation: Optional[str] = Field(
        None, validation_alias=AliasChoices("state_abbreviation", "state_abbr", "stateAbbr")
    )
    preferred_date: Optional[str] = Field(None, validation_alias=AliasChoices("preferred_date", "date"))
    preferred_time: Optional[str] = Field(None, validation_alias=AliasChoices("preferred_time", "time"))
    time_range: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("time_range", "timeRange"))
    timezone: Optional[str] = None


class CheckTimeslotsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: TimeslotData = Field(default_factory=TimeslotData)


class ZipData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    zip_code: Optional[Any] = Field(None, validation_alias=AliasChoices("zip_code", "zipCode"))


class ZipAvailabilityRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    data: ZipData = Field(default_factory=ZipData)


class AvailableSlotsRequest(BaseModel):
    """Flat voice-flow body; values may be unfilled ``{{placeholders}}``."""

    model_config = ConfigDict(extra="ignore")

    date: Optional[Any] = None
    days_to_check: Optional[Any] = None
    is_multi_day: Optional[Any] = None
    request_type: Optional[Any] = None
    time_of_day: Optional[Any] = None
    time_window: Optional[Any] = None
    time_filter: Optional[Any] = None
    patient_state: Optional[Any] = None
    auto_state: Optional[Any] = None
    auto_state_abbreviation: Optional[Any] = None
    patient_zipcode: Optional[Any] = None
    patient_timezone: Optional[Any] = None
    bypass_cache: Optional[Any] = None


def build_store(settings: Settings) -> SlotStore:
    """Store selected by settings, wrapped in the read-through cache when enabled."""
    if settings.store_backend == "memory":
        store: SlotStore = InMemorySlotStore()
    else:
        from .firestore_store import FirestoreSlotStore

        store = FirestoreSlotStore(
            settings.gcp_project_id,
            timeout_seconds=settings.firestore_timeout_seconds,
            max_attempts=settings.firestore_max_attempts,
        )
    if settings.cache_enabled:
        store = CachingSlotStore(store, TTLCache(default_ttl=settings.cache_ttl_seconds))
    return store


async def until_disconnect(request: Request, work: Awaitable[T], poll_seconds: float) -> Optional[T]:
    """Await ``work`` but cancel it if the caller hangs up first; None means cancelled."""
    task = asyncio.ensure_future(work)
    while True:
        done, _ = await asyncio.wait({task}, timeout=poll_seconds)
        if done:
            return task.result()
        if await request.is_disconnected():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            LOGGER.info("request.client_disconnected", path=request.url.path)
            return None


def _match_message(best: List[Dict[str, Any]]) -> str:
    if not best:
        return "No appointment slots found matching your preferences. Would you like to try different dates or times?"
    return (
        f"Found {len(best)} appointment slots matching your preferences. "
        f"The best match is on {best[0]['formatted_datetime']}."
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[SlotStore] = None,
    clock: Callable[[str], datetime] = now_in_timezone,
) -> FastAPI:
    """Build the webhook app; pass ``store`` to bypass Firestore."""
    settings = settings or Settings()
    slot_store = store if store is not None else build_store(settings)
    matcher = SlotMatcher(
        slot_store,
        collection=settings.slots_collection,
        fallback_page_size=settings.fallback_page_size,
        summary_page_size=settings.summary_page_size,
        range_page_size=settings.range_page_size,
        clock=clock,
    )
    verifier = SignatureVerifier(settings.webhook_secret_value, skip=settings.skip_signature_validation)

    app = FastAPI(title="Slot Matcher", version=__version__)
    install_request_context(app, SERVICE_NAME)

    @app.exception_handler(StoreError)
    async def store_failure(request: Request, exc: StoreError) -> JSONResponse:
        LOGGER.error("store.unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "Appointment data is temporarily unavailable",
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    async def read_verified_body(request: Request) -> bytes:
        body = await request.body()
        if not verifier.verify(body, request.headers.get(SIGNATURE_HEADER)):
            LOGGER.warning("webhook.signature.invalid", path=request.url.path)
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        return body

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "timestamp": datetime.now(tz=dt_timezone.utc).isoformat(),
        }

    @app.post("/webhook/check-timeslots")
    async def check_timeslots(request: Request) -> Any:
        body = await read_verified_body(request)
        try:
            payload = CheckTimeslotsRequest.model_validate_json(body or b"{}")
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="Malformed request body") from exc

        data = payload.data
        if not data.state and not data.state_abbreviation:
            LOGGER.info("timeslots.missing_state")
            raise HTTPException(status_code=400, detail="No state information provided")

        timezone = data.timezone or DEFAULT_TIMEZONE
        try:
            load_zone(timezone)
        except InvalidTimezoneError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid timezone: {timezone}") from exc

        preferences = SchedulingPreference(
            date=data.preferred_date,
            time=data.preferred_time,
            time_range=TimeRange.from_payload(data.time_range),
            timezone=timezone,
        )
        LOGGER.info(
            "timeslots.request",
            state=data.state,
            state_abbreviation=data.state_abbreviation,
            date=preferences.date,
            time=preferences.time,
        )

        best = await until_disconnect(
            request,
            matcher.find_best_slots(data.state, data.state_abbreviation, preferences, settings.max_results),
            settings.disconnect_poll_seconds,
        )
        if best is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        return timeslots_response(best, timezone)

    @app.post("/webhook/zipcode-availability")
    async def zipcode_availability(request: Request) -> Any:
        body = await read_verified_body(request)
        try:
            payload = ZipAvailabilityRequest.model_validate_json(body or b"{}")
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="Malformed request body") from exc

        if payload.action != "validate_zipcode":
            raise HTTPException(status_code=400, detail="Unsupported action, use action=validate_zipcode")

        zip_code = str(payload.data.zip_code or "").strip()
        info = await lookup_zip(slot_store, zip_code)
        if info is None:
            return {
                "zip_code": zip_code,
                "valid": False,
                "zip_valid": False,
                "message": "ZIP code not found",
                "extraction_variables": {"has_availability": False, "total_appointments": 0},
            }

        summary = await until_disconnect(
            request,
            matcher.summarize_availability(info.state, info.state_abbreviation, info.timezone),
            settings.disconnect_poll_seconds,
        )
        if summary is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        return {
            **info.to_dict(),
            "valid": True,
            "zip_valid": True,
            "days_available": summary.days_available,
            "available_slots": list(summary.available_slots),
            "message": (
                f"Found availability on {summary.days_available} day(s)."
                if summary.days_available
                else "No availability found."
            ),
            "extraction_variables": {
                "city": info.city,
                "state": info.state,
                "total_appointments": summary.total_appointments,
                "has_availability": summary.has_availability,
            },
        }

    @app.post("/api/available-slots")
    async def available_slots(request: Request) -> Any:
        body = await request.body()
        try:
            payload = AvailableSlotsRequest.model_validate_json(body or b"{}")
        except ValidationError:
            try:
                payload = AvailableSlotsRequest.model_validate_json(blank_placeholders(body))
            except ValidationError as exc:
                raise HTTPException(status_code=400, detail="Malformed request body") from exc

        state = await resolve_patient_state(
            slot_store,
            payload.patient_state,
            payload.auto_state,
            payload.auto_state_abbreviation,
            payload.patient_zipcode,
        )
        if state is None:
            LOGGER.info("availability.missing_state")
            return dict(NEEDS_STATE_RESPONSE)

        query = AvailabilityQuery.from_fields(
            date=payload.date,
            days_to_check=payload.days_to_check,
            is_multi_day=payload.is_multi_day,
            request_type=payload.request_type,
            time_of_day=payload.time_of_day,
            time_window=payload.time_window,
            time_filter=payload.time_filter,
        )
        if not query.dates:
            raise HTTPException(status_code=400, detail="No valid dates to check")

        timezone = payload.patient_timezone
        if not isinstance(timezone, str) or not timezone.strip() or is_placeholder(timezone):
            timezone = timezone_for_state(state)
        try:
            load_zone(timezone)
        except InvalidTimezoneError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid timezone: {timezone}") from exc

        LOGGER.info(
            "availability.request",
            state=state,
            dates=list(query.dates),
            time_of_day=query.time_of_day,
            bypass_cache=to_bool(payload.bypass_cache),
        )
        slots = await until_disconnect(
            request,
            list_available_slots(matcher, state, query, timezone, fresh=to_bool(payload.bypass_cache)),
            settings.disconnect_poll_seconds,
        )
        if slots is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        return availability_response(slots, state, timezone, query)

    return app


def timeslots_response(best: List[ScoredSlot], timezone: str) -> Dict[str, Any]:
    """Webhook body for ranked slots; ``extraction_variables`` feed the voice flow."""
    slots = [scored.to_dict(timezone) for scored in best]
    top = slots[0] if slots else {}
    return {
        "success": bool(slots),
        "has_slots": bool(slots),
        "total_matches": len(slots),
        "best_slots": slots,
        "message": _match_message(slots),
        "extraction_variables": {
            "matches_found": len(slots),
            "best_match_date": top.get("date"),
            "best_match_time": top.get("time"),
            "best_match_formatted": top.get("formatted_datetime"),
            "has_slots": bool(slots),
        },
    }

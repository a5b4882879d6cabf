"""System endpoints for health checks, status and public configuration."""

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends  # type: ignore[import-untyped]

from kimai import __version__
from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_config, get_dispatcher, get_storage
from kimai.api.models import HealthResponse, StatusResponse, VersionResponse
from kimai.core.config import ConfigManager
from kimai.core.models import User
from kimai.core.storage import StorageManager
from kimai.events import CalendarConfigurationEvent, EventDispatcher

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()

CALENDAR_DEFAULTS: dict[str, Any] = {
    "business_days": [1, 2, 3, 4, 5],
    "business_time_begin": "08:00",
    "business_time_end": "20:00",
    "day_limit": 4,
    "show_week_numbers": True,
    "show_weekends": True,
    "slot_duration": "00:30:00",
    "timeframe_begin": "00:00",
    "timeframe_end": "23:59",
}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint.

    Note:
        This endpoint is public (no authentication required).
        Use this for monitoring and load balancer health checks.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get("/ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}


@router.get("/version", response_model=VersionResponse)
async def get_version() -> VersionResponse:
    return VersionResponse(
        version=__version__,
        copyright=f"Kimai {__version__} by Kevin Papst and contributors.",
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(
    config: ConfigManager = Depends(get_config),
    storage: StorageManager = Depends(get_storage),
    _: User = Depends(get_current_user),
) -> StatusResponse:
    """Get system status.

    Args:
        config: Configuration manager (injected)
        storage: Storage manager instance (injected)
        _: Current user (injected)
    """
    return StatusResponse(
        api_enabled=config.get("api.enabled", False),
        authentication_enabled=config.get("api.authentication.enabled", True),
        cors_enabled=config.get("api.cors.enabled", True),
        active_timesheets=len(storage.get_active_timesheets()),
        uptime_seconds=time.time() - _server_start_time,
    )


@router.get("/config/timesheet")
async def get_timesheet_config(
    config: ConfigManager = Depends(get_config),
    _: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Tracking settings clients need to render timesheet forms."""
    return {
        "tracking_mode": config.get("timesheet.mode", "default"),
        "default_begin_time": config.get("timesheet.default_begin", "08:00"),
        "active_entries_hard_limit": config.get("timesheet.active_entries.hard_limit", 1),
        "is_allow_future_times": config.get("timesheet.rules.allow_future_times", True),
        "is_allow_zero_duration": config.get("timesheet.rules.allow_zero_duration", False),
        "meta_fields": config.get("timesheet.meta_fields") or [],
    }


@router.get("/config/calendar")
async def get_calendar_config(
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Calendar settings after listeners had the chance to change them."""
    event = CalendarConfigurationEvent(CALENDAR_DEFAULTS)
    dispatcher.dispatch(event)
    return event.get_configuration()

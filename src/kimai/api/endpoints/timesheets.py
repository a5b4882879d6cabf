"""Timesheet endpoints.

Collection filtering, CRUD and the record actions (stop, restart,
duplicate, export, meta fields).
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import (  # type: ignore[import-untyped]
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Response,
    status,
)

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_timesheet_service
from kimai.api.models import (
    MetaFieldRequest,
    RestartRequest,
    StopRequest,
    TimesheetCreateRequest,
    TimesheetResponse,
    TimesheetUpdateRequest,
    naive_utc,
)
from kimai.core.exceptions import AccessDeniedError
from kimai.core.models import Timesheet, User
from kimai.core.queries import TimesheetQuery
from kimai.core.security import has_permission, is_granted
from kimai.timesheet.service import TimesheetService
from kimai.utils.duration import parse_duration_string

router = APIRouter()


def _to_data(request: Any) -> dict[str, Any]:
    """Submitted fields only; string durations are parsed into seconds."""
    data: dict[str, Any] = request.model_dump(exclude_unset=True)
    duration = data.get("duration")
    if isinstance(duration, str):
        data["duration"] = parse_duration_string(duration)
    return data


def _response(service: TimesheetService, timesheet: Timesheet, full: bool = False) -> TimesheetResponse:
    if not full:
        return TimesheetResponse.from_timesheet(timesheet)
    storage = service.storage
    project = storage.get_project(timesheet.project_id)
    return TimesheetResponse.from_timesheet(
        timesheet,
        user=storage.get_user(timesheet.user_id),
        project=project,
        activity=storage.get_activity(timesheet.activity_id),
        customer=storage.get_customer(project.customer_id) if project else None,
    )


def _get_visible(service: TimesheetService, user: User, timesheet_id: int) -> Timesheet:
    timesheet = service.get(timesheet_id)
    if not is_granted(user, "view", timesheet):
        raise AccessDeniedError("Access denied.")
    return timesheet


def _state(flag: Optional[bool], when_true: int, when_false: int) -> int:
    if flag is None:
        return TimesheetQuery.STATE_ALL
    return when_true if flag else when_false


@router.get("/", response_model=list[TimesheetResponse])
async def list_timesheets(
    response: Response,
    user: Optional[str] = Query(None, description='User ID or "all" (needs view_other_timesheet)'),
    customer: Optional[int] = Query(None, description="Customer ID"),
    customers: list[int] = Query([], description="Customer IDs"),
    project: Optional[int] = Query(None, description="Project ID"),
    projects: list[int] = Query([], description="Project IDs"),
    activity: Optional[int] = Query(None, description="Activity ID"),
    activities: list[int] = Query([], description="Activity IDs"),
    page: int = Query(1, ge=1, description="Page to display"),
    size: int = Query(50, ge=1, le=1000, description="Number of records per page"),
    tags: Optional[str] = Query(None, description="Comma separated list of tags"),
    order_by: Optional[str] = Query(None, alias="orderBy", description="id, begin, end or rate"),
    order: Optional[str] = Query(None, description="ASC or DESC"),
    begin: Optional[datetime] = Query(None, description="Records starting at or after"),
    end: Optional[datetime] = Query(None, description="Records starting at or before"),
    exported: Optional[bool] = Query(None, description="Filter by export state"),
    active: Optional[bool] = Query(None, description="Running (true) or stopped (false)"),
    billable: Optional[bool] = Query(None, description="Filter by billable flag"),
    full: bool = Query(False, description="Include user, project, activity and customer names"),
    term: Optional[str] = Query(None, description="Free text search"),
    modified_after: Optional[datetime] = Query(None, description="Only records changed after"),
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> list[TimesheetResponse]:
    """List timesheets with filtering, sorting and pagination.

    Pagination data is returned in the X-Page, X-Total-Count, X-Total-Pages
    and X-Per-Page headers.
    """
    query = TimesheetQuery()
    if user == "all":
        query.users = []
    elif user:
        try:
            query.users = [int(user)]
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid user: {user}")
        if query.users != [current_user.id] and not has_permission(current_user, "view_other_timesheet"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
    else:
        query.users = [current_user.id] if current_user.id is not None else []

    query.customers = customers + ([customer] if customer is not None else [])
    query.projects = projects + ([project] if project is not None else [])
    query.activities = activities + ([activity] if activity is not None else [])
    query.set_page(page)
    query.set_page_size(size)
    query.set_order_by(order_by)
    query.set_order(order)
    query.begin = naive_utc(begin)
    query.end = naive_utc(end)
    query.set_export_state(_state(exported, TimesheetQuery.STATE_EXPORTED, TimesheetQuery.STATE_NOT_EXPORTED))
    query.set_state(_state(active, TimesheetQuery.STATE_RUNNING, TimesheetQuery.STATE_STOPPED))
    query.set_billable(_state(billable, TimesheetQuery.STATE_BILLABLE, TimesheetQuery.STATE_NOT_BILLABLE))
    if tags:
        query.tags = [t.strip() for t in tags.split(",") if t.strip()]
    query.search_term = term or None
    query.modified_after = naive_utc(modified_after)

    result = service.search(current_user, query)

    response.headers["X-Page"] = str(result.page)
    response.headers["X-Total-Count"] = str(result.total)
    response.headers["X-Total-Pages"] = str(result.page_count)
    response.headers["X-Per-Page"] = str(result.page_size)

    return [_response(service, t, full) for t in result.items]


@router.get("/recent", response_model=list[TimesheetResponse])
async def recent_timesheets(
    begin: Optional[datetime] = Query(None, description="Only records starting after"),
    size: Optional[int] = Query(None, ge=1, le=100, description="Maximum number of records"),
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> list[TimesheetResponse]:
    """Latest record of each project/activity combination of the current user."""
    return [_response(service, t, True) for t in service.recent(current_user, naive_utc(begin), size)]


@router.get("/active", response_model=list[TimesheetResponse])
async def active_timesheets(
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> list[TimesheetResponse]:
    return [_response(service, t, True) for t in service.active(current_user)]


@router.get("/{timesheet_id}", response_model=TimesheetResponse)
async def get_timesheet(
    timesheet_id: int,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    return _response(service, _get_visible(service, current_user, timesheet_id), True)


@router.post("/", response_model=TimesheetResponse, status_code=status.HTTP_201_CREATED)
async def create_timesheet(
    request: TimesheetCreateRequest,
    full: bool = Query(False, description="Include related names"),
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    """Record a new timesheet; without end (or duration) it keeps running.

    Example:
        >>> POST /api/timesheets
        {"project": 1, "activity": 2, "begin": "2024-03-01T08:00:00", "duration": "1:30"}
    """
    timesheet = service.create(current_user, _to_data(request))
    return _response(service, timesheet, full)


@router.patch("/{timesheet_id}", response_model=TimesheetResponse)
async def update_timesheet(
    timesheet_id: int,
    request: TimesheetUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    timesheet = service.get(timesheet_id)
    updated = service.update(current_user, timesheet, _to_data(request))
    return _response(service, updated)


@router.delete("/{timesheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timesheet(
    timesheet_id: int,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> Response:
    service.delete(current_user, service.get(timesheet_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{timesheet_id}/stop", response_model=TimesheetResponse)
async def stop_timesheet(
    timesheet_id: int,
    request: Optional[StopRequest] = None,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    end = request.end if request else None
    return _response(service, service.stop(current_user, service.get(timesheet_id), end))


@router.patch("/{timesheet_id}/restart", response_model=TimesheetResponse)
async def restart_timesheet(
    timesheet_id: int,
    request: Optional[RestartRequest] = None,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    """Start a new record with the project and activity of an existing one."""
    begin = request.begin if request else None
    copy = request.copy_fields if request else None
    timesheet = service.restart(current_user, service.get(timesheet_id), begin=begin, copy=copy)
    return _response(service, timesheet)


@router.patch("/{timesheet_id}/duplicate", response_model=TimesheetResponse)
async def duplicate_timesheet(
    timesheet_id: int,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    return _response(service, service.duplicate(current_user, service.get(timesheet_id)))


@router.patch("/{timesheet_id}/export", response_model=TimesheetResponse)
async def export_timesheet(
    timesheet_id: int,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    """Toggle the export state."""
    return _response(service, service.toggle_export(current_user, service.get(timesheet_id)))


@router.patch("/{timesheet_id}/meta", response_model=TimesheetResponse)
async def set_timesheet_meta(
    timesheet_id: int,
    request: MetaFieldRequest,
    current_user: User = Depends(get_current_user),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    timesheet = service.set_meta(current_user, service.get(timesheet_id), request.name, request.value)
    return _response(service, timesheet)

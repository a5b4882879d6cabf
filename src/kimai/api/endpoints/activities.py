"""Activity endpoints.

The detail endpoint lets event listeners add extra sections to the
activity page.
"""

import dataclasses
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_dispatcher, get_storage
from kimai.api.models import ActivityRequest, ActivityResponse
from kimai.core.exceptions import ValidationError
from kimai.core.models import Activity, User
from kimai.core.queries import ActivityQuery
from kimai.core.security import deny_access_unless_granted
from kimai.core.storage import StorageManager
from kimai.events import ActivityDetailControllerEvent, EventDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_activity(storage: StorageManager, activity_id: int) -> Activity:
    activity = storage.get_activity(activity_id)
    if activity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Activity {activity_id} not found"
        )
    return activity


def _values(request: ActivityRequest, exclude_unset: bool) -> dict:
    data = request.model_dump(exclude_unset=exclude_unset, exclude_none=not exclude_unset)
    if "project" in data:
        data["project_id"] = data.pop("project")
    return data


@router.get("/", response_model=list[ActivityResponse])
async def list_activities(
    project: Optional[int] = Query(None, description="Project ID, global activities are included"),
    projects: list[int] = Query([], description="Project IDs"),
    globals_only: bool = Query(False, alias="globals", description="Only global activities"),
    visible: int = Query(1, description="1 = visible, 2 = hidden, 3 = both"),
    term: Optional[str] = Query(None, description="Free text search"),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    order: Optional[str] = Query(None, description="ASC or DESC"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> list[ActivityResponse]:
    deny_access_unless_granted(current_user, "view_activity")
    query = ActivityQuery()
    query.set_visibility(visible)
    query.set_exclusive_visibility(query.visibility == ActivityQuery.SHOW_VISIBLE)
    query.projects = projects + ([project] if project is not None else [])
    query.globals_only = globals_only
    query.set_order_by(order_by or "name")
    query.set_order(order)
    query.search_term = term
    owners = {p.id: p for p in storage.load_projects() if p.id is not None}
    return [ActivityResponse.from_activity(a) for a in query.apply(storage.load_activities(), owners)]


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> ActivityResponse:
    deny_access_unless_granted(current_user, "view_activity")
    activity = _get_activity(storage, activity_id)
    event = ActivityDetailControllerEvent(activity)
    dispatcher.dispatch(event)
    return ActivityResponse.from_activity(activity, event.get_controllers())


@router.post("/", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    request: ActivityRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> ActivityResponse:
    """Create an activity; without project it is global."""
    deny_access_unless_granted(current_user, "edit_activity")
    data = _values(request, exclude_unset=False)
    if not data.get("name"):
        raise ValidationError("Name is required.", field="name")
    if data.get("project_id") is not None and storage.get_project(data["project_id"]) is None:
        raise ValidationError("Unknown project.", field="project")
    saved = storage.save_activity(Activity(**data))
    logger.info(f"Created activity {saved.name}")
    return ActivityResponse.from_activity(saved)


@router.patch("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: int,
    request: ActivityRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> ActivityResponse:
    deny_access_unless_granted(current_user, "edit_activity")
    activity = _get_activity(storage, activity_id)
    data = _values(request, exclude_unset=True)
    if data.get("project_id") is not None and storage.get_project(data["project_id"]) is None:
        raise ValidationError("Unknown project.", field="project")
    updated = dataclasses.replace(activity, **data)
    return ActivityResponse.from_activity(storage.save_activity(updated))


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> Response:
    deny_access_unless_granted(current_user, "delete_activity")
    activity = _get_activity(storage, activity_id)
    if any(t.activity_id == activity_id for t in storage.load_timesheets()):
        raise ValidationError("Activity has timesheets and cannot be deleted", field="activity")
    storage.delete_activity(activity_id)
    logger.info(f"Deleted activity {activity.name}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

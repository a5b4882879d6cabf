"""Page actions for clients rendering the user interface."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_dispatcher, get_storage
from kimai.core.models import User
from kimai.core.storage import StorageManager
from kimai.events import EventDispatcher, PageActionsEvent

router = APIRouter()

SUPPORTED_ACTIONS = ("user_profile", "timesheet", "invoice_template_upload")


def _payload(storage: StorageManager, action: str, subject_id: Optional[int]) -> dict[str, Any]:
    if action == "invoice_template_upload":
        return {}
    if subject_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    subject: Any
    if action == "user_profile":
        subject = storage.get_user(subject_id)
        key = "user"
    else:
        subject = storage.get_timesheet(subject_id)
        key = "timesheet"
    if subject is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{key} {subject_id} not found")
    return {key: subject}


@router.get("/actions/{action}")
async def get_page_actions(
    action: str,
    subject_id: Optional[int] = Query(None, alias="id", description="User or timesheet ID"),
    view: str = Query("index", description="index or a detail view name"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> dict[str, Optional[dict[str, Any]]]:
    """Actions the current user may run on a page; dividers map to null."""
    if action not in SUPPORTED_ACTIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown page {action}")
    event = PageActionsEvent(current_user, _payload(storage, action, subject_id), action, view)
    dispatcher.dispatch(event)
    return event.get_actions()

"""Weekly quick entry endpoints."""

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_quick_entry_service
from kimai.api.models import QuickEntrySaveRequest
from kimai.core.models import User
from kimai.core.security import deny_access_unless_granted
from kimai.quick_entry import QuickEntryService, QuickEntryWeek
from kimai.utils.duration import parse_duration_string

router = APIRouter()


def _serialize(week: QuickEntryWeek) -> dict[str, Any]:
    rows = []
    for model in week.rows:
        cells = []
        for day in week.days:
            timesheet = model.get_timesheet(day)
            cells.append(
                {
                    "date": day.isoformat(),
                    "id": timesheet.id if timesheet else None,
                    "duration": timesheet.duration if timesheet else 0,
                    "running": timesheet.is_running if timesheet else False,
                }
            )
        rows.append(
            {
                "project": model.project.id if model.project else None,
                "project_name": model.project.name if model.project else None,
                "activity": model.activity.id if model.activity else None,
                "activity_name": model.activity.name if model.activity else None,
                "prototype": model.is_prototype,
                "days": cells,
            }
        )
    return {"begin": week.start.isoformat(), "days": [d.isoformat() for d in week.days], "rows": rows}


@router.get("/")
async def get_week(
    begin: Optional[date] = Query(None, description="Any day of the week, defaults to today"),
    current_user: User = Depends(get_current_user),
    service: QuickEntryService = Depends(get_quick_entry_service),
) -> dict[str, Any]:
    deny_access_unless_granted(current_user, "quick-entry")
    return _serialize(service.build_week(current_user, begin))


@router.post("/")
async def save_week(
    request: QuickEntrySaveRequest,
    current_user: User = Depends(get_current_user),
    service: QuickEntryService = Depends(get_quick_entry_service),
) -> dict[str, Any]:
    """Store the submitted cells of a week.

    Durations are seconds or duration strings; empty cells remove the
    existing record.
    """
    deny_access_unless_granted(current_user, "quick-entry")
    week = service.build_week(current_user, request.begin)
    for row in request.rows:
        durations = {
            day: parse_duration_string(value) if isinstance(value, str) else value
            for day, value in row.days.items()
        }
        service.apply_row(week, current_user, row.project, row.activity, durations)

    saved, deleted = service.save_week(current_user, week)
    result = _serialize(service.build_week(current_user, request.begin))
    result.update({"saved": saved, "deleted": deleted})
    return result

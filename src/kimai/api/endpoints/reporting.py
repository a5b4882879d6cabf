"""Reporting endpoints built on the timesheet statistics."""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_statistic_service, get_storage
from kimai.core.models import User
from kimai.core.security import deny_access_unless_granted
from kimai.core.storage import StorageManager
from kimai.reporting.project_date_range import ProjectDateRangeReport
from kimai.timesheet.statistics import DailyStatistic, TimesheetStatisticService, Totals

router = APIRouter()


def _totals(totals: Totals) -> dict[str, Any]:
    return {
        "duration": totals.total_duration,
        "rate": totals.total_rate,
        "internal_rate": totals.total_internal_rate,
        "billable_duration": totals.billable_duration,
        "billable_rate": totals.billable_rate,
    }


def _daily(stat: DailyStatistic) -> dict[str, Any]:
    return {
        "user": stat.user.id,
        "duration": stat.total_duration,
        "days": [{"date": d.day.isoformat(), **_totals(d)} for d in stat.get_days()],
    }


def _range(begin: Optional[date], end: Optional[date]) -> tuple[datetime, datetime]:
    """Defaults to the current week; the end day is included."""
    today = date.today()
    first = begin or today - timedelta(days=today.weekday())
    last = end or first + timedelta(days=6)
    if last < first:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be earlier than start date."
        )
    return datetime.combine(first, time.min), datetime.combine(last, time.max)


def _users(storage: StorageManager, current_user: User, user_ids: list[int]) -> list[User]:
    if not user_ids or user_ids == [current_user.id]:
        return [current_user]
    deny_access_unless_granted(current_user, "view_reporting")
    users = [storage.get_user(uid) for uid in user_ids]
    return [u for u in users if u is not None]


@router.get("/daily")
async def daily_report(
    begin: Optional[date] = Query(None, description="First day, defaults to this week's Monday"),
    end: Optional[date] = Query(None, description="Last day (included)"),
    users: list[int] = Query([], description="User IDs, defaults to the current user"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
    service: TimesheetStatisticService = Depends(get_statistic_service),
) -> list[dict[str, Any]]:
    first, last = _range(begin, end)
    stats = service.get_daily_statistics(first, last, _users(storage, current_user, users))
    return [_daily(s) for s in stats]


@router.get("/daily-grouped")
async def daily_grouped_report(
    begin: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    users: list[int] = Query([]),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
    service: TimesheetStatisticService = Depends(get_statistic_service),
) -> list[dict[str, Any]]:
    """Daily totals per user, project and activity."""
    first, last = _range(begin, end)
    grouped = service.get_daily_statistics_grouped(first, last, _users(storage, current_user, users))
    result = []
    for user_id, by_project in grouped.items():
        for project_id, by_activity in by_project.items():
            for activity_id, stat in by_activity.items():
                entry = _daily(stat)
                entry.update({"user": user_id, "project": project_id, "activity": activity_id})
                result.append(entry)
    return result


@router.get("/monthly")
async def monthly_report(
    begin: Optional[date] = Query(None, description="Defaults to the first recorded day"),
    end: Optional[date] = Query(None, description="Defaults to today"),
    user: Optional[int] = Query(None, description="User ID, defaults to the current user"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
    service: TimesheetStatisticService = Depends(get_statistic_service),
) -> list[dict[str, Any]]:
    target = _users(storage, current_user, [user] if user is not None else [])
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user} not found")
    subject = target[0]

    first_record = service.find_first_record_date(subject)
    first = datetime.combine(begin, time.min) if begin else (first_record or datetime.now())
    last = datetime.combine(end or date.today(), time.max)
    years = service.get_monthly_stats(subject, first, last)
    return [
        {
            "year": y.year,
            **_totals(y),
            "months": [{"month": m.month, **_totals(m)} for m in y.months],
        }
        for y in years
    ]


@router.get("/project-date-range")
async def project_date_range_report(
    month: Optional[date] = Query(None, description="Any day in the month, defaults to today"),
    customer: Optional[int] = Query(None, description="Customer ID"),
    include_no_budget: bool = Query(False, alias="includeNoBudget"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> list[dict[str, Any]]:
    """Project durations of a month next to their budget consumption."""
    deny_access_unless_granted(current_user, "budget_project")
    report = ProjectDateRangeReport(storage).build(
        datetime.combine(month, time.min) if month else None, customer, include_no_budget
    )
    return [
        {
            "customer": entry.customer.id,
            "customer_name": entry.customer.name,
            "duration": entry.duration,
            "rate": entry.rate,
            "projects": [
                {
                    "project": p.project.id,
                    "project_name": p.project.name,
                    "duration": p.duration,
                    "rate": p.rate,
                    "budget_duration": p.budget_duration,
                    "budget_rate": p.budget_rate,
                    "time_budget_percent": p.time_budget_percent,
                    "budget_percent": p.budget_percent,
                    "quarterly": p.is_quarterly,
                }
                for p in entry.projects
            ],
        }
        for entry in report
    ]


@router.get("/widgets/duration-today")
async def duration_today(
    current_user: User = Depends(get_current_user),
    service: TimesheetStatisticService = Depends(get_statistic_service),
) -> dict[str, Any]:
    return {
        "user": current_user.id,
        "duration": service.get_user_duration_today(current_user),
    }

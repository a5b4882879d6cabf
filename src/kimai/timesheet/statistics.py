"""Aggregated timesheet statistics for reports and dashboard widgets."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from kimai.core.exceptions import WidgetError
from kimai.core.models import Timesheet, User
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)


@dataclass
class Totals:
    """Duration and rate sums shared by days, months and years."""

    total_duration: int = 0
    total_rate: float = 0.0
    total_internal_rate: float = 0.0
    billable_duration: int = 0
    billable_rate: float = 0.0

    def add(self, timesheet: Timesheet) -> None:
        self.total_duration += timesheet.duration
        self.total_rate = round(self.total_rate + timesheet.rate, 2)
        self.total_internal_rate = round(
            self.total_internal_rate + (timesheet.internal_rate or 0.0), 2
        )
        if timesheet.billable:
            self.billable_duration += timesheet.duration
            self.billable_rate = round(self.billable_rate + timesheet.rate, 2)


@dataclass
class Day(Totals):
    day: date = field(default_factory=date.today)
    details: list[Timesheet] = field(default_factory=list)

    def add(self, timesheet: Timesheet) -> None:
        super().add(timesheet)
        self.details.append(timesheet)


class Month(Totals):
    """Totals of one calendar month.

    Raises:
        ValueError: If the month is outside 1-12
    """

    def __init__(self, month: Union[int, str]):
        super().__init__()
        try:
            number = int(month)
        except (TypeError, ValueError):
            number = 0
        if number < 1 or number > 12:
            raise ValueError(f'Invalid month given. Expected 1-12, received "{month}".')
        self.month = str(number).zfill(2)

    @property
    def month_number(self) -> int:
        return int(self.month)

    def __repr__(self) -> str:
        return f"Month({self.month!r}, total_duration={self.total_duration})"


class Year(Totals):
    def __init__(self, year: Union[int, str]):
        super().__init__()
        self.year = str(year)
        self.months = [Month(m) for m in range(1, 13)]

    def get_month(self, month: int) -> Month:
        return self.months[month - 1]

    def add(self, timesheet: Timesheet) -> None:
        super().add(timesheet)
        self.get_month(timesheet.begin.month).add(timesheet)


@dataclass
class DailyStatistic:
    """One ``Day`` per calendar day of the range for a single user."""

    user: User
    begin: datetime
    end: datetime
    days: dict[date, Day] = field(default_factory=dict)

    def __post_init__(self) -> None:
        current = self.begin.date()
        while current <= self.end.date():
            self.days[current] = Day(day=current)
            current += timedelta(days=1)

    def get_day(self, day: date) -> Optional[Day]:
        return self.days.get(day)

    def get_days(self) -> list[Day]:
        return list(self.days.values())

    @property
    def total_duration(self) -> int:
        return sum(d.total_duration for d in self.days.values())


class TimesheetStatisticService:
    def __init__(self, storage: StorageManager):
        self.storage = storage

    def _stopped_in_range(
        self, begin: datetime, end: datetime, user_ids: set[Optional[int]]
    ) -> list[Timesheet]:
        return [
            t
            for t in self.storage.load_timesheets()
            if t.end is not None and t.user_id in user_ids and begin <= t.begin <= end
        ]

    def get_daily_statistics(
        self, begin: datetime, end: datetime, users: list[User]
    ) -> list[DailyStatistic]:
        stats = {u.id: DailyStatistic(user=u, begin=begin, end=end) for u in users}
        for timesheet in self._stopped_in_range(begin, end, set(stats)):
            day = stats[timesheet.user_id].get_day(timesheet.begin.date())
            if day is not None:
                day.add(timesheet)
        return list(stats.values())

    def get_daily_statistics_grouped(
        self, begin: datetime, end: datetime, users: list[User]
    ) -> dict[int, dict[int, dict[int, DailyStatistic]]]:
        """Daily statistics nested by user id, project id and activity id."""
        users_by_id = {u.id: u for u in users if u.id is not None}
        stats: dict[int, dict[int, dict[int, DailyStatistic]]] = {uid: {} for uid in users_by_id}

        for timesheet in self._stopped_in_range(begin, end, set(users_by_id)):
            activities = stats[timesheet.user_id].setdefault(timesheet.project_id, {})
            days = activities.get(timesheet.activity_id)
            if days is None:
                days = DailyStatistic(user=users_by_id[timesheet.user_id], begin=begin, end=end)
                activities[timesheet.activity_id] = days
            day = days.get_day(timesheet.begin.date())
            if day is not None:
                day.add(timesheet)
        return stats

    def find_first_record_date(self, user: User) -> Optional[datetime]:
        timesheets = self.storage.load_timesheets(user.id)
        if not timesheets:
            return None
        return min(t.begin for t in timesheets)

    def get_monthly_stats(self, user: User, begin: datetime, end: datetime) -> list[Year]:
        """Years of the range, each with all twelve months."""
        years = {y: Year(y) for y in range(begin.year, end.year + 1)}
        for timesheet in self._stopped_in_range(begin, end, {user.id}):
            years[timesheet.begin.year].add(timesheet)
        return list(years.values())

    def get_user_duration_today(self, user: User) -> int:
        """Seconds recorded by ``user`` today, running records included.

        Raises:
            WidgetError: If the data cannot be loaded
        """
        start = datetime.combine(date.today(), time.min)
        end = datetime.combine(date.today(), time.max)
        try:
            return sum(
                t.calculated_duration
                for t in self.storage.load_timesheets(user.id)
                if start <= t.begin <= end
            )
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed loading duration widget for {user.username}: {e}")
            raise WidgetError(f"Failed loading widget data: {e}")

"""Weekly quick entry grid: one row per project/activity, one cell per day."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from kimai.core.config import ConfigManager
from kimai.core.exceptions import ValidationError
from kimai.core.models import Activity, Project, Timesheet, User
from kimai.core.security import is_granted
from kimai.core.storage import StorageManager
from kimai.timesheet.service import TimesheetService

logger = logging.getLogger(__name__)


class QuickEntryModel:
    """One row of the weekly grid.

    Rows without user, project and activity are prototypes used to add new
    combinations.
    """

    def __init__(
        self,
        user: Optional[User] = None,
        project: Optional[Project] = None,
        activity: Optional[Activity] = None,
    ):
        self.user = user
        self.project = project
        self.activity = activity
        self._timesheets: dict[str, Timesheet] = {}

    @property
    def key(self) -> Optional[str]:
        if self.project is None or self.activity is None:
            return None
        return f"{self.project.id}_{self.activity.id}"

    @property
    def is_prototype(self) -> bool:
        if self.has_existing_timesheet():
            return False
        return self.user is None and self.project is None and self.activity is None

    def has_existing_timesheet(self) -> bool:
        return any(t.id is not None for t in self._timesheets.values())

    def get_new_timesheets(self) -> list[Timesheet]:
        return [t for t in self._timesheets.values() if t.id is None and t.duration > 0]

    def has_new_timesheet(self) -> bool:
        return len(self.get_new_timesheets()) > 0

    def has_timesheet_with_duration(self) -> bool:
        return any(t.duration > 0 for t in self._timesheets.values())

    @property
    def timesheets(self) -> list[Timesheet]:
        return list(self._timesheets.values())

    def add_timesheet(self, timesheet: Timesheet) -> None:
        self._timesheets[timesheet.begin.date().isoformat()] = timesheet

    def get_timesheet(self, day: date) -> Optional[Timesheet]:
        return self._timesheets.get(day.isoformat())

    def set_timesheets(self, timesheets: list[Timesheet]) -> None:
        self._timesheets = {}
        for timesheet in timesheets:
            self.add_timesheet(timesheet)

    def get_latest_entry(self) -> Optional[Timesheet]:
        if not self._timesheets:
            return None
        return max(self._timesheets.values(), key=lambda t: t.begin)

    def get_first_entry(self) -> Optional[Timesheet]:
        if not self._timesheets:
            return None
        return min(self._timesheets.values(), key=lambda t: t.begin)


@dataclass
class QuickEntryWeek:
    start: date
    rows: list[QuickEntryModel] = field(default_factory=list)

    @property
    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(7)]


class QuickEntryService:
    def __init__(self, storage: StorageManager, config: ConfigManager, timesheets: TimesheetService):
        self.storage = storage
        self.config = config
        self.timesheets = timesheets

    def _default_begin(self) -> time:
        value = str(self.config.get("timesheet.default_begin", "08:00"))
        hour, minute = value.split(":")
        return time(int(hour), int(minute))

    def _empty_timesheet(
        self, user: User, day: date, project: Optional[Project], activity: Optional[Activity]
    ) -> Timesheet:
        if user.id is None:
            raise ValueError("Quick entry needs a stored user")
        return Timesheet(
            user_id=user.id,
            project_id=project.id if project and project.id else 0,
            activity_id=activity.id if activity and activity.id else 0,
            begin=datetime.combine(day, self._default_begin()),
        )

    def _fill(self, model: QuickEntryModel, user: User, days: list[date]) -> None:
        for day in days:
            if model.get_timesheet(day) is None:
                model.add_timesheet(self._empty_timesheet(user, day, model.project, model.activity))

    def prototype(self, user: User, start: date) -> QuickEntryModel:
        model = QuickEntryModel()
        self._fill(model, user, QuickEntryWeek(start).days)
        return model

    def build_week(self, user: User, begin: Optional[date] = None) -> QuickEntryWeek:
        """Collect the user's timesheets of the week containing ``begin``.

        Rows are keyed ``<project>_<activity>``; a second record on an
        already filled day moves to a row with an ``_<n>`` suffix. Recent
        combinations are added as empty rows and the grid is padded with
        prototype rows up to ``quick_entry.minimum_rows``.
        """
        if user.id is None:
            raise ValueError("Quick entry needs a stored user")
        begin = begin or date.today()
        start = begin - timedelta(days=begin.weekday())
        week = QuickEntryWeek(start)
        days = week.days
        week_begin = datetime.combine(start, time.min)
        week_end = datetime.combine(days[-1], time.max)

        projects = {p.id: p for p in self.storage.load_projects()}
        activities = {a.id: a for a in self.storage.load_activities()}

        rows: dict[str, QuickEntryModel] = {}
        records = [
            t for t in self.storage.load_timesheets(user.id) if week_begin <= t.begin <= week_end
        ]
        for timesheet in sorted(records, key=lambda t: t.begin):
            base = f"{timesheet.project_id}_{timesheet.activity_id}"
            key = base
            i = 0
            while key in rows and rows[key].get_timesheet(timesheet.begin.date()) is not None:
                i += 1
                key = f"{base}_{i}"
            if key not in rows:
                rows[key] = QuickEntryModel(
                    user, projects.get(timesheet.project_id), activities.get(timesheet.activity_id)
                )
            rows[key].add_timesheet(timesheet)

        amount = int(self.config.get("quick_entry.recent_activities", 5))
        weeks = int(self.config.get("quick_entry.recent_activity_weeks", 0))
        start_from = week_begin - timedelta(weeks=weeks) if weeks > 0 else None
        if amount > 0:
            for timesheet in self.timesheets.recent(user, start_from, amount):
                key = f"{timesheet.project_id}_{timesheet.activity_id}"
                if key not in rows:
                    rows[key] = QuickEntryModel(
                        user,
                        projects.get(timesheet.project_id),
                        activities.get(timesheet.activity_id),
                    )

        models = []
        for model in rows.values():
            self._fill(model, user, days)
            models.append(model)

        minimum = int(self.config.get("quick_entry.minimum_rows", 3))
        while len(models) < minimum:
            models.append(self.prototype(user, start))

        models.sort(
            key=lambda m: (
                m.project is None,
                m.project.name.lower() if m.project else "",
                m.activity.name.lower() if m.activity else "",
            )
        )
        week.rows = models
        return week

    def apply_row(
        self,
        week: QuickEntryWeek,
        user: User,
        project_id: int,
        activity_id: int,
        durations: dict[date, Optional[int]],
    ) -> QuickEntryModel:
        """Set submitted durations on the matching row, adding one if needed.

        A duration of None or 0 clears the cell.

        Raises:
            ValidationError: Unknown project/activity or a day outside the week
        """
        project = self.storage.get_project(project_id)
        activity = self.storage.get_activity(activity_id)
        if project is None or activity is None:
            raise ValidationError("Unknown project or activity.", field="project")
        for day in durations:
            if day not in week.days:
                raise ValidationError(f"Day {day} is not part of the week.", field="days")

        key = f"{project_id}_{activity_id}"
        model = next((m for m in week.rows if m.key == key), None)
        if model is None:
            model = QuickEntryModel(user, project, activity)
            self._fill(model, user, week.days)
            week.rows.append(model)

        for day, seconds in durations.items():
            timesheet = model.get_timesheet(day)
            if timesheet is None:
                raise ValidationError(f"Day {day} is not part of the week.", field="days")
            timesheet.duration = seconds or 0
        return model

    def save_week(self, user: User, week: QuickEntryWeek) -> tuple[int, int]:
        """Persist the grid.

        Existing records without duration are deleted when the user may
        delete own timesheets, changed records are updated and new cells
        with a duration become new timesheets.

        Returns:
            Number of saved and deleted timesheets
        """
        saved = deleted = 0
        can_delete = is_granted(user, "delete_own_timesheet")

        for model in week.rows:
            if model.project is None or model.activity is None:
                continue
            for timesheet in model.timesheets:
                if timesheet.id is not None:
                    if timesheet.is_running:
                        continue
                    if timesheet.duration <= 0:
                        if can_delete:
                            self.timesheets.delete(user, timesheet)
                            deleted += 1
                        continue
                    end = timesheet.begin + timedelta(seconds=timesheet.duration)
                    if timesheet.end != end:
                        self.timesheets.update(user, timesheet, {"end": end})
                        saved += 1
                elif timesheet.duration > 0:
                    self.timesheets.create(
                        user,
                        {
                            "project": model.project.id,
                            "activity": model.activity.id,
                            "begin": timesheet.begin,
                            "duration": timesheet.duration,
                        },
                    )
                    saved += 1

        logger.info(f"Quick entry for {user.username}: {saved} saved, {deleted} deleted")
        return saved, deleted

"""Timesheet business operations."""

import dataclasses
import logging
from datetime import datetime
from typing import Any, Optional

from kimai.core.config import ConfigManager
from kimai.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from kimai.core.models import Timesheet, TrackingMode, User
from kimai.core.queries import Page, TimesheetQuery
from kimai.core.security import deny_access_unless_granted, has_permission, is_granted
from kimai.core.storage import StorageManager
from kimai.timesheet.rates import RateCalculator
from kimai.timesheet.validator import TimesheetValidator

logger = logging.getLogger(__name__)

EXPORTED_MESSAGE = "User cannot edit an exported timesheet"


class TimesheetService:
    """Create, change and query timesheets on behalf of a user.

    Every operation checks the permissions of the acting user, validates the
    record and recalculates its rates before it is stored.
    """

    def __init__(self, storage: StorageManager, config: ConfigManager):
        self.storage = storage
        self.config = config
        self.validator = TimesheetValidator(storage, config)
        self.rates = RateCalculator(storage)

    @property
    def mode(self) -> TrackingMode:
        return TrackingMode(self.config.get("timesheet.mode", "default"))

    def get(self, timesheet_id: int) -> Timesheet:
        timesheet = self.storage.get_timesheet(timesheet_id)
        if timesheet is None:
            raise NotFoundError(f"Timesheet {timesheet_id} not found")
        return timesheet

    def search(self, user: User, query: TimesheetQuery) -> Page[Timesheet]:
        """Filtered page of timesheets visible to ``user``."""
        if not has_permission(user, "view_other_timesheet"):
            query.users = [user.id] if user.id is not None else []
        project_customer = {p.id: p.customer_id for p in self.storage.load_projects() if p.id}
        timesheets = query.apply(self.storage.load_timesheets(), project_customer)
        return query.paginate(timesheets)

    def _check_edit_fields(self, user: User, timesheet: Timesheet, data: dict[str, Any]) -> None:
        scope = "own" if timesheet.user_id == user.id else "other"
        if "billable" in data and not has_permission(user, f"edit_billable_{scope}_timesheet"):
            raise AccessDeniedError("User cannot change the billable flag")
        if "exported" in data and not has_permission(user, f"export_{scope}_timesheet"):
            raise AccessDeniedError("User cannot change the export state")
        for name in ("hourly_rate", "fixed_rate"):
            if name in data and not has_permission(user, f"edit_rate_{scope}_timesheet"):
                raise AccessDeniedError("User cannot change rates")

    def _apply(self, timesheet: Timesheet, data: dict[str, Any]) -> None:
        if "project" in data:
            timesheet.project_id = int(data["project"])
        if "activity" in data:
            timesheet.activity_id = int(data["activity"])
        if "description" in data:
            timesheet.description = data["description"] or None
        if "tags" in data:
            timesheet.tags = [t.strip() for t in data["tags"] or [] if t and t.strip()]
        if "billable" in data:
            timesheet.billable = bool(data["billable"])
        if "exported" in data:
            timesheet.exported = bool(data["exported"])
        if "hourly_rate" in data:
            timesheet.hourly_rate = data["hourly_rate"]
        if "fixed_rate" in data:
            timesheet.fixed_rate = data["fixed_rate"]
        if "begin" in data and data["begin"] is not None:
            timesheet.begin = data["begin"]
        if "end" in data:
            timesheet.end = data["end"]
        if data.get("duration") is not None and timesheet.end is None:
            timesheet.set_end_from_duration(int(data["duration"]))
        timesheet.set_duration_from_end()

    def _check_mode(self, data: dict[str, Any]) -> None:
        if self.mode == TrackingMode.PUNCH:
            if data.get("begin") is not None or data.get("end") is not None:
                raise ValidationError(
                    "Begin and end cannot be set in punch in/out mode.", field="begin"
                )

    def _finish(self, user: User, timesheet: Timesheet, is_new: bool) -> Timesheet:
        self.validator.validate(timesheet, is_new=is_new)
        owner = self.storage.get_user(timesheet.user_id) or user
        self.rates.calculate(timesheet, owner)
        return self.storage.save_timesheet(timesheet)

    def _stop_active_entries(self, user: User, new_timesheet: Timesheet) -> None:
        if new_timesheet.end is not None:
            return
        hard_limit = int(self.config.get("timesheet.active_entries.hard_limit", 1))
        active = self.storage.get_active_timesheets(new_timesheet.user_id)
        # oldest first, keep room for the new record
        active.sort(key=lambda t: t.begin)
        while len(active) >= hard_limit:
            running = active.pop(0)
            running.end = max(datetime.now().replace(microsecond=0), running.begin)
            running.set_duration_from_end()
            self.rates.calculate(running, self.storage.get_user(running.user_id) or user)
            self.storage.save_timesheet(running)
            logger.info(f"Stopped active timesheet {running.id}")

    def create(self, user: User, data: dict[str, Any]) -> Timesheet:
        """Record a new timesheet.

        Args:
            user: Acting user
            data: Fields to set; ``user`` books for someone else

        Raises:
            AccessDeniedError: Missing permission
            ValidationError: Invalid record
        """
        deny_access_unless_granted(user, "create_own_timesheet")
        owner_id = user.id
        if data.get("user") is not None and int(data["user"]) != user.id:
            deny_access_unless_granted(user, "create_other_timesheet")
            owner_id = int(data["user"])
            if self.storage.get_user(owner_id) is None:
                raise ValidationError("Unknown user.", field="user")

        self._check_mode(data)
        if "project" not in data or "activity" not in data:
            raise ValidationError("Project and activity are required.", field="project")

        if owner_id is None:
            raise ValidationError("Unknown user.", field="user")
        timesheet = Timesheet(
            user_id=owner_id,
            project_id=int(data["project"]),
            activity_id=int(data["activity"]),
            begin=data.get("begin") or datetime.now().replace(microsecond=0),
        )
        self._check_edit_fields(user, timesheet, data)
        self._apply(timesheet, data)
        if data.get("meta"):
            for name, value in data["meta"].items():
                self._set_meta_value(timesheet, name, value)

        self.validator.validate(timesheet, is_new=True)
        self._stop_active_entries(user, timesheet)
        saved = self._finish(user, timesheet, is_new=True)
        logger.info(f"Created timesheet {saved.id} for user {saved.user_id}")
        return saved

    def update(self, user: User, timesheet: Timesheet, data: dict[str, Any]) -> Timesheet:
        if timesheet.exported and not has_permission(user, "edit_exported_timesheet"):
            raise AccessDeniedError(EXPORTED_MESSAGE)
        deny_access_unless_granted(user, "edit", timesheet)
        self._check_mode(data)
        self._check_edit_fields(user, timesheet, data)
        if data.get("user") is not None and int(data["user"]) != timesheet.user_id:
            deny_access_unless_granted(user, "create_other_timesheet")
            timesheet.user_id = int(data["user"])
        self._apply(timesheet, data)
        if data.get("meta"):
            for name, value in data["meta"].items():
                self._set_meta_value(timesheet, name, value)
        saved = self._finish(user, timesheet, is_new=False)
        logger.info(f"Updated timesheet {saved.id}")
        return saved

    def delete(self, user: User, timesheet: Timesheet) -> None:
        deny_access_unless_granted(user, "delete", timesheet)
        if timesheet.id is None:
            raise NotFoundError("Timesheet not found")
        self.storage.delete_timesheet(timesheet.id)
        logger.info(f"Deleted timesheet {timesheet.id}")

    def stop(self, user: User, timesheet: Timesheet, end: Optional[datetime] = None) -> Timesheet:
        """Stop a running timesheet at ``end`` (default now).

        Raises:
            ValidationError: The timesheet is already stopped
        """
        deny_access_unless_granted(user, "stop", timesheet)
        if not timesheet.is_running:
            raise ValidationError("Timesheet already stopped", field="end")
        end = end or datetime.now().replace(microsecond=0)
        timesheet.end = max(end, timesheet.begin)
        timesheet.set_duration_from_end()
        return self._finish(user, timesheet, is_new=False)

    def restart(
        self,
        user: User,
        timesheet: Timesheet,
        begin: Optional[datetime] = None,
        copy: Optional[str] = None,
    ) -> Timesheet:
        """Start a new record with the project and activity of ``timesheet``.

        ``copy="all"`` also takes over rates, description, billable flag,
        tags and meta fields.
        """
        deny_access_unless_granted(user, "start", timesheet)
        data: dict[str, Any] = {
            "project": timesheet.project_id,
            "activity": timesheet.activity_id,
        }
        if timesheet.user_id != user.id:
            data["user"] = timesheet.user_id
        if begin is not None:
            data["begin"] = begin
        if copy == "all":
            data["description"] = timesheet.description
            data["tags"] = list(timesheet.tags)
            data["meta"] = dict(timesheet.meta)
            if has_permission(user, "edit_rate_own_timesheet"):
                data["hourly_rate"] = timesheet.hourly_rate
                data["fixed_rate"] = timesheet.fixed_rate
            if has_permission(user, "edit_billable_own_timesheet"):
                data["billable"] = timesheet.billable
        return self.create(user, data)

    def duplicate(self, user: User, timesheet: Timesheet) -> Timesheet:
        deny_access_unless_granted(user, "duplicate", timesheet)
        copy = dataclasses.replace(
            timesheet,
            id=None,
            exported=False,
            tags=list(timesheet.tags),
            meta=dict(timesheet.meta),
        )
        return self._finish(user, copy, is_new=False)

    def toggle_export(self, user: User, timesheet: Timesheet) -> Timesheet:
        deny_access_unless_granted(user, "export", timesheet)
        if timesheet.exported and not has_permission(user, "edit_exported_timesheet"):
            raise AccessDeniedError(EXPORTED_MESSAGE)
        timesheet.exported = not timesheet.exported
        return self.storage.save_timesheet(timesheet)

    def _set_meta_value(self, timesheet: Timesheet, name: str, value: Any) -> None:
        if name not in (self.config.get("timesheet.meta_fields") or []):
            raise ValidationError("Unknown meta-field requested", field="meta")
        timesheet.meta[name] = value

    def set_meta(self, user: User, timesheet: Timesheet, name: str, value: Any) -> Timesheet:
        deny_access_unless_granted(user, "edit", timesheet)
        self._set_meta_value(timesheet, name, value)
        return self.storage.save_timesheet(timesheet)

    def recent(
        self, user: User, begin: Optional[datetime] = None, size: Optional[int] = None
    ) -> list[Timesheet]:
        """Latest timesheet of each distinct project/activity combination."""
        size = size or int(self.config.get("timesheet.recent_size", 10))
        seen: set[tuple[int, int]] = set()
        result = []
        for timesheet in self.storage.load_timesheets(user.id):
            if begin is not None and timesheet.begin < begin:
                continue
            key = (timesheet.project_id, timesheet.activity_id)
            if key in seen:
                continue
            seen.add(key)
            result.append(timesheet)
            if len(result) >= size:
                break
        return result

    def active(self, user: User) -> list[Timesheet]:
        return self.storage.get_active_timesheets(user.id)

    def can(self, user: User, attribute: str, timesheet: Timesheet) -> bool:
        return is_granted(user, attribute, timesheet)

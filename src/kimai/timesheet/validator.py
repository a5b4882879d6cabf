"""Business rules every timesheet must satisfy before it is stored."""

from datetime import datetime

from kimai.core.config import ConfigManager
from kimai.core.exceptions import ValidationError
from kimai.core.models import Timesheet
from kimai.core.storage import StorageManager


class TimesheetValidator:
    def __init__(self, storage: StorageManager, config: ConfigManager):
        self.storage = storage
        self.config = config

    def validate(self, timesheet: Timesheet, is_new: bool = False) -> None:
        """Check relations, time range and duration.

        Args:
            timesheet: Record to check
            is_new: New records may not use hidden customers, projects or activities

        Raises:
            ValidationError: On the first violated rule
        """
        project = self.storage.get_project(timesheet.project_id)
        if project is None:
            raise ValidationError("Unknown project.", field="project")

        activity = self.storage.get_activity(timesheet.activity_id)
        if activity is None:
            raise ValidationError("Unknown activity.", field="activity")

        if activity.project_id is not None and activity.project_id != project.id:
            raise ValidationError(
                "Activity is not valid for the selected project.", field="activity"
            )

        if is_new:
            customer = self.storage.get_customer(project.customer_id)
            if customer is not None and not customer.visible:
                raise ValidationError("Cannot start a disabled customer.", field="customer")
            if not project.visible:
                raise ValidationError("Cannot start a disabled project.", field="project")
            if not activity.visible:
                raise ValidationError("Cannot start a disabled activity.", field="activity")

        if not self.config.get("timesheet.rules.allow_future_times", True):
            if timesheet.begin > datetime.now():
                raise ValidationError("The begin date cannot be in the future.", field="begin")

        if timesheet.end is None:
            return

        if timesheet.end < timesheet.begin:
            raise ValidationError("End date must not be earlier than start date.", field="end")

        allow_zero = self.config.get("timesheet.rules.allow_zero_duration", False)
        if not allow_zero and timesheet.end == timesheet.begin:
            raise ValidationError("Duration cannot be zero.", field="duration")

"""Rate calculation for timesheets."""

from typing import Optional

from kimai.core.models import Timesheet, User
from kimai.core.storage import StorageManager


class RateCalculator:
    """Calculate the billable and internal amount of a stopped timesheet.

    A fixed rate always wins over an hourly rate. Both are looked up on the
    timesheet itself first, then on the activity, the project, the customer
    and finally the user preference ``hourly_rate``. The internal rate uses
    the user preference ``internal_rate`` and falls back to the hourly rate.
    """

    def __init__(self, storage: StorageManager):
        self.storage = storage

    def _lookup(self, timesheet: Timesheet, attribute: str) -> Optional[float]:
        value: Optional[float] = getattr(timesheet, attribute)
        if value is not None:
            return value

        activity = self.storage.get_activity(timesheet.activity_id)
        project = self.storage.get_project(timesheet.project_id)
        customer = self.storage.get_customer(project.customer_id) if project else None

        for record in (activity, project, customer):
            if record is not None and getattr(record, attribute) is not None:
                found: float = getattr(record, attribute)
                return found
        return None

    def calculate(self, timesheet: Timesheet, user: User) -> None:
        """Set rate, internal rate and the applied hourly/fixed rate.

        Running timesheets are left untouched.
        """
        if timesheet.end is None:
            return

        hours = timesheet.duration / 3600
        fixed_rate = self._lookup(timesheet, "fixed_rate")

        if fixed_rate is not None:
            timesheet.fixed_rate = fixed_rate
            timesheet.rate = round(fixed_rate, 2)
            timesheet.internal_rate = round(fixed_rate, 2)
            return

        hourly_rate = self._lookup(timesheet, "hourly_rate")
        if hourly_rate is None:
            hourly_rate = float(user.get_preference("hourly_rate", 0) or 0)

        internal_hourly = user.get_preference("internal_rate")
        if internal_hourly is None:
            internal_hourly = hourly_rate

        timesheet.hourly_rate = hourly_rate
        timesheet.rate = round(hourly_rate * hours, 2)
        timesheet.internal_rate = round(float(internal_hourly) * hours, 2)

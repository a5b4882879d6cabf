"""Timesheet recording, validation, rates and statistics."""

from kimai.timesheet.rates import RateCalculator
from kimai.timesheet.service import TimesheetService
from kimai.timesheet.statistics import TimesheetStatisticService
from kimai.timesheet.validator import TimesheetValidator

__all__ = ["RateCalculator", "TimesheetService", "TimesheetStatisticService", "TimesheetValidator"]

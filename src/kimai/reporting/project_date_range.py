"""Monthly project report with budget usage.

Projects with a quarterly budget are measured against the whole quarter the
month belongs to, monthly budgets against the month and lifetime budgets
against everything recorded until the end of the month.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from kimai.core.models import Customer, Project, Timesheet
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)


def start_of_month(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def end_of_month(value: datetime) -> datetime:
    begin = start_of_month(value)
    next_month = (begin + timedelta(days=32)).replace(day=1)
    return next_month - timedelta(seconds=1)


def start_of_quarter(value: datetime) -> datetime:
    month = 3 * ((value.month - 1) // 3) + 1
    return start_of_month(value.replace(month=month, day=1))


def end_of_quarter(value: datetime) -> datetime:
    return end_of_month(start_of_quarter(value).replace(month=start_of_quarter(value).month + 2))


@dataclass
class ProjectBudgetEntry:
    project: Project
    duration: int = 0
    rate: float = 0.0
    budget_duration: int = 0
    budget_rate: float = 0.0

    @property
    def is_quarterly(self) -> bool:
        return self.project.budget_type == "quarter"

    @property
    def time_budget_percent(self) -> Optional[float]:
        if self.project.time_budget <= 0:
            return None
        return round(self.budget_duration / self.project.time_budget * 100, 2)

    @property
    def budget_percent(self) -> Optional[float]:
        if self.project.budget <= 0:
            return None
        return round(self.budget_rate / self.project.budget * 100, 2)


@dataclass
class CustomerEntry:
    customer: Customer
    projects: list[ProjectBudgetEntry] = field(default_factory=list)

    @property
    def duration(self) -> int:
        return sum(p.duration for p in self.projects)

    @property
    def rate(self) -> float:
        return round(sum(p.rate for p in self.projects), 2)


class ProjectDateRangeReport:
    def __init__(self, storage: StorageManager):
        self.storage = storage

    def _budget_range(self, project: Project, month: datetime) -> tuple[Optional[datetime], datetime]:
        if project.budget_type == "quarter":
            return start_of_quarter(month), end_of_quarter(month)
        if project.budget_type == "month":
            return start_of_month(month), end_of_month(month)
        return None, end_of_month(month)

    def build(
        self,
        month: Optional[datetime] = None,
        customer: Optional[int] = None,
        include_no_budget: bool = False,
    ) -> list[CustomerEntry]:
        """Build the report for the month containing ``month``.

        Args:
            month: Any date inside the month, defaults to the current month
            customer: Restrict to one customer id
            include_no_budget: Also list projects without any budget
        """
        begin = start_of_month(month or datetime.now())
        end = end_of_month(begin)

        projects = {p.id: p for p in self.storage.load_projects(customer)}
        by_project: dict[int, list[Timesheet]] = {}
        for timesheet in self.storage.load_timesheets():
            if timesheet.end is not None and timesheet.project_id in projects:
                by_project.setdefault(timesheet.project_id, []).append(timesheet)

        result: dict[int, CustomerEntry] = {}
        for project_id, timesheets in by_project.items():
            project = projects[project_id]
            if not include_no_budget and not project.has_budget():
                continue
            in_month = [t for t in timesheets if begin <= t.begin <= end]
            if not in_month:
                continue

            budget_begin, budget_end = self._budget_range(project, begin)
            in_budget = [
                t
                for t in timesheets
                if (budget_begin is None or t.begin >= budget_begin) and t.begin <= budget_end
            ]
            entry = ProjectBudgetEntry(
                project=project,
                duration=sum(t.duration for t in in_month),
                rate=round(sum(t.rate for t in in_month), 2),
                budget_duration=sum(t.duration for t in in_budget),
                budget_rate=round(sum(t.rate for t in in_budget), 2),
            )

            owner = self.storage.get_customer(project.customer_id)
            if owner is None or owner.id is None:
                logger.warning(f"Project {project_id} has no customer, skipped")
                continue
            result.setdefault(owner.id, CustomerEntry(customer=owner)).projects.append(entry)

        for customer_entry in result.values():
            customer_entry.projects.sort(key=lambda e: e.project.name.lower())
        return sorted(result.values(), key=lambda c: c.customer.name.lower())

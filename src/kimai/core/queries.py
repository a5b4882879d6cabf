"""Query objects used to filter, sort and paginate record lists."""

from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Any, Generic, Optional, TypeVar, Union

from kimai.core.models import Activity, Customer, Project, Timesheet

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a paginated result."""

    items: list[T]
    page: int
    page_size: int
    total: int

    @property
    def page_count(self) -> int:
        return max(1, ceil(self.total / self.page_size)) if self.page_size else 1


class BaseQuery:
    """Pagination, ordering and search term shared by all queries."""

    DEFAULT_PAGESIZE = 25
    DEFAULT_PAGE = 1
    ORDER_ASC = "ASC"
    ORDER_DESC = "DESC"
    ORDER_ALLOWED: tuple[str, ...] = ("id", "name")

    def __init__(self) -> None:
        self.page = self.DEFAULT_PAGE
        self.page_size = self.DEFAULT_PAGESIZE
        self.order_by = "id"
        self.order = self.ORDER_ASC
        self.search_term: Optional[str] = None

    def set_page(self, page: Union[int, str, None]) -> "BaseQuery":
        try:
            value = int(page)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return self
        if value > 0:
            self.page = value
        return self

    def set_page_size(self, page_size: Union[int, str, None]) -> "BaseQuery":
        """Set the page size; empty or non-positive values are ignored."""
        try:
            value = int(page_size)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return self
        if value > 0:
            self.page_size = value
        return self

    def set_order_by(self, order_by: Optional[str]) -> "BaseQuery":
        if order_by in self.ORDER_ALLOWED:
            self.order_by = order_by
        return self

    def set_order(self, order: Optional[str]) -> "BaseQuery":
        if order and order.upper() in (self.ORDER_ASC, self.ORDER_DESC):
            self.order = order.upper()
        return self

    def sort(self, items: list[Any]) -> list[Any]:
        def key(item: Any) -> Any:
            value = getattr(item, self.order_by, None)
            # None sorts first ascending
            return (value is not None, value if value is not None else 0)

        return sorted(items, key=key, reverse=self.order == self.ORDER_DESC)

    def paginate(self, items: list[T]) -> Page[T]:
        start = (self.page - 1) * self.page_size
        return Page(
            items=items[start : start + self.page_size],
            page=self.page,
            page_size=self.page_size,
            total=len(items),
        )


class VisibilityQuery(BaseQuery):
    """Query with a visible / hidden / both switch.

    Invalid visibility values are ignored and keep the previous setting.
    """

    SHOW_VISIBLE = 1
    SHOW_HIDDEN = 2
    SHOW_BOTH = 3
    ALLOWED_VISIBILITY = (SHOW_VISIBLE, SHOW_HIDDEN, SHOW_BOTH)

    def __init__(self) -> None:
        super().__init__()
        self.visibility = self.SHOW_VISIBLE
        # When set, related records (e.g. the customer of a project) must be
        # visible as well
        self.exclusive_visibility = False

    def set_visibility(self, visibility: Union[int, str, None]) -> "VisibilityQuery":
        try:
            value = int(visibility)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return self
        if value in self.ALLOWED_VISIBILITY:
            self.visibility = value
        return self

    def set_exclusive_visibility(self, exclusive: bool) -> "VisibilityQuery":
        self.exclusive_visibility = bool(exclusive)
        return self

    def matches(self, visible: bool) -> bool:
        if self.visibility == self.SHOW_BOTH:
            return True
        if self.visibility == self.SHOW_VISIBLE:
            return visible
        return not visible

    def _search(self, items: list[Any], *attributes: str) -> list[Any]:
        if not self.search_term:
            return items
        term = self.search_term.lower()
        return [
            i
            for i in items
            if any(term in str(getattr(i, a, "") or "").lower() for a in attributes)
        ]


class CustomerQuery(VisibilityQuery):
    def apply(self, customers: list[Customer]) -> list[Customer]:
        result = [c for c in customers if self.matches(c.visible)]
        result = self._search(result, "name", "number", "comment", "company")
        return self.sort(result)


class ProjectQuery(VisibilityQuery):
    def __init__(self) -> None:
        super().__init__()
        self.customers: list[int] = []

    def apply(self, projects: list[Project], customers: dict[int, Customer]) -> list[Project]:
        result = []
        for project in projects:
            if self.customers and project.customer_id not in self.customers:
                continue
            if not self.matches(project.visible):
                continue
            customer = customers.get(project.customer_id)
            if self.exclusive_visibility and customer is not None and not customer.visible:
                continue
            result.append(project)
        result = self._search(result, "name", "comment", "order_number")
        return self.sort(result)


class ActivityQuery(VisibilityQuery):
    def __init__(self) -> None:
        super().__init__()
        self.projects: list[int] = []
        self.globals_only = False

    def apply(self, activities: list[Activity], projects: dict[int, Project]) -> list[Activity]:
        result = []
        for activity in activities:
            if self.globals_only and not activity.is_global:
                continue
            if self.projects and not activity.is_global and activity.project_id not in self.projects:
                continue
            if not self.matches(activity.visible):
                continue
            project = projects.get(activity.project_id) if activity.project_id else None
            if self.exclusive_visibility and project is not None and not project.visible:
                continue
            result.append(activity)
        result = self._search(result, "name", "comment")
        return self.sort(result)


class TimesheetQuery(BaseQuery):
    """Filters for timesheet lists, exports and invoices."""

    DEFAULT_PAGESIZE = 50
    ORDER_ALLOWED = ("id", "begin", "end", "rate")

    STATE_ALL = 1
    STATE_RUNNING = 2
    STATE_STOPPED = 3
    STATE_EXPORTED = 4
    STATE_NOT_EXPORTED = 5
    STATE_BILLABLE = 6
    STATE_NOT_BILLABLE = 7

    def __init__(self) -> None:
        super().__init__()
        self.order_by = "begin"
        self.order = self.ORDER_DESC
        self.users: list[int] = []
        self.customers: list[int] = []
        self.projects: list[int] = []
        self.activities: list[int] = []
        self.begin: Optional[datetime] = None
        self.end: Optional[datetime] = None
        self.state = self.STATE_ALL
        self.export_state = self.STATE_ALL
        self.billable = self.STATE_ALL
        self.tags: list[str] = []
        self.modified_after: Optional[datetime] = None

    def set_state(self, state: int) -> "TimesheetQuery":
        if state in (self.STATE_ALL, self.STATE_RUNNING, self.STATE_STOPPED):
            self.state = state
        return self

    def set_export_state(self, state: int) -> "TimesheetQuery":
        if state in (self.STATE_ALL, self.STATE_EXPORTED, self.STATE_NOT_EXPORTED):
            self.export_state = state
        return self

    def set_billable(self, state: int) -> "TimesheetQuery":
        if state in (self.STATE_ALL, self.STATE_BILLABLE, self.STATE_NOT_BILLABLE):
            self.billable = state
        return self

    def matches(self, timesheet: Timesheet, project_customer: dict[int, int]) -> bool:
        """Check a single timesheet against all filters.

        Args:
            timesheet: Record to check
            project_customer: Mapping of project id to customer id
        """
        if self.users and timesheet.user_id not in self.users:
            return False
        if self.activities and timesheet.activity_id not in self.activities:
            return False
        if self.projects and timesheet.project_id not in self.projects:
            return False
        if self.customers and project_customer.get(timesheet.project_id) not in self.customers:
            return False
        if self.begin is not None and timesheet.begin < self.begin:
            return False
        if self.end is not None and timesheet.begin > self.end:
            return False
        if self.state == self.STATE_RUNNING and not timesheet.is_running:
            return False
        if self.state == self.STATE_STOPPED and timesheet.is_running:
            return False
        if self.export_state == self.STATE_EXPORTED and not timesheet.exported:
            return False
        if self.export_state == self.STATE_NOT_EXPORTED and timesheet.exported:
            return False
        if self.billable == self.STATE_BILLABLE and not timesheet.billable:
            return False
        if self.billable == self.STATE_NOT_BILLABLE and timesheet.billable:
            return False
        if self.tags and not set(self.tags) & set(timesheet.tags):
            return False
        if self.modified_after is not None and timesheet.modified_at <= self.modified_after:
            return False
        if self.search_term:
            term = self.search_term.lower()
            haystack = " ".join([timesheet.description or ""] + timesheet.tags).lower()
            if term not in haystack:
                return False
        return True

    def apply(self, timesheets: list[Timesheet], project_customer: dict[int, int]) -> list[Timesheet]:
        result = [t for t in timesheets if self.matches(t, project_customer)]
        return self.sort(result)


class InvoiceQuery(TimesheetQuery):
    """Timesheet filter plus the invoice specific settings.

    Defaults to stopped, not yet exported records in chronological order.
    """

    def __init__(self) -> None:
        super().__init__()
        self.order = self.ORDER_ASC
        self.state = self.STATE_STOPPED
        self.export_state = self.STATE_NOT_EXPORTED
        self.template_id: Optional[int] = None
        self.mark_as_exported = False

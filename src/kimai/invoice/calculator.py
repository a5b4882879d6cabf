"""Invoice calculators group timesheets into invoice items and sum them up."""

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Hashable, Optional

from kimai.core.models import Timesheet


@dataclass
class InvoiceItem:
    """One line of an invoice, built from one or more timesheets."""

    begin: datetime
    end: Optional[datetime]
    user_id: int
    project_id: int
    activity_id: int
    description: Optional[str] = None
    duration: int = 0
    rate: float = 0.0
    internal_rate: float = 0.0
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    amount: float = 0.0
    category: str = "work"
    type: str = "timesheet"
    tags: list[str] = field(default_factory=list)
    timesheets: list[Timesheet] = field(default_factory=list)

    @classmethod
    def from_timesheet(cls, timesheet: Timesheet) -> "InvoiceItem":
        item = cls(
            begin=timesheet.begin,
            end=timesheet.end,
            user_id=timesheet.user_id,
            project_id=timesheet.project_id,
            activity_id=timesheet.activity_id,
            category=timesheet.category,
        )
        item.add(timesheet)
        return item

    @property
    def is_fixed_rate(self) -> bool:
        return self.fixed_rate is not None

    @property
    def unit_price(self) -> float:
        """Hourly or fixed price of a single unit."""
        if self.fixed_rate is not None:
            return self.fixed_rate
        return self.hourly_rate or 0.0

    def add(self, timesheet: Timesheet) -> None:
        self.timesheets.append(timesheet)
        self.duration += timesheet.duration
        self.rate = round(self.rate + timesheet.rate, 2)
        self.internal_rate = round(self.internal_rate + (timesheet.internal_rate or 0.0), 2)

        if timesheet.begin < self.begin:
            self.begin = timesheet.begin
        if timesheet.end is not None and (self.end is None or timesheet.end > self.end):
            self.end = timesheet.end

        if timesheet.description:
            if self.description and timesheet.description not in self.description:
                self.description = f"{self.description}\n{timesheet.description}"
            elif not self.description:
                self.description = timesheet.description

        for tag in timesheet.tags:
            if tag not in self.tags:
                self.tags.append(tag)

        if timesheet.fixed_rate is not None:
            self.fixed_rate = timesheet.fixed_rate
            self.amount += 1
            return

        # mixed hourly rates cannot be shown as one unit price
        if len(self.timesheets) == 1:
            self.hourly_rate = timesheet.hourly_rate
        elif self.hourly_rate != timesheet.hourly_rate:
            self.hourly_rate = None
        self.amount = round(self.duration / 3600, 2)


class Calculator(ABC):
    """Base class for invoice calculators.

    Subclasses only decide how timesheets are grouped into items.
    """

    name = ""

    def __init__(self, timesheets: list[Timesheet], vat: float = 0.0):
        self.timesheets = sorted(timesheets, key=lambda t: t.begin)
        self.vat = vat

    @abstractmethod
    def get_entries(self) -> list[InvoiceItem]:
        pass

    def _group(self, key_func: Callable[[Timesheet], Hashable]) -> list[InvoiceItem]:
        groups: "OrderedDict[Hashable, InvoiceItem]" = OrderedDict()
        for timesheet in self.timesheets:
            key = key_func(timesheet)
            if key in groups:
                groups[key].add(timesheet)
            else:
                groups[key] = InvoiceItem.from_timesheet(timesheet)
        return list(groups.values())

    @property
    def subtotal(self) -> float:
        return round(sum(t.rate for t in self.timesheets), 2)

    @property
    def tax(self) -> float:
        return round(self.subtotal * self.vat / 100, 2)

    @property
    def total(self) -> float:
        return round(self.subtotal + self.tax, 2)

    @property
    def time_worked(self) -> int:
        return sum(t.duration for t in self.timesheets)


class DefaultCalculator(Calculator):
    """One invoice item per timesheet."""

    name = "default"

    def get_entries(self) -> list[InvoiceItem]:
        return [InvoiceItem.from_timesheet(t) for t in self.timesheets]


class ShortCalculator(Calculator):
    """A single item summing up all timesheets."""

    name = "short"

    def get_entries(self) -> list[InvoiceItem]:
        if not self.timesheets:
            return []
        return self._group(lambda t: "all")


class UserCalculator(Calculator):
    name = "user"

    def get_entries(self) -> list[InvoiceItem]:
        return self._group(lambda t: t.user_id)


class ActivityCalculator(Calculator):
    name = "activity"

    def get_entries(self) -> list[InvoiceItem]:
        return self._group(lambda t: t.activity_id)


class ProjectCalculator(Calculator):
    name = "project"

    def get_entries(self) -> list[InvoiceItem]:
        return self._group(lambda t: t.project_id)


class DateCalculator(Calculator):
    name = "date"

    def get_entries(self) -> list[InvoiceItem]:
        return self._group(lambda t: t.begin.date())


CALCULATORS: dict[str, type[Calculator]] = {
    c.name: c
    for c in (
        DefaultCalculator,
        ShortCalculator,
        UserCalculator,
        ActivityCalculator,
        ProjectCalculator,
        DateCalculator,
    )
}


def get_calculator(name: str) -> type[Calculator]:
    """Look up a calculator class by name.

    Raises:
        ValueError: For unknown calculators
    """
    if name not in CALCULATORS:
        raise ValueError(f"Unknown invoice calculator: {name}")
    return CALCULATORS[name]

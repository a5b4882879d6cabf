"""Invoice model passed to the renderers."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from kimai.core.models import Activity, Customer, InvoiceTemplate, Project, User
from kimai.core.queries import InvoiceQuery
from kimai.invoice.calculator import Calculator, InvoiceItem
from kimai.utils import formatting
from kimai.utils.duration import format_decimal_hours


@dataclass
class InvoiceModel:
    """Everything needed to render one invoice for one customer."""

    customer: Customer
    template: InvoiceTemplate
    query: InvoiceQuery
    calculator: Calculator
    invoice_number: str
    invoice_date: datetime = field(default_factory=datetime.now)
    user: Optional[User] = None
    users: dict[int, User] = field(default_factory=dict)
    projects: dict[int, Project] = field(default_factory=dict)
    activities: dict[int, Activity] = field(default_factory=dict)

    @property
    def currency(self) -> str:
        return self.customer.currency

    @property
    def locale(self) -> str:
        return self.template.language

    @property
    def due_date(self) -> datetime:
        return self.invoice_date + timedelta(days=self.template.due_days)

    def _money(self, amount: float) -> str:
        return formatting.money(amount, self.currency, self.locale)

    def _amounts(self, prefix: str, amount: float) -> dict[str, Any]:
        # "_nc" is the number without currency symbol
        return {
            prefix: self._money(amount),
            f"{prefix}_nc": f"{amount:,.2f}",
            f"{prefix}_plain": amount,
        }

    def to_dict(self) -> dict[str, Any]:
        """Flat placeholder values for the invoice header."""
        calculator = self.calculator
        values: dict[str, Any] = {
            "invoice.due_date": self.due_date.date().isoformat(),
            "invoice.date": self.invoice_date.date().isoformat(),
            "invoice.number": self.invoice_number,
            "invoice.currency": self.currency,
            "invoice.currency_symbol": formatting.currency(self.currency, self.locale),
            "invoice.vat": self.template.vat,
            "invoice.total_time": formatting.duration(calculator.time_worked),
            "invoice.duration_decimal": format_decimal_hours(calculator.time_worked),
        }
        values.update(self._amounts("invoice.tax", calculator.tax))
        values.update(self._amounts("invoice.total", calculator.total))
        values.update(self._amounts("invoice.subtotal", calculator.subtotal))

        template = self.template
        values.update(
            {
                "template.name": template.name,
                "template.company": template.company,
                "template.address": template.address or "",
                "template.title": template.title,
                "template.payment_terms": template.payment_terms or "",
                "template.due_days": template.due_days,
                "template.vat_id": template.vat_id or "",
                "template.contact": template.contact or "",
                "template.payment_details": template.payment_details or "",
            }
        )

        begin = self.query.begin or self.invoice_date
        end = self.query.end or self.invoice_date
        values.update(
            {
                "query.begin": begin.date().isoformat(),
                "query.end": end.date().isoformat(),
                "query.day": begin.strftime("%d"),
                "query.month": begin.strftime("%B"),
                "query.month_number": begin.strftime("%m"),
                "query.year": begin.strftime("%Y"),
            }
        )

        customer = self.customer
        values.update(
            {
                "customer.id": customer.id,
                "customer.name": customer.name,
                "customer.number": customer.number or "",
                "customer.company": customer.company or "",
                "customer.address": customer.address or "",
                "customer.country": formatting.country(customer.country, self.locale),
                "customer.comment": customer.comment or "",
            }
        )

        if self.user is not None:
            values.update(
                {
                    "user.name": self.user.username,
                    "user.alias": self.user.alias or "",
                    "user.title": self.user.title or "",
                    "user.email": self.user.email,
                }
            )

        # project placeholders only when the invoice covers a single project
        project_ids = {t.project_id for t in calculator.timesheets}
        if len(project_ids) == 1:
            project = self.projects.get(project_ids.pop())
            if project is not None:
                values.update(
                    {
                        "project.id": project.id,
                        "project.name": project.name,
                        "project.comment": project.comment or "",
                        "project.order_number": project.order_number or "",
                        "project.budget_time": formatting.duration(project.time_budget),
                        "project.budget_time_decimal": format_decimal_hours(project.time_budget),
                    }
                )
                values.update(self._amounts("project.budget_money", project.budget))
        return values

    def item_to_dict(self, item: InvoiceItem, row: int) -> dict[str, Any]:
        """Flat placeholder values for one invoice line."""
        user = self.users.get(item.user_id)
        project = self.projects.get(item.project_id)
        activity = self.activities.get(item.activity_id)
        values: dict[str, Any] = {
            "entry.row": row,
            "entry.description": item.description or (activity.name if activity else ""),
            "entry.amount": item.amount,
            "entry.currency": self.currency,
            "entry.duration": item.duration,
            "entry.duration_decimal": format_decimal_hours(item.duration),
            "entry.duration_minutes": item.duration // 60,
            "entry.begin": item.begin.date().isoformat(),
            "entry.begin_time": item.begin.strftime("%H:%M"),
            "entry.begin_timestamp": int(item.begin.timestamp()),
            "entry.end": item.end.date().isoformat() if item.end else "",
            "entry.end_time": item.end.strftime("%H:%M") if item.end else "",
            "entry.end_timestamp": int(item.end.timestamp()) if item.end else None,
            "entry.date": item.begin.date().isoformat(),
            "entry.user_id": item.user_id,
            "entry.user_name": user.username if user else "",
            "entry.user_alias": (user.alias or "") if user else "",
            "entry.user_title": (user.title or "") if user else "",
            "entry.activity": activity.name if activity else "",
            "entry.activity_id": item.activity_id,
            "entry.project": project.name if project else "",
            "entry.project_id": item.project_id,
            "entry.customer": self.customer.name,
            "entry.customer_id": self.customer.id,
            "entry.category": item.category,
            "entry.type": item.type,
            "entry.tags": ", ".join(item.tags),
        }
        values.update(self._amounts("entry.rate", item.unit_price))
        values.update(self._amounts("entry.total", item.rate))
        return values

    def entries_to_dicts(self) -> list[dict[str, Any]]:
        return [
            self.item_to_dict(item, row)
            for row, item in enumerate(self.calculator.get_entries(), start=1)
        ]

"""Invoice number generation from a format string.

Supported placeholders:

- ``{date}``: invoice date as ``ymd``
- ``{Y}`` / ``{y}``: four / two digit year
- ``{M}`` / ``{m}``: month with / without leading zero
- ``{D}`` / ``{d}``: day with / without leading zero
- ``{c}``: counter over all invoices
- ``{cy}`` / ``{cm}``: counter within the year / month
- ``{cc}``: counter for the customer

Every placeholder accepts a padding length, e.g. ``{cy,3}`` gives ``007``.
"""

import re
from datetime import datetime

from kimai.core.models import Invoice

PLACEHOLDER = re.compile(r"\{(date|Y|y|M|m|D|d|c|cy|cm|cc)(?:,(\d+))?\}")
MAX_ATTEMPTS = 100


class DefaultNumberGenerator:
    name = "default"

    def __init__(self, number_format: str, invoices: list[Invoice]):
        self.number_format = number_format
        self.invoices = invoices

    def _counter(self, key: str, customer_id: int, date: datetime) -> int:
        if key == "c":
            matching = self.invoices
        elif key == "cy":
            matching = [i for i in self.invoices if i.created_at.year == date.year]
        elif key == "cm":
            matching = [
                i
                for i in self.invoices
                if (i.created_at.year, i.created_at.month) == (date.year, date.month)
            ]
        else:
            matching = [i for i in self.invoices if i.customer_id == customer_id]
        return len(matching) + 1

    def _render(self, customer_id: int, date: datetime, increment: int) -> str:
        def replace(match: "re.Match[str]") -> str:
            key, pad = match.group(1), match.group(2)
            if key == "date":
                value = date.strftime("%y%m%d")
            elif key == "Y":
                value = date.strftime("%Y")
            elif key == "y":
                value = date.strftime("%y")
            elif key == "M":
                value = date.strftime("%m")
            elif key == "m":
                value = str(date.month)
            elif key == "D":
                value = date.strftime("%d")
            elif key == "d":
                value = str(date.day)
            else:
                value = str(self._counter(key, customer_id, date) + increment)
            return value.zfill(int(pad)) if pad else value

        return PLACEHOLDER.sub(replace, self.number_format)

    def get_invoice_number(self, customer_id: int, date: datetime) -> str:
        """Next free invoice number for the customer.

        Raises:
            ValueError: If no unused number could be found
        """
        existing = {i.invoice_number for i in self.invoices}
        for increment in range(MAX_ATTEMPTS):
            number = self._render(customer_id, date, increment)
            if number not in existing:
                return number
        raise ValueError(f"Could not generate a unique invoice number for format {self.number_format}")

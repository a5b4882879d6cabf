"""Invoice renderers turning an InvoiceModel into a downloadable file."""

import io
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import openpyxl  # type: ignore[import-untyped]
from openpyxl.styles import Alignment, Font, PatternFill  # type: ignore[import-untyped]
from openpyxl.utils import get_column_letter  # type: ignore[import-untyped]

from kimai.invoice.model import InvoiceModel

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{([\w.\-]+)\}")
ENTRY_PREFIX = "${entry."


@dataclass
class InvoiceDocument:
    """A file used as the layout of an invoice.

    Built-in documents without a path are generated from scratch.
    """

    name: str
    path: Optional[Path] = None
    built_in: bool = False

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()


def replace_placeholders(text: str, values: dict[str, Any]) -> str:
    """Replace ``${key}`` markers, unknown keys become empty strings."""

    def replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(replace, text)


class Renderer(ABC):
    """Base class for all invoice renderers."""

    media_type = "application/octet-stream"

    @abstractmethod
    def get_file_extension(self) -> str:
        pass

    @abstractmethod
    def render(self, document: InvoiceDocument, model: InvoiceModel) -> bytes:
        pass

    def supports(self, document: InvoiceDocument) -> bool:
        return document.extension == self.get_file_extension()


class JsonRenderer(Renderer):
    """Dump all placeholder values, used to debug custom documents."""

    media_type = "application/json"

    def get_file_extension(self) -> str:
        return ".json"

    def render(self, document: InvoiceDocument, model: InvoiceModel) -> bytes:
        indent = 4
        if document.path is not None and document.path.exists():
            options = json.loads(document.path.read_text(encoding="utf-8") or "{}")
            indent = int(options.get("indent", indent))
        data = {"model": model.to_dict(), "entries": model.entries_to_dicts()}
        return json.dumps(data, indent=indent, default=str).encode("utf-8")


class MarkdownRenderer(Renderer):
    """Fill a markdown document; lines with entry placeholders repeat per item."""

    media_type = "text/markdown"

    def get_file_extension(self) -> str:
        return ".md"

    def render(self, document: InvoiceDocument, model: InvoiceModel) -> bytes:
        if document.path is None:
            raise ValueError(f"Markdown document {document.name} has no file")

        values = model.to_dict()
        entries = model.entries_to_dicts()
        lines = []
        for line in document.path.read_text(encoding="utf-8").splitlines():
            if ENTRY_PREFIX in line:
                for entry in entries:
                    lines.append(replace_placeholders(line, {**values, **entry}))
            else:
                lines.append(replace_placeholders(line, values))
        return ("\n".join(lines) + "\n").encode("utf-8")


class XlsxRenderer(Renderer):
    """Render a spreadsheet with openpyxl.

    Uploaded workbooks are used as a base: the first row containing entry
    placeholders is repeated for every invoice item. Without a base workbook
    a plain layout is generated.
    """

    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def get_file_extension(self) -> str:
        return ".xlsx"

    def render(self, document: InvoiceDocument, model: InvoiceModel) -> bytes:
        if document.path is not None and document.path.exists():
            wb = openpyxl.load_workbook(document.path)
            self._fill_workbook(wb, model)
        else:
            wb = openpyxl.Workbook()
            self._create_invoice_sheet(wb, model)

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def _fill_workbook(self, wb: Any, model: InvoiceModel) -> None:
        values = model.to_dict()
        entries = model.entries_to_dicts()
        ws = wb.active

        entry_row = None
        for row in ws.iter_rows():
            if any(isinstance(c.value, str) and ENTRY_PREFIX in c.value for c in row):
                entry_row = row[0].row
                break

        if entry_row is not None:
            template = [c.value for c in ws[entry_row]]
            if len(entries) > 1:
                ws.insert_rows(entry_row + 1, amount=len(entries) - 1)
            for offset, entry in enumerate(entries):
                merged = {**values, **entry}
                for col, raw in enumerate(template, start=1):
                    value = replace_placeholders(raw, merged) if isinstance(raw, str) else raw
                    ws.cell(row=entry_row + offset, column=col, value=value)
            if not entries:
                ws.delete_rows(entry_row)

        for row in ws.iter_rows():
            for cell in row:
                if isinstance(cell.value, str) and "${" in cell.value:
                    cell.value = replace_placeholders(cell.value, values)

    def _create_invoice_sheet(self, wb: Any, model: InvoiceModel) -> None:
        values = model.to_dict()
        ws = wb.active
        ws.title = "Invoice"

        ws["A1"] = values["template.title"]
        ws["A1"].font = Font(bold=True, size=14)
        ws["A3"] = "Invoice number:"
        ws["B3"] = values["invoice.number"]
        ws["A4"] = "Invoice date:"
        ws["B4"] = values["invoice.date"]
        ws["A5"] = "Due date:"
        ws["B5"] = values["invoice.due_date"]
        ws["A6"] = "Customer:"
        ws["B6"] = values["customer.name"]

        headers = ["#", "Date", "Description", "Amount", "Unit price", "Total"]
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_font = Font(bold=True, color="FFFFFF")
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=8, column=col, value=header)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center", vertical="center")

        row = 9
        for entry in model.entries_to_dicts():
            ws.cell(row, 1, entry["entry.row"])
            ws.cell(row, 2, entry["entry.date"])
            ws.cell(row, 3, entry["entry.description"])
            ws.cell(row, 4, entry["entry.amount"])
            ws.cell(row, 5, entry["entry.rate_plain"])
            ws.cell(row, 6, entry["entry.total_plain"])
            row += 1

        row += 1
        for label, key in (
            ("Subtotal", "invoice.subtotal_plain"),
            (f"VAT {values['invoice.vat']}%", "invoice.tax_plain"),
            ("Total", "invoice.total_plain"),
        ):
            ws.cell(row, 5, label).font = Font(bold=True)
            ws.cell(row, 6, values[key])
            row += 1

        for col in range(1, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 15
        ws.column_dimensions["C"].width = 40


RENDERERS: list[Renderer] = [JsonRenderer(), MarkdownRenderer(), XlsxRenderer()]


def get_renderer(document: InvoiceDocument) -> Renderer:
    """Find the renderer for a document.

    Raises:
        ValueError: If no renderer supports the document type
    """
    for renderer in RENDERERS:
        if renderer.supports(document):
            return renderer
    raise ValueError(f"No renderer available for document {document.name}")

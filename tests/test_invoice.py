"""Tests for invoice calculators, numbers, documents and the invoice service."""

import io
import json
from datetime import datetime, timedelta

import openpyxl  # type: ignore[import-untyped]
import pytest  # type: ignore[import-not-found]

from kimai.core.config import ConfigManager
from kimai.core.exceptions import NotFoundError, ValidationError
from kimai.core.models import Invoice, InvoiceStatus, InvoiceTemplate, Timesheet
from kimai.core.queries import InvoiceQuery
from kimai.core.storage import StorageManager
from kimai.invoice.calculator import (
    ActivityCalculator,
    DateCalculator,
    DefaultCalculator,
    ShortCalculator,
    UserCalculator,
    get_calculator,
)
from kimai.invoice.number_generator import DefaultNumberGenerator
from kimai.invoice.renderer import InvoiceDocument, get_renderer, replace_placeholders
from kimai.invoice.repository import InvoiceDocumentRepository
from kimai.invoice.service import InvoiceService

BEGIN = datetime(2024, 5, 6, 8, 0)


def make_timesheet(hours: float, day: int = 0, user_id: int = 1, activity_id: int = 1, **kwargs) -> Timesheet:  # type: ignore[no-untyped-def]
    begin = BEGIN + timedelta(days=day)
    seconds = int(hours * 3600)
    values = {
        "user_id": user_id,
        "project_id": 1,
        "activity_id": activity_id,
        "begin": begin,
        "end": begin + timedelta(seconds=seconds),
        "duration": seconds,
        "hourly_rate": 100.0,
        "rate": round(hours * 100, 2),
    }
    values.update(kwargs)
    return Timesheet(**values)


@pytest.fixture  # type: ignore[misc]
def service(storage: StorageManager, config: ConfigManager) -> InvoiceService:
    return InvoiceService(storage, config)


@pytest.fixture  # type: ignore[misc]
def billable(storage: StorageManager, records) -> list[Timesheet]:  # type: ignore[no-untyped-def]
    """Two stopped timesheets of the records project."""
    result = []
    for day, hours in ((0, 2), (1, 1.5)):
        result.append(
            storage.save_timesheet(
                make_timesheet(
                    hours,
                    day=day,
                    user_id=records.user.id,
                    project_id=records.project.id,
                    activity_id=records.activity.id,
                    description=f"Work day {day}",
                )
            )
        )
    return result


class TestCalculators:
    """Test invoice item grouping."""

    def test_default_calculator(self) -> None:
        calculator = DefaultCalculator([make_timesheet(2, day=1), make_timesheet(1)], vat=19)

        entries = calculator.get_entries()

        assert len(entries) == 2
        assert entries[0].begin == BEGIN
        assert calculator.subtotal == 300.0
        assert calculator.tax == 57.0
        assert calculator.total == 357.0
        assert calculator.time_worked == 3 * 3600

    def test_short_calculator(self) -> None:
        calculator = ShortCalculator([make_timesheet(2), make_timesheet(1, day=1, description="x")])

        entries = calculator.get_entries()

        assert len(entries) == 1
        assert entries[0].duration == 3 * 3600
        assert entries[0].rate == 300.0
        assert entries[0].amount == 3.0
        assert entries[0].unit_price == 100.0
        assert entries[0].end == BEGIN + timedelta(days=1, hours=1)
        assert ShortCalculator([]).get_entries() == []

    def test_mixed_hourly_rates(self) -> None:
        calculator = ShortCalculator([make_timesheet(1), make_timesheet(1, day=1, hourly_rate=50.0, rate=50.0)])

        item = calculator.get_entries()[0]

        assert item.hourly_rate is None
        assert item.rate == 150.0

    def test_fixed_rate_items_count_units(self) -> None:
        calculator = ShortCalculator(
            [make_timesheet(1, fixed_rate=30.0, rate=30.0), make_timesheet(2, day=1, fixed_rate=30.0, rate=30.0)]
        )

        item = calculator.get_entries()[0]

        assert item.is_fixed_rate
        assert item.amount == 2
        assert item.unit_price == 30.0

    def test_group_by_user_activity_and_date(self) -> None:
        timesheets = [
            make_timesheet(1, user_id=1, activity_id=1),
            make_timesheet(1, user_id=2, activity_id=1),
            make_timesheet(1, day=1, user_id=1, activity_id=2),
        ]

        assert len(UserCalculator(timesheets).get_entries()) == 2
        assert len(ActivityCalculator(timesheets).get_entries()) == 2
        assert len(DateCalculator(timesheets).get_entries()) == 2

    def test_descriptions_are_merged_once(self) -> None:
        calculator = ShortCalculator(
            [make_timesheet(1, description="A"), make_timesheet(1, day=1, description="B"), make_timesheet(1, day=2, description="A")]
        )
        assert calculator.get_entries()[0].description == "A\nB"

    def test_get_calculator(self) -> None:
        assert get_calculator("short") is ShortCalculator
        with pytest.raises(ValueError, match="Unknown"):
            get_calculator("weekly")


class TestNumberGenerator:
    """Test invoice number formats."""

    def invoice(self, number: str, created: datetime, customer_id: int = 1) -> Invoice:
        return Invoice(invoice_number=number, customer_id=customer_id, user_id=1, created_at=created)

    def test_default_format(self) -> None:
        generator = DefaultNumberGenerator("{Y}/{cy,3}", [])
        assert generator.get_invoice_number(1, datetime(2024, 5, 6)) == "2024/001"

    def test_counters(self) -> None:
        invoices = [
            self.invoice("A", datetime(2023, 12, 1)),
            self.invoice("B", datetime(2024, 5, 1), customer_id=2),
            self.invoice("C", datetime(2024, 4, 1)),
        ]
        date = datetime(2024, 5, 6)

        assert DefaultNumberGenerator("{c}", invoices).get_invoice_number(1, date) == "4"
        assert DefaultNumberGenerator("{cy}", invoices).get_invoice_number(1, date) == "3"
        assert DefaultNumberGenerator("{cm}", invoices).get_invoice_number(1, date) == "2"
        assert DefaultNumberGenerator("{cc,2}", invoices).get_invoice_number(1, date) == "03"

    def test_date_placeholders(self) -> None:
        generator = DefaultNumberGenerator("{date}-{y}{M}{D}-{m}/{d}", [])
        assert generator.get_invoice_number(1, datetime(2024, 5, 6)) == "240506-240506-5/6"

    def test_existing_number_is_skipped(self) -> None:
        invoices = [self.invoice("2024/002", datetime(2024, 1, 1))]

        number = DefaultNumberGenerator("{Y}/{cy,3}", invoices).get_invoice_number(1, datetime(2024, 5, 6))

        assert number == "2024/003"

    def test_static_format_cannot_be_unique(self) -> None:
        invoices = [self.invoice("INV", datetime(2024, 1, 1))]

        with pytest.raises(ValueError, match="unique"):
            DefaultNumberGenerator("INV", invoices).get_invoice_number(1, datetime(2024, 5, 6))


class TestDocumentRepository:
    """Test built-in and uploaded documents."""

    def test_builtin_documents(self, temp_dir) -> None:  # type: ignore[no-untyped-def]
        names = [d.name for d in InvoiceDocumentRepository(temp_dir / "docs").find_all()]

        assert "default.xlsx" in names
        assert "default.md" in names
        assert "default.json" in names

    def test_upload_sanitizes_name(self, temp_dir) -> None:  # type: ignore[no-untyped-def]
        repository = InvoiceDocumentRepository(temp_dir / "docs")

        document = repository.upload("My Fancy Invoice-Layout.MD", b"# ${invoice.number}")

        assert document.name == "my_fancy_invoicelayo.md"
        assert repository.find_by_name(document.name) is not None
        assert not repository.find_by_name(document.name).built_in  # type: ignore[union-attr]

    def test_upload_rejects_unsupported_and_reserved(self, temp_dir) -> None:  # type: ignore[no-untyped-def]
        repository = InvoiceDocumentRepository(temp_dir / "docs")

        with pytest.raises(ValidationError, match="Unsupported"):
            repository.upload("invoice.docx", b"")
        with pytest.raises(ValidationError, match="reserved"):
            repository.upload("default.md", b"")
        with pytest.raises(ValidationError, match="Invalid"):
            repository.upload("###.md", b"")

    def test_delete(self, temp_dir) -> None:  # type: ignore[no-untyped-def]
        repository = InvoiceDocumentRepository(temp_dir / "docs")
        document = repository.upload("custom.md", b"x")

        with pytest.raises(ValidationError, match="used"):
            repository.delete(document, used_by=["custom.md"])
        with pytest.raises(ValidationError, match="built-in"):
            repository.delete(repository.find_by_name("default.md"), used_by=[])  # type: ignore[arg-type]

        repository.delete(document, used_by=[])
        assert repository.find_by_name("custom.md") is None

    def test_get_renderer(self) -> None:
        assert get_renderer(InvoiceDocument(name="a.json")).media_type == "application/json"
        with pytest.raises(ValueError):
            get_renderer(InvoiceDocument(name="a.pdf"))

    def test_replace_placeholders(self) -> None:
        assert replace_placeholders("${a.b} / ${missing}", {"a.b": 5}) == "5 / "


class TestInvoiceService:
    """Test invoice creation and management."""

    def template(self, service: InvoiceService, **kwargs) -> InvoiceTemplate:  # type: ignore[no-untyped-def]
        data = {"name": "Default", "title": "Invoice", "company": "Kimai Inc.", "renderer": "default.md", "vat": 19.0}
        data.update(kwargs)
        return service.create_template(data)

    def query(self, template: InvoiceTemplate) -> InvoiceQuery:
        query = InvoiceQuery()
        query.template_id = template.id
        return query

    def test_create_template_validates(self, service: InvoiceService) -> None:
        with pytest.raises(ValidationError):
            self.template(service, calculator="weekly")
        with pytest.raises(ValidationError) as exc_info:
            self.template(service, renderer="missing.md")
        assert exc_info.value.field == "renderer"
        with pytest.raises(ValidationError):
            self.template(service, number_generator="random")

        assert self.template(service).id is not None

    def test_update_and_copy_template(self, service: InvoiceService) -> None:
        template = self.template(service)

        updated = service.update_template(template, {"title": "Rechnung", "calculator": "short"})
        copy = service.copy_template(updated)

        assert service.get_template(template.id).title == "Rechnung"  # type: ignore[arg-type]
        assert copy.name == "Default (1)"
        assert copy.calculator == "short"

    def test_delete_template_clears_customer_default(self, service: InvoiceService, storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)
        records.customer.default_template_id = template.id
        storage.save_customer(records.customer)

        service.delete_template(template)

        assert storage.get_customer(records.customer.id).default_template_id is None
        with pytest.raises(NotFoundError):
            service.get_template(template.id)  # type: ignore[arg-type]

    def test_create_models_requires_template(self, service: InvoiceService, billable) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(ValidationError, match="No invoice template"):
            service.create_models(InvoiceQuery())

    def test_preview_markdown(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)

        rendered = service.preview(self.query(template), records.customer.id, records.user)
        text = rendered.content.decode("utf-8")

        assert rendered.filename.endswith("_001.md")
        assert rendered.media_type == "text/markdown"
        assert "# Invoice" in text
        assert "Work day 0" in text
        assert "Work day 1" in text
        assert "€350.00" in text
        assert "€416.50" in text
        assert "${" not in text

    def test_preview_json(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service, renderer="default.json", calculator="short")

        rendered = service.preview(self.query(template), records.customer.id)
        data = json.loads(rendered.content)

        assert data["model"]["customer.name"] == "Acme"
        assert data["model"]["invoice.subtotal_plain"] == 350.0
        assert data["model"]["project.name"] == "Website"
        assert len(data["entries"]) == 1
        assert data["entries"][0]["entry.duration"] == int(3.5 * 3600)

    def test_preview_without_data(self, service: InvoiceService, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)
        with pytest.raises(NotFoundError):
            service.preview(self.query(template), records.customer.id)

    def test_generated_xlsx(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service, renderer="default.xlsx")

        rendered = service.preview(self.query(template), records.customer.id)
        ws = openpyxl.load_workbook(io.BytesIO(rendered.content)).active

        assert ws["A1"].value == "Invoice"
        assert ws["B6"].value == "Acme"
        assert ws.cell(9, 3).value == "Work day 0"
        assert ws.cell(10, 6).value == 150.0

    def test_uploaded_xlsx_repeats_entry_row(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        wb = openpyxl.Workbook()
        ws = wb.active
        ws["A1"] = "Invoice ${invoice.number}"
        ws["A3"] = "${entry.description}"
        ws["B3"] = "${entry.total_plain}"
        ws["A4"] = "Total ${invoice.total_plain}"
        buffer = io.BytesIO()
        wb.save(buffer)
        service.upload_document("company.xlsx", buffer.getvalue())
        template = self.template(service, renderer="company.xlsx")

        rendered = service.preview(self.query(template), records.customer.id)
        ws = openpyxl.load_workbook(io.BytesIO(rendered.content)).active

        assert ws["A1"].value.startswith("Invoice ") and ws["A1"].value.endswith("/001")
        assert ws["A3"].value == "Work day 0"
        assert ws["A4"].value == "Work day 1"
        assert ws["B4"].value == "150.0"
        assert ws["A5"].value == "Total 416.5"

    def test_create_invoices(self, service: InvoiceService, storage: StorageManager, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)
        query = self.query(template)
        query.mark_as_exported = True

        invoices = service.create_invoices(query, records.admin)

        assert len(invoices) == 1
        invoice = invoices[0]
        assert invoice.total == 416.5
        assert invoice.tax == 66.5
        assert invoice.status == InvoiceStatus.NEW.value
        assert service.get_invoice_file(invoice) is not None
        assert all(t.exported for t in storage.load_timesheets())
        assert storage.get_customer(records.customer.id).default_template_id == template.id

        # exported records are not invoiced twice
        with pytest.raises(NotFoundError):
            service.preview(self.query(template), records.customer.id)

    def test_invoice_numbers_increase(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)

        first = service.create_invoices(self.query(template), records.admin)[0]
        second = service.create_invoices(self.query(template), records.admin)[0]

        assert first.invoice_number != second.invoice_number
        assert second.invoice_number.endswith("/002")

    def test_change_status(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)
        invoice = service.create_invoices(self.query(template), records.admin)[0]

        paid = service.change_status(invoice, "paid", datetime(2024, 6, 1))
        assert paid.payment_date == datetime(2024, 6, 1)

        pending = service.change_status(invoice, "pending")
        assert pending.payment_date is None

        with pytest.raises(ValidationError):
            service.change_status(invoice, "lost")

    def test_delete_invoice_removes_file(self, service: InvoiceService, billable, records) -> None:  # type: ignore[no-untyped-def]
        template = self.template(service)
        invoice = service.create_invoices(self.query(template), records.admin)[0]
        path = service.get_invoice_file(invoice)

        service.delete_invoice(invoice)

        assert path is not None and not path.exists()
        with pytest.raises(NotFoundError):
            service.get_invoice(invoice.id)  # type: ignore[arg-type]

    def test_delete_unsaved_records(self, service: InvoiceService, records) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(NotFoundError):
            service.delete_invoice(Invoice(invoice_number="1", customer_id=records.customer.id, user_id=records.user.id))
        with pytest.raises(NotFoundError):
            service.delete_template(InvoiceTemplate(name="Draft", title="Invoice", company="Kimai Inc."))

    def test_documents(self, service: InvoiceService) -> None:
        service.upload_document("custom.md", b"# ${invoice.number}")
        self.template(service, renderer="custom.md")

        documents = {d["name"]: d for d in service.list_documents()}

        assert documents["custom.md"]["used"] is True
        assert documents["custom.md"]["template"] == "Default"
        assert documents["default.json"]["built_in"] is True

        with pytest.raises(ValidationError):
            service.delete_document("custom.md")
        with pytest.raises(NotFoundError):
            service.delete_document("missing.md")

"""Invoice creation, archive and template management."""

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from kimai.core.config import ConfigManager
from kimai.core.exceptions import NotFoundError, ValidationError
from kimai.core.models import Invoice, InvoiceStatus, InvoiceTemplate, Timesheet, User
from kimai.core.queries import InvoiceQuery
from kimai.core.storage import StorageManager
from kimai.invoice.calculator import get_calculator
from kimai.invoice.model import InvoiceModel
from kimai.invoice.number_generator import DefaultNumberGenerator
from kimai.invoice.renderer import InvoiceDocument, get_renderer
from kimai.invoice.repository import InvoiceDocumentRepository
from kimai.utils.file_helper import FileHelper, convert_to_ascii_filename

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = {f.name for f in dataclasses.fields(InvoiceTemplate)} - {"id"}


@dataclasses.dataclass
class RenderedInvoice:
    content: bytes
    filename: str
    media_type: str


class InvoiceService:
    def __init__(self, storage: StorageManager, config: ConfigManager):
        self.storage = storage
        self.config = config
        self.documents = InvoiceDocumentRepository(config.get_path("invoice.documents_dir"))
        self.archive_dir = config.get_path("invoice.archive_dir")

    # templates

    def get_template(self, template_id: int) -> InvoiceTemplate:
        template = self.storage.get_invoice_template(template_id)
        if template is None:
            raise NotFoundError(f"Invoice template {template_id} not found")
        return template

    def _check_template(self, template: InvoiceTemplate) -> None:
        get_calculator(template.calculator)
        if template.number_generator != DefaultNumberGenerator.name:
            raise ValidationError(
                f"Unknown number generator: {template.number_generator}", field="number_generator"
            )
        if self.documents.find_by_name(template.renderer) is None:
            raise ValidationError(f"Unknown invoice document: {template.renderer}", field="renderer")
        if not template.name.strip():
            raise ValidationError("Template name must not be empty", field="name")

    def create_template(self, data: dict[str, Any]) -> InvoiceTemplate:
        values = {k: v for k, v in data.items() if k in TEMPLATE_FIELDS}
        try:
            template = InvoiceTemplate(**values)
        except TypeError as e:
            raise ValidationError(f"Invalid invoice template: {e}")
        try:
            self._check_template(template)
        except ValueError as e:
            raise ValidationError(str(e), field="calculator")
        saved = self.storage.save_invoice_template(template)
        logger.info(f"Created invoice template {saved.name}")
        return saved

    def update_template(self, template: InvoiceTemplate, data: dict[str, Any]) -> InvoiceTemplate:
        changes = {k: v for k, v in data.items() if k in TEMPLATE_FIELDS and v is not None}
        updated = dataclasses.replace(template, **changes)
        try:
            self._check_template(updated)
        except ValueError as e:
            raise ValidationError(str(e), field="calculator")
        return self.storage.save_invoice_template(updated)

    def copy_template(self, template: InvoiceTemplate) -> InvoiceTemplate:
        copy = dataclasses.replace(template, id=None, name=f"{template.name} (1)")
        return self.storage.save_invoice_template(copy)

    def delete_template(self, template: InvoiceTemplate) -> None:
        if template.id is None:
            raise NotFoundError("Invoice template not found")
        for customer in self.storage.load_customers():
            if customer.default_template_id == template.id:
                customer.default_template_id = None
                self.storage.save_customer(customer)
        self.storage.delete_invoice_template(template.id)
        logger.info(f"Deleted invoice template {template.name}")

    # documents

    def list_documents(self) -> list[dict[str, Any]]:
        used = {t.renderer: t for t in self.storage.load_invoice_templates()}
        return [
            {
                "name": d.name,
                "built_in": d.built_in,
                "used": d.name in used,
                "template": used[d.name].name if d.name in used else None,
            }
            for d in self.documents.find_all()
        ]

    def upload_document(self, filename: str, content: bytes) -> InvoiceDocument:
        return self.documents.upload(filename, content)

    def delete_document(self, name: str) -> None:
        document = self.documents.find_by_name(name)
        if document is None:
            raise NotFoundError(f"Invoice document {name} not found")
        used_by = [t.renderer for t in self.storage.load_invoice_templates()]
        self.documents.delete(document, used_by)

    # invoices

    def _timesheets(self, query: InvoiceQuery) -> list[Timesheet]:
        project_customer = {p.id: p.customer_id for p in self.storage.load_projects() if p.id}
        return query.apply(self.storage.load_timesheets(), project_customer)

    def create_models(self, query: InvoiceQuery, user: Optional[User] = None) -> list[InvoiceModel]:
        """Build one invoice model per customer found in the query result.

        The template of the query wins, otherwise the customer's default
        template is used.

        Raises:
            ValidationError: If a customer has no template to use
        """
        timesheets = self._timesheets(query)
        projects = {p.id: p for p in self.storage.load_projects() if p.id is not None}
        activities = {a.id: a for a in self.storage.load_activities() if a.id is not None}
        users = {u.id: u for u in self.storage.load_users() if u.id is not None}

        by_customer: dict[int, list[Timesheet]] = {}
        for timesheet in timesheets:
            project = projects.get(timesheet.project_id)
            if project is not None:
                by_customer.setdefault(project.customer_id, []).append(timesheet)

        invoices = self.storage.load_invoices()
        number_format = self.config.get("invoice.number_format", "{Y}/{cy,3}")
        invoice_date = datetime.now()
        models = []
        for customer_id, customer_timesheets in sorted(by_customer.items()):
            customer = self.storage.get_customer(customer_id)
            if customer is None:
                continue
            template_id = query.template_id or customer.default_template_id
            if template_id is None:
                raise ValidationError(
                    f"No invoice template selected for customer {customer.name}", field="template"
                )
            template = self.get_template(template_id)
            calculator = get_calculator(template.calculator)(customer_timesheets, template.vat)
            number = DefaultNumberGenerator(number_format, invoices).get_invoice_number(
                customer_id, invoice_date
            )
            # reserve the number for the following customers
            invoices.append(
                Invoice(invoice_number=number, customer_id=customer_id, user_id=0, created_at=invoice_date)
            )
            models.append(
                InvoiceModel(
                    customer=customer,
                    template=template,
                    query=query,
                    calculator=calculator,
                    invoice_number=number,
                    invoice_date=invoice_date,
                    user=user,
                    users=users,
                    projects=projects,
                    activities=activities,
                )
            )
        return models

    def render(self, model: InvoiceModel) -> RenderedInvoice:
        document = self.documents.find_by_name(model.template.renderer)
        if document is None:
            raise ValidationError(
                f"Unknown invoice document: {model.template.renderer}", field="renderer"
            )
        renderer = get_renderer(document)
        content = renderer.render(document, model)
        filename = convert_to_ascii_filename(model.invoice_number) + renderer.get_file_extension()
        return RenderedInvoice(content=content, filename=filename, media_type=renderer.media_type)

    def preview(self, query: InvoiceQuery, customer_id: int, user: Optional[User] = None) -> RenderedInvoice:
        query.customers = [customer_id]
        models = self.create_models(query, user)
        if not models:
            raise NotFoundError("No data to invoice for this customer")
        return self.render(models[0])

    def create_invoices(self, query: InvoiceQuery, user: User) -> list[Invoice]:
        """Render and archive invoices for every customer of the query."""
        if user.id is None:
            raise ValueError("Invoices can only be created by a stored user")
        archive = FileHelper(self.archive_dir).get_data_directory()
        created = []
        for model in self.create_models(query, user):
            rendered = self.render(model)
            (archive / rendered.filename).write_bytes(rendered.content)

            calculator = model.calculator
            invoice = self.storage.save_invoice(
                Invoice(
                    invoice_number=model.invoice_number,
                    customer_id=model.customer.id,
                    user_id=user.id,
                    template_id=model.template.id,
                    created_at=model.invoice_date,
                    total=calculator.total,
                    tax=calculator.tax,
                    vat=model.template.vat,
                    currency=model.currency,
                    due_days=model.template.due_days,
                    filename=rendered.filename,
                )
            )

            if model.customer.default_template_id is None:
                model.customer.default_template_id = model.template.id
                self.storage.save_customer(model.customer)

            if query.mark_as_exported:
                for timesheet in calculator.timesheets:
                    timesheet.exported = True
                self.storage.save_timesheets(calculator.timesheets)

            logger.info(f"Created invoice {invoice.invoice_number} for customer {invoice.customer_id}")
            created.append(invoice)
        return created

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.storage.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    def get_invoice_file(self, invoice: Invoice) -> Optional[Path]:
        if not invoice.filename:
            return None
        path = self.archive_dir / invoice.filename
        return path if path.is_file() else None

    def change_status(
        self, invoice: Invoice, status: str, payment_date: Optional[datetime] = None
    ) -> Invoice:
        """Set the invoice status; paying an invoice records the payment date.

        Raises:
            ValidationError: Unknown status
        """
        try:
            new_status = InvoiceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown invoice status: {status}", field="status")

        invoice.status = new_status.value
        if new_status == InvoiceStatus.PAID:
            invoice.payment_date = payment_date or invoice.payment_date or datetime.now()
        else:
            invoice.payment_date = None
        return self.storage.save_invoice(invoice)

    def delete_invoice(self, invoice: Invoice) -> None:
        if invoice.id is None:
            raise NotFoundError("Invoice not found")
        path = self.get_invoice_file(invoice)
        if path is not None:
            FileHelper(self.archive_dir).remove_file(path)
        self.storage.delete_invoice(invoice.id)
        logger.info(f"Deleted invoice {invoice.invoice_number}")

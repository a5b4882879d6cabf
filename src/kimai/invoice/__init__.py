"""Invoice calculation, numbering and rendering."""

from kimai.invoice.calculator import CALCULATORS, InvoiceItem, get_calculator
from kimai.invoice.model import InvoiceModel
from kimai.invoice.number_generator import DefaultNumberGenerator
from kimai.invoice.renderer import InvoiceDocument, get_renderer
from kimai.invoice.repository import InvoiceDocumentRepository
from kimai.invoice.service import InvoiceService, RenderedInvoice

__all__ = [
    "CALCULATORS",
    "DefaultNumberGenerator",
    "InvoiceDocument",
    "InvoiceDocumentRepository",
    "InvoiceItem",
    "InvoiceModel",
    "InvoiceService",
    "RenderedInvoice",
    "get_calculator",
    "get_renderer",
]

"""Core functionality: records, storage, configuration and security."""

from kimai.core.models import Activity, Customer, Invoice, InvoiceTemplate, Project, Timesheet, User
from kimai.core.storage import StorageManager

__all__ = [
    "Activity",
    "Customer",
    "Invoice",
    "InvoiceTemplate",
    "Project",
    "StorageManager",
    "Timesheet",
    "User",
]

"""Dependency injection for FastAPI endpoints.

These dependencies give endpoints access to the configuration, storage and
the services built on top of them.
"""

from fastapi import Request  # type: ignore[import-untyped]

from kimai.core.config import ConfigManager
from kimai.core.storage import StorageManager
from kimai.events import EventDispatcher, create_dispatcher
from kimai.invoice.service import InvoiceService
from kimai.quick_entry import QuickEntryService
from kimai.timesheet.service import TimesheetService
from kimai.timesheet.statistics import TimesheetStatisticService


def get_config(request: Request = None) -> ConfigManager:  # type: ignore[assignment,misc]
    """Get configuration manager instance.

    Args:
        request: FastAPI Request object (when used as dependency)

    Returns:
        ConfigManager instance from app state or new instance
    """
    if request is not None and hasattr(request, "app"):
        if hasattr(request.app.state, "config"):
            config: ConfigManager = request.app.state.config
            return config
    return ConfigManager()


def get_storage(request: Request = None) -> StorageManager:  # type: ignore[assignment,misc]
    """Get storage instance for the configured data directory.

    Can also be called directly for testing.
    """
    config = get_config(request)
    return StorageManager(config.get_path("general.data_dir"))


def get_dispatcher(request: Request = None) -> EventDispatcher:  # type: ignore[assignment,misc]
    if request is not None and hasattr(request, "app"):
        if hasattr(request.app.state, "dispatcher"):
            dispatcher: EventDispatcher = request.app.state.dispatcher
            return dispatcher
    return create_dispatcher()


def get_timesheet_service(request: Request = None) -> TimesheetService:  # type: ignore[assignment,misc]
    return TimesheetService(get_storage(request), get_config(request))


def get_statistic_service(request: Request = None) -> TimesheetStatisticService:  # type: ignore[assignment,misc]
    return TimesheetStatisticService(get_storage(request))


def get_invoice_service(request: Request = None) -> InvoiceService:  # type: ignore[assignment,misc]
    return InvoiceService(get_storage(request), get_config(request))


def get_quick_entry_service(request: Request = None) -> QuickEntryService:  # type: ignore[assignment,misc]
    config = get_config(request)
    storage = get_storage(request)
    return QuickEntryService(storage, config, TimesheetService(storage, config))

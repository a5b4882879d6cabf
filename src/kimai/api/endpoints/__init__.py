"""API endpoints, one router module per resource."""

__all__ = [
    "activities",
    "auth",
    "customers",
    "invoices",
    "plugins",
    "projects",
    "quick_entry",
    "reporting",
    "system",
    "timesheets",
    "ui",
    "users",
]

from kimai.api.endpoints import (  # noqa: F401
    activities,
    auth,
    customers,
    invoices,
    plugins,
    projects,
    quick_entry,
    reporting,
    system,
    timesheets,
    ui,
    users,
)

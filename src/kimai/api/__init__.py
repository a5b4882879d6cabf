"""REST API for Kimai.

FastAPI-based JSON API covering timesheets, users, customers, projects,
activities, invoices, quick entry, reporting and plugins. Every endpoint
except the system checks and the token endpoint needs a bearer token.

Usage:
    # Generate token
    kimai token create susan_super

    # Start server
    kimai serve

    # Access API docs
    http://localhost:8000/docs
"""

__all__ = ["create_app", "run_server"]

from kimai.api.server import create_app, run_server  # noqa: F401

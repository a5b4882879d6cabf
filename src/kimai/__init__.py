"""Kimai - multi-user time tracking with invoicing and reporting."""

__version__ = "1.0.0"

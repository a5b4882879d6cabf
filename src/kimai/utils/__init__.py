"""Formatting, parsing and file helpers."""

"""Utility helpers."""

from .diagnostics import DiagnosticEntry, DiagnosticLog

__all__ = ["DiagnosticEntry", "DiagnosticLog"]

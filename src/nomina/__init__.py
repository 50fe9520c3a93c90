"""Payroll calculation and run-versioning engine."""

__version__ = "1.0.0"

"""Tenant-isolated credential broker."""

__version__ = "0.1.0"

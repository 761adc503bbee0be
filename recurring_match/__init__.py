"""Recurring obligation matching service."""

__version__ = "0.1.0"

"""Utility functions and helpers."""

from .exceptions import raise_conflict, raise_for_matching_error, raise_not_found

__all__ = [
    "raise_conflict",
    "raise_for_matching_error",
    "raise_not_found",
]

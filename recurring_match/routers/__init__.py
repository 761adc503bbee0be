"""API routers package."""

from recurring_match.routers import obligations, partnerships, webhooks

__all__ = [
    "obligations",
    "partnerships",
    "webhooks",
]

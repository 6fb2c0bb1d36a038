# backend/charterbook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import availability, bookings, cron, guest, modifications, webhooks

__all__ = [
    "availability",
    "bookings",
    "cron",
    "guest",
    "modifications",
    "webhooks",
]

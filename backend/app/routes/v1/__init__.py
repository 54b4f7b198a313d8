# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import evaluations, hours, packages, payments, slots

__all__ = ["evaluations", "hours", "packages", "payments", "slots"]

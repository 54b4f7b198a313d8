"""
FastAPI dependencies for the auto-école application.
"""

from .auth import get_current_actor

__all__ = ["get_current_actor"]

# backend/app/routes/health.py
"""
Health check endpoints for the application.

Used by the platform's liveness and readiness probes.
"""

import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class LiveHealthResponse(BaseModel):
    ok: bool


class HealthCheckResponse(BaseModel):
    status: str
    database: bool


@router.get("/live", response_model=LiveHealthResponse)
def live_probe(response: Response) -> LiveHealthResponse:
    """Liveness probe that avoids touching external dependencies."""
    response.headers["Cache-Control"] = "no-store"
    return LiveHealthResponse(ok=True)


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    """Basic health check: the service runs and the database answers."""
    try:
        db.execute(text("SELECT 1"))
        return HealthCheckResponse(status="healthy", database=True)
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        return HealthCheckResponse(status="degraded", database=False)

# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import BRAND_NAME
from .core.redis import close_redis_client
from .errors import register_error_handlers
from .routes import health, internal, prometheus, stripe_webhooks
from .routes.v1 import evaluations as evaluations_v1
from .routes.v1 import hours as hours_v1
from .routes.v1 import packages as packages_v1
from .routes.v1 import payments as payments_v1
from .routes.v1 import slots as slots_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("%s API starting up (environment=%s)", BRAND_NAME, settings.environment)
    if settings.is_production and not settings.sweep_trigger_token.get_secret_value():
        logger.warning("SWEEP_TRIGGER_TOKEN is not set; the sweep endpoint rejects every call")
    yield
    close_redis_client()
    logger.info("%s API shut down", BRAND_NAME)


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Lesson booking, hours ledger and payment reconciliation for driving schools",
    version="1.0.0",
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST"],
    allow_headers=["*"],
)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(slots_v1.router, prefix="/slots")
api_v1.include_router(hours_v1.router, prefix="/hours")
api_v1.include_router(packages_v1.router, prefix="/packages")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(evaluations_v1.router, prefix="/evaluations")

app.include_router(api_v1)
app.include_router(stripe_webhooks.router)
app.include_router(internal.router)
app.include_router(health.router)
app.include_router(prometheus.router)

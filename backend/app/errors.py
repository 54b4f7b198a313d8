"""Application-wide error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import DomainException

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        # Same envelope as DomainException.to_http_exception() raised from routes
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

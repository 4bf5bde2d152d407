# backend/mystery_events/errors.py
"""
Global exception handlers.

Every error body uses the same envelope as ``DomainException.to_http_exception``:
``{"detail": {"error": ..., "code": ..., "status": ..., "details": {...}}}``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.exceptions import DomainException, RepositoryException, is_connectivity_error

logger = logging.getLogger(__name__)


def _envelope(
    status_code: int,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {"error": message, "code": code, "status": status_code, "details": details or {}}
    return JSONResponse({"detail": jsonable_encoder(body)}, status_code=status_code, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(
            {"detail": jsonable_encoder(http_exc.detail)},
            status_code=http_exc.status_code,
            headers=http_exc.headers,
        )

    @app.exception_handler(RepositoryException)
    async def repository_exception_handler(request: Request, exc: RepositoryException) -> JSONResponse:
        if is_connectivity_error(exc):
            logger.error("Database unreachable during %s %s: %s", request.method, request.url.path, exc)
            return _envelope(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Database temporarily unavailable",
                "DATABASE_UNAVAILABLE",
                headers={"Retry-After": "5"},
            )
        logger.exception("Repository error during %s %s", request.method, request.url.path)
        return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "REPOSITORY_ERROR")

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg")}
            for error in exc.errors()
        ]
        return _envelope(status.HTTP_400_BAD_REQUEST, "Invalid request", "VALIDATION_ERROR", {"errors": errors})

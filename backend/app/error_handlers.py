"""
Exception handlers mapping the engine's error hierarchy to HTTP responses.

    ValidationError        -> 422
    NotFoundError          -> 404
    DependencyUnavailable  -> 503
    RankingCancelled       -> 499
    InvariantViolation     -> 500 (generic message)

Internal details of 500 errors are logged, never returned.
"""

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from contribux.exceptions import (
    DependencyUnavailable,
    InvariantViolation,
    NotFoundError,
    RankingCancelled,
    ValidationError,
)
from contribux.logging import get_logger

logger = get_logger("backend.errors")

CLIENT_CLOSED_REQUEST = 499


def _get_request_id() -> str:
    """Current request ID from the logging context, for server-side logs only."""
    return structlog.contextvars.get_contextvars().get("request_id", "-")


def _response_payload(detail: str, status_code: int, error: str | None = None) -> dict:
    payload = {"detail": detail, "status_code": status_code}
    if error:
        payload["error"] = error
    return payload


def _json(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_response_payload(str(exc), status_code, type(exc).__name__),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning(
            "http_exception",
            detail=exc.detail,
            status_code=exc.status_code,
            request_id=_get_request_id(),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_response_payload(str(exc.detail), exc.status_code),
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        logger.warning("validation_error", error=str(exc), error_type=type(exc).__name__)
        return _json(422, exc)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        logger.info("not_found", error=str(exc))
        return _json(404, exc)

    @app.exception_handler(DependencyUnavailable)
    async def dependency_unavailable_handler(request: Request, exc: DependencyUnavailable):
        logger.warning("dependency_unavailable", error=str(exc), error_type=type(exc).__name__)
        return _json(503, exc)

    @app.exception_handler(RankingCancelled)
    async def cancelled_handler(request: Request, exc: RankingCancelled):
        logger.info("ranking_cancelled", request_id=_get_request_id())
        return _json(CLIENT_CLOSED_REQUEST, exc)

    @app.exception_handler(InvariantViolation)
    async def invariant_violation_handler(request: Request, exc: InvariantViolation):
        logger.error("invariant_violation", error=str(exc), request_id=_get_request_id())
        return JSONResponse(status_code=500, content=_response_payload("Internal server error", 500))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            request_id=_get_request_id(),
        )
        return JSONResponse(status_code=500, content=_response_payload("Internal server error", 500))

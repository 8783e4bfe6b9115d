"""
Centralized API error handling.

Goals:
- consistent error response shape
- include request_id for correlation
- avoid leaking internal exception details on 500
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from usersync.shared.exceptions import (
    ExternalFetchError,
    NotFoundError,
    PublishError,
    StorageError,
)
from usersync.utility.logging_client import get_request_id, logger, set_request_id


def _ensure_request_id() -> str:
    rid = get_request_id()
    if rid:
        return rid
    return set_request_id()


def _error_payload(
    *,
    code: str,
    message: str,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": "error",
        "error": {
            "code": code,
            "message": message,
            "request_id": request_id,
        },
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


def error_response(status_code: int, code: str, message: str, details: Optional[Any] = None) -> JSONResponse:
    rid = _ensure_request_id()
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(code=code, message=message, request_id=rid, details=details),
        headers={"X-Request-ID": rid},
    )


def install_error_handlers(app: FastAPI) -> None:
    """
    Attach consistent error handlers to a FastAPI app.
    """

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        details = None if isinstance(exc.detail, str) else {"detail": exc.detail}
        return error_response(exc.status_code, "http_error", message, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(422, "validation_error", "Validation error", exc.errors())

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return error_response(404, "not_found", exc.message)

    @app.exception_handler(PublishError)
    async def publish_error_handler(request: Request, exc: PublishError) -> JSONResponse:
        logger.warning(f"Publish failed for {request.url.path}: {exc}", component="http")
        return error_response(503, "broker_unavailable", "Message broker unavailable")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.log_exception(exc, component="http", context={"path": str(request.url.path)})
        return error_response(503, "storage_unavailable", "Storage unavailable")

    @app.exception_handler(ExternalFetchError)
    async def fetch_error_handler(request: Request, exc: ExternalFetchError) -> JSONResponse:
        logger.warning(f"External fetch failed for {request.url.path}: {exc}", component="http")
        return error_response(502, "upstream_error", "Upstream data source failed")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.log_exception(
            exc,
            component="http",
            context={
                "path": str(request.url.path),
                "method": request.method,
            },
        )
        return error_response(500, "internal_error", "Internal server error")

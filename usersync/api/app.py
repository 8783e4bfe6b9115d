"""
FastAPI приложение: фабрика и middleware.
"""

import time
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from usersync.api.error_handlers import error_response, install_error_handlers
from usersync.api.routes.health import health_router
from usersync.api.routes.users import users_router
from usersync.container import Container
from usersync.utility.logging_client import logger, set_request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware for request ID tracking and slow request logging."""

    async def dispatch(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        start_time = time.perf_counter()

        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-ms"] = str(round(duration_ms, 2))

        if duration_ms > 1000:
            logger.structured(
                "warning",
                "slow_request",
                component="http",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        return response


class BodyLimitMiddleware:
    """
    Reject requests whose body exceeds the limit.

    Declared Content-Length is checked up front. A body without it
    (chunked transfer) is read here chunk by chunk, cut off as soon as the
    limit is crossed and replayed to the app otherwise.
    """

    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    def _too_large(self) -> JSONResponse:
        return error_response(
            413,
            "payload_too_large",
            "Request body too large",
            {"limit_bytes": self.max_body_size},
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                await error_response(400, "bad_request", "Invalid Content-Length")(scope, receive, send)
                return
            if size > self.max_body_size:
                await self._too_large()(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        chunks = []
        received = 0
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # client went away; let the app see the disconnect
                await self.app(scope, _replay([message], receive), send)
                return
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_body_size:
                await self._too_large()(scope, receive, send)
                return
            chunks.append(body)
            if not message.get("more_body", False):
                break

        buffered = {"type": "http.request", "body": b"".join(chunks), "more_body": False}
        await self.app(scope, _replay([buffered], receive), send)


def _replay(messages: List[Message], receive: Receive) -> Receive:
    pending = list(messages)

    async def replay() -> Message:
        if pending:
            return pending.pop(0)
        return await receive()

    return replay


def create_http_app(container: Container, body_limit: int) -> FastAPI:
    app = FastAPI(title="usersync", docs_url="/docs", redoc_url=None)
    app.state.container = container

    install_error_handlers(app)

    # Последний добавленный middleware выполняется первым
    app.add_middleware(BodyLimitMiddleware, max_body_size=body_limit)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)
    app.include_router(users_router)
    return app

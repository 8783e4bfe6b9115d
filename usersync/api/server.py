"""
HTTP сервер (uvicorn) внутри общего event loop приложения.

Сигналы обрабатывает приложение, а не uvicorn.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import uvicorn

from usersync.api.app import create_http_app
from usersync.container import Container
from usersync.utility.logging_client import logger


class _EmbeddedServer(uvicorn.Server):
    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class HttpServer:
    def __init__(self, container: Container, port: int, body_limit: int, host: str = "0.0.0.0"):
        self.container = container
        self.port = port
        self.host = host
        self.body_limit = body_limit
        self.app = create_http_app(container, body_limit)
        self._server: Optional[_EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return bool(self._server and self._server.started)

    async def start(self) -> None:
        if self._task is not None:
            return
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            lifespan="off",
            access_log=False,
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._task.done():
                # surfaces the startup error (port in use, ...)
                self._task.result()
                break
            await asyncio.sleep(0.05)
        logger.info(f"Http server started in port {self.port}", component="http")

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._server = None
        self._task = None
        logger.info("Http server stopped", component="http")

"""
Application: точка сборки и порядок запуска.

Порядок строгий:
    database -> broker (vhost'ы, соединения) -> container -> consumers -> worker -> HTTP

Режим запуска выбирается до захвата ресурсов:
- ServiceMode: долгоживущий сервис
- OneShotMode(signatures): выполнить административные команды и выйти с кодом 0
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from dotenv import load_dotenv
from pydantic import ValidationError

from usersync.api.server import HttpServer
from usersync.commands import CommandRunner
from usersync.config import ADMIN_FLAG, Settings, settings as default_settings
from usersync.container import Container
from usersync.integrations.json_placeholder import JsonPlaceholderClient
from usersync.messaging.server import BrokerServer
from usersync.services.shutdown_manager import ShutdownManager
from usersync.services.worker import Worker
from usersync.shared.exceptions import (
    BrokerConnectionError,
    ConfigurationError,
    StorageConnectionError,
    TopologyError,
    UnknownCommandError,
)
from usersync.storage.database import Database
from usersync.utility.logging_client import logger

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_UNKNOWN_COMMAND = 2


@dataclass(frozen=True)
class ServiceMode:
    pass


@dataclass(frozen=True)
class OneShotMode:
    signatures: Tuple[str, ...] = ()


RunMode = Union[ServiceMode, OneShotMode]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="usersync", description="usersync backend")
    parser.add_argument(
        ADMIN_FLAG,
        dest="signatures",
        nargs="*",
        metavar="SIGNATURE",
        default=None,
        help="run administrative operations and exit",
    )
    return parser


def parse_run_mode(argv: Sequence[str]) -> RunMode:
    args = build_arg_parser().parse_args(list(argv))
    if args.signatures is None:
        return ServiceMode()
    return OneShotMode(tuple(args.signatures))


HttpServerFactory = Callable[[Container], HttpServer]
WorkerFactory = Callable[[Container], Worker]


class Application:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        database: Optional[Database] = None,
        json_placeholder: Optional[JsonPlaceholderClient] = None,
        broker_server: Optional[BrokerServer] = None,
        worker_factory: Optional[WorkerFactory] = None,
        http_server_factory: Optional[HttpServerFactory] = None,
    ):
        self.settings = settings or default_settings
        self.database = database or Database(self.settings.database)
        self.json_placeholder = json_placeholder or JsonPlaceholderClient(self.settings.json_placeholder)
        self.broker_server = broker_server or BrokerServer(
            self.settings.rabbitmq.vhost_names,
            self.settings.rabbitmq.broker_config(),
        )
        self._worker_factory = worker_factory or self._default_worker
        self._http_server_factory = http_server_factory or self._default_http_server

        self.container: Optional[Container] = None
        self.worker: Optional[Worker] = None
        self.http_server: Optional[HttpServer] = None
        self.command_results: List[object] = []
        self._stopped = False

    def _default_worker(self, container: Container) -> Worker:
        return Worker(container, settings=self.settings.worker)

    def _default_http_server(self, container: Container) -> HttpServer:
        http = self.settings.http
        return HttpServer(container, port=http.port, body_limit=http.body_limit_bytes, host=http.host)

    async def start(self, mode: RunMode = ServiceMode()) -> None:
        """
        Запустить приложение в выбранном режиме.

        Raises:
            StorageConnectionError, BrokerConnectionError, TopologyError: фатальные
                ошибки старта; worker и HTTP в этом случае не запускаются
            UnknownCommandError: неизвестная административная команда
        """
        await self.database.connect()
        await self.database.ensure_schema()

        await self.broker_server.start()
        logger.info("AMQP server started", component="app")

        self.container = Container(
            database=self.database,
            json_placeholder=self.json_placeholder,
            home_vhost=self.broker_server.get_home_vhost(),
            work_vhost=self.broker_server.get_work_vhost(),
            app_name=self.settings.app.app_name,
        )

        if isinstance(mode, OneShotMode):
            self.command_results = await CommandRunner(self.container).execute(mode.signatures)
            return

        await self.broker_server.start_all_consumers(self.container)

        self.worker = self._worker_factory(self.container)
        self.worker.start()

        self.http_server = self._http_server_factory(self.container)
        await self.http_server.start()

    async def stop(self) -> None:
        """Остановить всё в обратном порядке. Повторный вызов: no-op."""
        if self._stopped:
            return
        self._stopped = True
        grace_period = self.settings.rabbitmq.grace_period

        if self.http_server is not None:
            await self.http_server.stop()
        if self.worker is not None:
            await self.worker.stop(grace_period)
        await self.broker_server.stop(grace_period)
        await self.json_placeholder.close()
        await self.database.close()
        logger.info("Application stopped", component="app")

    async def run(self, mode: RunMode, shutdown: Optional[ShutdownManager] = None) -> int:
        """start(); в сервисном режиме ждать сигнала остановки; stop()."""
        try:
            await self.start(mode)
            if isinstance(mode, ServiceMode):
                shutdown = shutdown or ShutdownManager()
                await shutdown.wait()
            return EXIT_OK
        finally:
            await self.stop()


async def _serve(app: Application, mode: RunMode) -> int:
    shutdown = ShutdownManager()
    if isinstance(mode, ServiceMode):
        shutdown.install_signal_handlers()
    return await app.run(mode, shutdown)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(".env")
    mode = parse_run_mode(sys.argv[1:] if argv is None else argv)

    try:
        logger.configure(level=default_settings.app.log_level, logs_dir=default_settings.app.logs_dir)
        app = Application(default_settings)
        return asyncio.run(_serve(app, mode))
    except UnknownCommandError as e:
        logger.error(str(e), component="app")
        return EXIT_UNKNOWN_COMMAND
    except (
        BrokerConnectionError,
        StorageConnectionError,
        TopologyError,
        ConfigurationError,
        ValidationError,
    ) as e:
        logger.error(f"Startup failed: {e}", component="app")
        return EXIT_STARTUP_FAILED


__all__ = [
    "Application",
    "OneShotMode",
    "RunMode",
    "ServiceMode",
    "main",
    "parse_run_mode",
]

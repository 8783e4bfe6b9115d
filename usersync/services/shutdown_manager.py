"""
Graceful shutdown helpers.

- InFlightTracker: учёт выполняющихся обработчиков/задач и ожидание их
  завершения с таймаутом.
- ShutdownManager: SIGTERM/SIGINT -> событие остановки приложения.
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Optional

from usersync.utility.logging_client import logger


class InFlightTracker:
    """
    Счётчик in-flight работы (доставки сообщений, запуски задач).

    Используется при остановке: сначала ждём `drain(timeout)`, затем
    закрываем каналы. Всё, что не успело завершиться, бросаем.
    """

    def __init__(self, name: str):
        self.name = name
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def count(self) -> int:
        return self._count

    @asynccontextmanager
    async def track(self):
        self._count += 1
        self._idle.clear()
        try:
            yield
        finally:
            self._count -= 1
            if self._count == 0:
                self._idle.set()

    async def drain(self, timeout: float) -> bool:
        """Wait for in-flight work. Returns False if the timeout was hit."""
        if self._count == 0:
            return True

        logger.info(
            f"Waiting for {self._count} in-flight {self.name} (timeout: {timeout}s)",
            component="shutdown",
        )
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Timeout reached, abandoning {self._count} in-flight {self.name}",
                component="shutdown",
            )
            return False

        logger.info(f"All in-flight {self.name} completed", component="shutdown")
        return True


class ShutdownManager:
    """Translates SIGTERM/SIGINT into an awaitable shutdown request."""

    def __init__(self):
        self._event = asyncio.Event()
        self._signal: Optional[signal.Signals] = None

    @property
    def is_shutting_down(self) -> bool:
        return self._event.is_set()

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self.request_shutdown(s))

    def request_shutdown(self, sig: Optional[signal.Signals] = None):
        if self._event.is_set():
            logger.warning("Shutdown already in progress", component="shutdown")
            return
        self._signal = sig
        signal_name = sig.name if sig else "MANUAL"
        logger.info(f"Graceful shutdown initiated (signal: {signal_name})", component="shutdown")
        self._event.set()

    async def wait(self):
        await self._event.wait()

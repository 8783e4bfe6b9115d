"""
Логирование приложения.

Один логгер `usersync` с двумя обработчиками:
- RichHandler в консоль
- файл `<logs_dir>/<YYYY-MM-DD>.log`, переоткрывается при смене даты

Каждая строка получает префикс компонента и, если он задан в текущем
контексте, request id:

    [CONSUMER] [a1b2c3d4] Sync requested (schedule)

Директория и уровень задаются из настроек через `logger.configure(...)`.
Этот модуль не импортирует usersync.config: конфигурация сама логирует.
"""

import contextvars
import json
import logging
import os
import time
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LOGS_DIR = "logs"
MAX_LOG_MESSAGE_LENGTH = 500
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "proxy-authorization"})

app_logger = logging.getLogger("usersync")
app_logger.setLevel(os.getenv("APP_LOG_LEVEL", "DEBUG").upper())
app_logger.handlers.clear()

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


class AppLogger:
    _instance = None
    _console = Console()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.logs_dir = Path(os.getenv("APP_LOGS_DIR", DEFAULT_LOGS_DIR))
            cls._instance._setup_handlers()
        return cls._instance

    def _setup_handlers(self):
        rich_handler = RichHandler(
            console=self._console,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        app_logger.addHandler(rich_handler)
        self._add_file_handler()

    def _log_file(self) -> Path:
        return self.logs_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"

    def _add_file_handler(self):
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(self._log_file(), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s | %(name)s | %(message)s", datefmt="%H:%M:%S")
        )
        app_logger.addHandler(file_handler)

    def _renew_file_handler(self):
        for handler in app_logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                app_logger.removeHandler(handler)
                handler.close()
        self._add_file_handler()

    def _ensure_daily_log(self):
        current_file = os.path.abspath(self._log_file())
        if not any(
            isinstance(h, logging.FileHandler) and h.baseFilename == current_file
            for h in app_logger.handlers
        ):
            self._renew_file_handler()

    def configure(self, level: Optional[str] = None, logs_dir: Union[str, Path, None] = None):
        """Применить уровень и директорию логов из настроек приложения."""
        if level:
            self.set_level(level)
        if logs_dir is not None and Path(logs_dir) != self.logs_dir:
            self.logs_dir = Path(logs_dir)
            self._renew_file_handler()

    def set_level(self, level: str):
        app_logger.setLevel(level.upper())

    def _line(self, message: str, component: str) -> str:
        rid = get_request_id()
        if rid:
            return f"[{component.upper()}] [{rid}] {message}"
        return f"[{component.upper()}] {message}"

    async def log_request(self, request: httpx.Request):
        """httpx event hook: исходящий запрос."""
        headers = {k: v for k, v in request.headers.items() if k.lower() not in SENSITIVE_HEADERS}
        self.debug(f"-> {request.method} {request.url} headers={headers}", component="http_client")

    async def log_response(self, response: httpx.Response):
        """httpx event hook: ответ на исходящий запрос."""
        request = response.request
        message = f"<- {request.method} {request.url} {response.status_code}"
        if response.is_error:
            self.warning(message, component="http_client")
        else:
            self.debug(message, component="http_client")

    def _truncate(self, text: str, max_len: int = MAX_LOG_MESSAGE_LENGTH) -> str:
        if len(text) <= max_len:
            return text
        return text[:max_len] + "..."

    def info(self, message: str, component: str = "app"):
        self._ensure_daily_log()
        app_logger.info(self._line(message, component))

    def error(self, message: str, component: str = "app", exc_info=False):
        self._ensure_daily_log()
        app_logger.error(self._line(message, component), exc_info=exc_info)

    def debug(self, message: str, component: str = "app"):
        self._ensure_daily_log()
        app_logger.debug(self._line(message, component))

    def warning(self, message: str, component: str = "app"):
        self._ensure_daily_log()
        app_logger.warning(self._line(message, component))

    def exception(self, message: str, component: str = "app"):
        self._ensure_daily_log()
        app_logger.exception(self._line(message, component))

    def structured(self, level: str, event: str, component: str = "app", **extra: Any):
        self._ensure_daily_log()
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "event": event,
            "component": component,
            "request_id": get_request_id(),
            **extra,
        }
        json_str = json.dumps(log_entry, ensure_ascii=False, default=str)
        log_func = getattr(app_logger, level.lower(), app_logger.info)
        log_func(f"[STRUCTURED] {json_str}")

    def log_exception(
        self,
        exc: BaseException,
        component: str = "app",
        context: Optional[Dict[str, Any]] = None,
    ):
        exc_info: Dict[str, Any] = {
            "exception_type": type(exc).__name__,
            "exception_message": self._truncate(str(exc)),
            "traceback": "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
        }
        if context:
            exc_info["context"] = context
        self.structured("error", "exception", component=component, **exc_info)

    def timed(self, operation: str, component: str = "app"):
        return TimedOperation(operation, component, self)


class TimedOperation:
    def __init__(self, operation: str, component: str, logger_instance: "AppLogger"):
        self.operation = operation
        self.component = component
        self.logger = logger_instance
        self.start_time: float = 0
        self.extra: Dict[str, Any] = {}

    def add_context(self, **kwargs: Any):
        self.extra.update(kwargs)
        return self

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self.start_time) * 1000
        if exc_type is not None:
            self.logger.structured(
                "error",
                f"{self.operation}_failed",
                component=self.component,
                duration_ms=round(duration_ms, 2),
                error=str(exc_val),
                **self.extra,
            )
        else:
            self.logger.structured(
                "info",
                f"{self.operation}_completed",
                component=self.component,
                duration_ms=round(duration_ms, 2),
                **self.extra,
            )
        return False

    async def __aenter__(self):
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return self.__exit__(exc_type, exc_val, exc_tb)


logger = AppLogger()

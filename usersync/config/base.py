"""
Базовые настройки приложения.

Содержит общие настройки и настройки фонового воркера.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from usersync.config.config_loader import BaseSettingsWithLoader


class AppBaseSettings(BaseSettingsWithLoader):
    """Основные настройки приложения."""

    yaml_group = "app"

    # Идентификация приложения
    app_name: str = Field(default="usersync", description="Название приложения")
    app_version: str = Field(default="0.1.0", description="Версия приложения")
    environment: str = Field(default="dev", description="Окружение (dev/staging/prod)")

    # Логирование
    log_level: str = Field(default="INFO", description="Уровень логирования")
    logs_dir: str = Field(default="logs", description="Директория файлов логов")

    model_config = SettingsConfigDict(env_prefix="APP_")


class WorkerSettings(BaseSettingsWithLoader):
    """Настройки фонового воркера (APScheduler)."""

    yaml_group = "worker"

    timezone: str = Field(default="UTC", description="Часовой пояс расписаний")
    misfire_grace_time: int = Field(default=60, description="Допустимое опоздание запуска (сек)")

    # Синхронизация пользователей
    sync_users_enabled: bool = Field(default=True, description="Включить задачу sync-users")
    sync_users_interval: Optional[int] = Field(default=300, description="Интервал sync-users (сек)")
    sync_users_cron: Optional[str] = Field(
        default=None, description="Crontab для sync-users (вместо интервала)"
    )

    # Heartbeat
    heartbeat_enabled: bool = Field(default=True, description="Включить задачу heartbeat")
    heartbeat_interval: Optional[int] = Field(default=60, description="Интервал heartbeat (сек)")
    heartbeat_cron: Optional[str] = Field(default=None, description="Crontab для heartbeat")

    model_config = SettingsConfigDict(env_prefix="WORKER_")


__all__ = [
    "AppBaseSettings",
    "WorkerSettings",
]

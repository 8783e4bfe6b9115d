"""
Корневая конфигурация приложения.

Settings: лёгкий facade с @property, который всегда возвращает
singleton-экземпляры групп настроек через get_instance().
"""

from usersync.config.base import AppBaseSettings, WorkerSettings
from usersync.config.database import DatabaseSettings
from usersync.config.external_api import JsonPlaceholderSettings
from usersync.config.services import HttpServerSettings, RabbitMQSettings


class Settings:
    """Facade around singleton settings groups."""

    @property
    def app(self) -> AppBaseSettings:
        return AppBaseSettings.get_instance()

    @property
    def worker(self) -> WorkerSettings:
        return WorkerSettings.get_instance()

    @property
    def http(self) -> HttpServerSettings:
        return HttpServerSettings.get_instance()

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings.get_instance()

    @property
    def json_placeholder(self) -> JsonPlaceholderSettings:
        return JsonPlaceholderSettings.get_instance()

    @property
    def rabbitmq(self) -> RabbitMQSettings:
        return RabbitMQSettings.get_instance()


# Единый экземпляр настроек приложения (facade)
settings = Settings()


__all__ = [
    "Settings",
    "settings",
    "AppBaseSettings",
    "WorkerSettings",
    "HttpServerSettings",
    "DatabaseSettings",
    "JsonPlaceholderSettings",
    "RabbitMQSettings",
]

"""
Настройки внутренних сервисов.

Содержит конфигурацию для:
- RabbitMQ (брокер, виртуальные хосты)
- HTTP сервера (порт, лимит тела запроса)
"""

from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from usersync.config.config_loader import BaseSettingsWithLoader
from usersync.config.constants import (
    DEFAULT_GRACE_PERIOD_SECONDS,
    HOME_VHOST_KEY,
    WORK_VHOST_KEY,
)
from usersync.messaging.vhosts import BrokerConfig
from usersync.shared.exceptions import ConfigurationError
from usersync.utility.helpers import parse_size


class RabbitMQSettings(BaseSettingsWithLoader):
    """Настройки RabbitMQ."""

    yaml_group = "rabbitmq"

    # Подключение
    protocol: str = Field(default="amqp", description="Протокол (amqp/amqps)")
    host: str = Field(default="localhost", description="Хост RabbitMQ")
    port: int = Field(default=5672, description="Порт AMQP")
    username: str = Field(default="guest", description="Пользователь")
    password: str = Field(default="guest", description="Пароль")

    # Виртуальные хосты
    home_vhost: str = Field(default="home", description="Vhost общих потоков")
    work_vhost: str = Field(default="work", description="Vhost потоков воркера")

    # Обработка
    prefetch_count: int = Field(
        default=10,
        ge=1,
        description="QoS канала: сколько неподтверждённых сообщений держит consumer",
    )
    grace_period: float = Field(
        default=DEFAULT_GRACE_PERIOD_SECONDS,
        description="Сколько ждать in-flight обработчики при остановке (сек)",
    )

    @property
    def vhost_names(self) -> Dict[str, str]:
        """Ключ vhost'а -> имя vhost'а на брокере."""
        return {HOME_VHOST_KEY: self.home_vhost, WORK_VHOST_KEY: self.work_vhost}

    def broker_config(self) -> BrokerConfig:
        """Неизменяемая конфигурация подключения."""
        return BrokerConfig(
            protocol=self.protocol,
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            prefetch_count=self.prefetch_count,
        )

    model_config = SettingsConfigDict(env_prefix="RABBITMQ_")


class HttpServerSettings(BaseSettingsWithLoader):
    """Настройки HTTP сервера."""

    yaml_group = "http"

    host: str = Field(default="0.0.0.0", description="Адрес HTTP сервера")
    port: int = Field(default=3000, description="Порт HTTP сервера")
    body_limit: str = Field(default="100kb", description="Лимит тела запроса")

    @field_validator("body_limit")
    @classmethod
    def _validate_body_limit(cls, value: str) -> str:
        try:
            parse_size(value)
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return value

    @property
    def body_limit_bytes(self) -> int:
        return parse_size(self.body_limit)

    model_config = SettingsConfigDict(env_prefix="HTTP_")


__all__ = [
    "RabbitMQSettings",
    "HttpServerSettings",
]

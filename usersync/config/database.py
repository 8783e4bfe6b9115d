"""
Настройки подключения к реляционной базе данных (PostgreSQL).
"""

from urllib.parse import quote

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from usersync.config.config_loader import BaseSettingsWithLoader


class DatabaseSettings(BaseSettingsWithLoader):
    """Настройки подключения к PostgreSQL."""

    yaml_group = "database"

    # Подключение
    host: str = Field(default="localhost", description="Хост PostgreSQL")
    port: int = Field(default=5432, description="Порт PostgreSQL")
    user: str = Field(default="usersync", description="Пользователь")
    password: str = Field(default="usersync", description="Пароль")
    database: str = Field(default="usersync", description="Название БД")

    # Пул соединений
    min_pool_size: int = Field(default=1, description="Минимальный размер пула")
    max_pool_size: int = Field(default=5, description="Максимальный размер пула")
    command_timeout: float = Field(default=30.0, description="Таймаут запроса (сек)")

    @property
    def dsn(self) -> str:
        """DSN для asyncpg."""
        auth = f"{quote(self.user, safe='')}:{quote(self.password, safe='')}"
        return f"postgresql://{auth}@{self.host}:{self.port}/{self.database}"

    model_config = SettingsConfigDict(env_prefix="DATABASE_")


__all__ = ["DatabaseSettings"]

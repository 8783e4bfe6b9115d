"""
Настройки внешних HTTP источников данных.
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from usersync.config.config_loader import BaseSettingsWithLoader


class JsonPlaceholderSettings(BaseSettingsWithLoader):
    """Настройки JSONPlaceholder API."""

    yaml_group = "json_placeholder"

    base_url: str = Field(
        default="https://jsonplaceholder.typicode.com",
        description="Базовый URL API",
    )
    timeout: float = Field(default=10.0, description="Таймаут запроса (сек)")
    max_retries: int = Field(default=3, description="Количество попыток")

    model_config = SettingsConfigDict(env_prefix="JSONPLACEHOLDER_")


__all__ = ["JsonPlaceholderSettings"]

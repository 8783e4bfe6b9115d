"""
Централизованный загрузчик конфигурации.

Поддерживает загрузку из (по убыванию приоритета):
1. Явных аргументов конструктора
2. Environment variables (и .env)
3. YAML файла (`config/usersync.yaml`, группа на класс настроек)
4. Значений по умолчанию

Пример использования:
    from usersync.config.services import RabbitMQSettings

    rabbit = RabbitMQSettings.get_instance()
    print(rabbit.host)  # Загружено из Env/YAML
"""

import os
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, TypeVar

import yaml
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Типизация для Generic Settings
T = TypeVar("T", bound=BaseSettings)


class ConfigLoader:
    """Загрузчик YAML конфигураций с кешем."""

    # Кеш для конфигураций и singleton'ов настроек
    _cache: Dict[str, Any] = {}

    # Путь к YAML конфигурациям
    YAML_CONFIG_DIR = Path(os.getenv("USERSYNC_CONFIG_DIR", "config"))

    # Текущее окружение (dev, staging, prod)
    ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

    @classmethod
    def load_from_yaml(cls, filename: str, group: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Загрузка конфигурации из YAML файла.

        Args:
            filename: Имя YAML файла (например: "usersync.yaml")
            group: Группа конфигурации (опционально)

        Returns:
            Dict с конфигурацией или None если не найдено
        """
        cache_key = f"yaml:{filename}:{group}"
        if cache_key in cls._cache:
            return cls._cache[cache_key]

        # Сначала файл для текущего окружения (например: usersync.dev.yaml)
        env_filename = filename.replace(".yaml", f".{cls.ENVIRONMENT}.yaml")
        yaml_path = cls.YAML_CONFIG_DIR / env_filename

        if not yaml_path.exists():
            yaml_path = cls.YAML_CONFIG_DIR / filename

        if not yaml_path.exists():
            return None

        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        result = data.get(group) if group else data
        cls._cache[cache_key] = result
        return result

    @classmethod
    def clear_cache(cls):
        """Очистить кеш конфигураций."""
        cls._cache.clear()


class YamlGroupSettingsSource(PydanticBaseSettingsSource):
    """Источник настроек pydantic-settings: одна группа YAML файла."""

    def __init__(self, settings_cls: Type[BaseSettings]):
        super().__init__(settings_cls)
        yaml_file = getattr(settings_cls, "yaml_file", None)
        yaml_group = getattr(settings_cls, "yaml_group", None)
        data: Optional[Dict[str, Any]] = None
        if yaml_file:
            data = ConfigLoader.load_from_yaml(yaml_file, yaml_group)
        self._data: Dict[str, Any] = data or {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return {
            name: value
            for name, value in self._data.items()
            if name in self.settings_cls.model_fields
        }


class BaseSettingsWithLoader(BaseSettings):
    """
    Базовый класс для настроек с поддержкой каскадной загрузки.

    Пример использования:
        class DatabaseSettings(BaseSettingsWithLoader):
            yaml_group = "database"

            host: str = "localhost"
            port: int = 5432
    """

    # Группа в YAML файле (переопределяется в наследниках)
    yaml_group: ClassVar[Optional[str]] = None

    # Имя YAML файла
    yaml_file: ClassVar[Optional[str]] = "usersync.yaml"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # kwargs > env > .env > YAML > defaults
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlGroupSettingsSource(settings_cls),
            file_secret_settings,
        )

    @classmethod
    def get_instance(cls: Type[T]) -> T:
        """
        Получить singleton экземпляр настроек.

        Returns:
            Экземпляр настроек
        """
        cache_key = f"settings:{cls.__name__}"
        if cache_key not in ConfigLoader._cache:
            ConfigLoader._cache[cache_key] = cls()
        return ConfigLoader._cache[cache_key]

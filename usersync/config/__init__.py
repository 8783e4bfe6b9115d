"""
Конфигурация приложения.

Модуль содержит:
- Константы (constants.py)
- Загрузчик конфигурации (config_loader.py)
- Централизованные настройки (settings.py)

Пример использования:
    from usersync.config import settings

    print(settings.rabbitmq.home_vhost)
    print(settings.http.port)
"""

from usersync.config.settings import Settings, settings

from usersync.config.constants import (
    ADMIN_FLAG,
    HEARTBEAT_QUEUE,
    HOME_VHOST_KEY,
    USERS_FETCHED_QUEUE,
    USERS_SYNC_QUEUE,
    WORK_VHOST_KEY,
    UserSources,
)

__all__ = [
    "Settings",
    "settings",
    "ADMIN_FLAG",
    "HEARTBEAT_QUEUE",
    "HOME_VHOST_KEY",
    "USERS_FETCHED_QUEUE",
    "USERS_SYNC_QUEUE",
    "WORK_VHOST_KEY",
    "UserSources",
]

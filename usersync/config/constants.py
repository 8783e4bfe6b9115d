"""
Константы приложения.

Имена виртуальных хостов, очередей и источников данных, которые не
меняются между окружениями.
"""

from enum import Enum

# =======================
# Virtual hosts
# =======================

# Ключи логических разделов брокера (имена vhost'ов берутся из настроек)
HOME_VHOST_KEY = "home"
WORK_VHOST_KEY = "work"

# =======================
# Очереди
# =======================

USERS_SYNC_QUEUE = "users.sync"
USERS_FETCHED_QUEUE = "users.fetched"
HEARTBEAT_QUEUE = "app.heartbeat"

# =======================
# Административный режим
# =======================

ADMIN_FLAG = "--bash"

# =======================
# Shutdown
# =======================

DEFAULT_GRACE_PERIOD_SECONDS = 10.0


class UserSources(str, Enum):
    """Откуда пользователь попал в базу."""

    JSON_PLACEHOLDER = "json_placeholder"
    MANUAL = "manual"

"""
Pydantic-модели сообщений для RabbitMQ.

Каждый consumer декодирует тело сообщения в свою модель; кодирование на
стороне producer'а делает `usersync.messaging.codec`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncUsersCommand(BaseModel):
    """Команда: забрать пользователей из внешнего источника и сохранить."""

    reason: str = Field(default="scheduled", description="Кто инициировал синхронизацию")
    requested_at: datetime = Field(default_factory=_utcnow, description="Время запроса")


class UsersFetchedEvent(BaseModel):
    """Событие: синхронизация добавила новых пользователей."""

    user_ids: List[str] = Field(default_factory=list, description="ID созданных пользователей")
    source: str = Field(..., description="Источник пользователей")
    fetched_at: datetime = Field(default_factory=_utcnow, description="Время синхронизации")


class HeartbeatEvent(BaseModel):
    """Периодический heartbeat приложения."""

    app_name: str = Field(..., description="Название приложения")
    sent_at: datetime = Field(default_factory=_utcnow, description="Время отправки")
    note: Optional[str] = Field(default=None, description="Произвольная заметка")


__all__ = ["SyncUsersCommand", "UsersFetchedEvent", "HeartbeatEvent"]

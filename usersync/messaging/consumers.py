"""
Consumer bindings: очередь vhost'а -> обработчик сервиса.

Политика подтверждений:
- успех -> ack
- временная ошибка (RecoverableError, таймаут, обрыв соединения) -> nack с requeue,
  повторы регулирует сам брокер
- всё остальное (битое сообщение, отсутствующая сущность, ...) -> лог + ack,
  чтобы одно "ядовитое" сообщение не блокировало очередь
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Type

from faststream.exceptions import NackMessage
from faststream.rabbit import RabbitQueue
from faststream.rabbit.annotations import RabbitMessage
from pydantic import BaseModel

from usersync.config.constants import (
    HEARTBEAT_QUEUE,
    HOME_VHOST_KEY,
    USERS_FETCHED_QUEUE,
    USERS_SYNC_QUEUE,
    WORK_VHOST_KEY,
    UserSources,
)
from usersync.messaging.models import HeartbeatEvent, SyncUsersCommand, UsersFetchedEvent
from usersync.messaging.vhosts import VirtualHost
from usersync.services.shutdown_manager import InFlightTracker
from usersync.shared.exceptions import RecoverableError
from usersync.utility.logging_client import logger, set_request_id

if TYPE_CHECKING:
    from usersync.container import Container

Handler = Callable[[Any, "Container"], Awaitable[None]]
Decoder = Callable[[bytes], Any]

RECOVERABLE_ERRORS = (RecoverableError, asyncio.TimeoutError, ConnectionError)


class Ack(str, Enum):
    ACK = "ack"
    NACK_REQUEUE = "nack_requeue"


@dataclass
class BindingStats:
    handled: int = 0
    requeued: int = 0
    dropped: int = 0


def model_decoder(model: Type[BaseModel]) -> Decoder:
    """Decoder that validates the JSON body against a pydantic model."""

    def decode(body: bytes) -> BaseModel:
        return model.model_validate_json(body)

    return decode


async def _raw_body(message: RabbitMessage) -> bytes:
    # FastStream decoder: hand the undecoded body to the binding
    return message.body


@dataclass
class ConsumerBinding:
    """Standing subscription from a vhost queue to a handler."""

    vhost_key: str
    source: str
    handler: Handler
    decoder: Decoder
    name: str = ""
    subscribed: bool = False
    started: bool = False
    stats: BindingStats = field(default_factory=BindingStats)
    _tracker: Optional[InFlightTracker] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.name:
            self.name = f"{self.vhost_key}/{self.source}"

    async def dispatch(
        self,
        body: bytes,
        container: "Container",
        correlation_id: Optional[str] = None,
    ) -> Ack:
        """Decode one delivery, run the handler once and decide how to acknowledge it."""
        if self._tracker is None:
            return await self._dispatch(body, container, correlation_id)
        async with self._tracker.track():
            return await self._dispatch(body, container, correlation_id)

    async def _dispatch(
        self,
        body: bytes,
        container: "Container",
        correlation_id: Optional[str],
    ) -> Ack:
        set_request_id(correlation_id)
        try:
            payload = self.decoder(body)
            await self.handler(payload, container)
        except RECOVERABLE_ERRORS as e:
            self.stats.requeued += 1
            logger.warning(
                f"Consumer '{self.name}' hit a transient error, requeueing: {e}",
                component="consumer",
            )
            return Ack.NACK_REQUEUE
        except Exception as e:
            self.stats.dropped += 1
            logger.log_exception(
                e,
                component="consumer",
                context={"binding": self.name, "body_size": len(body)},
            )
            return Ack.ACK

        self.stats.handled += 1
        return Ack.ACK

    def subscribe(
        self,
        vhost: VirtualHost,
        container: "Container",
        tracker: Optional[InFlightTracker] = None,
    ) -> bool:
        """
        Зарегистрировать подписчика на брокере vhost'а. Повторный вызов: no-op.

        Доставка начинается только после `broker.start()`; флаг `started`
        выставляет BrokerServer, когда брокер действительно запущен.

        Returns:
            True если подписка создана сейчас, False если уже была
        """
        if self.subscribed:
            return False

        self._tracker = tracker
        subscriber = vhost.broker.subscriber(
            RabbitQueue(self.source, durable=True),
            decoder=_raw_body,
        )

        async def consume(body: bytes, message: RabbitMessage) -> None:
            outcome = await self.dispatch(body, container, message.correlation_id)
            if outcome is Ack.NACK_REQUEUE:
                raise NackMessage()

        subscriber(consume)
        self.subscribed = True
        logger.info(f"Consumer '{self.name}' bound to {vhost.name}/{self.source}", component="consumer")
        return True


# =============================================================================
# Handlers
# =============================================================================


async def handle_sync_users(command: SyncUsersCommand, container: "Container") -> None:
    """work/users.sync: забрать пользователей и объявить о новых."""
    logger.info(f"Sync requested ({command.reason})", component="consumer")
    user_ids = await container.user_service.fetch_from_json_placeholder()
    logger.info(f"Fetched {len(user_ids)} new user(s)", component="consumer")
    if user_ids:
        await container.producers.announce_users_fetched(
            user_ids, source=UserSources.JSON_PLACEHOLDER.value
        )


async def handle_users_fetched(event: UsersFetchedEvent, container: "Container") -> None:
    """home/users.fetched"""
    for user_id in event.user_ids:
        user = await container.user_service.find_by_id(user_id)
        logger.info(
            f"New user from {event.source}: {user.username} <{user.email_address}>",
            component="consumer",
        )


async def handle_heartbeat(event: HeartbeatEvent, container: "Container") -> None:
    logger.debug(f"Heartbeat from {event.app_name} at {event.sent_at.isoformat()}", component="consumer")


def default_bindings() -> List[ConsumerBinding]:
    return [
        ConsumerBinding(
            vhost_key=WORK_VHOST_KEY,
            source=USERS_SYNC_QUEUE,
            handler=handle_sync_users,
            decoder=model_decoder(SyncUsersCommand),
            name="sync-users",
        ),
        ConsumerBinding(
            vhost_key=HOME_VHOST_KEY,
            source=USERS_FETCHED_QUEUE,
            handler=handle_users_fetched,
            decoder=model_decoder(UsersFetchedEvent),
            name="users-fetched",
        ),
        ConsumerBinding(
            vhost_key=HOME_VHOST_KEY,
            source=HEARTBEAT_QUEUE,
            handler=handle_heartbeat,
            decoder=model_decoder(HeartbeatEvent),
            name="heartbeat",
        ),
    ]


__all__ = [
    "Ack",
    "BindingStats",
    "ConsumerBinding",
    "default_bindings",
    "handle_heartbeat",
    "handle_sync_users",
    "handle_users_fetched",
    "model_decoder",
]

"""
Публикация сообщений в очереди виртуальных хостов.

Ошибки публикации (`PublishError`) не глотаются: решение о повторе
принимает вызывающий сервис.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from usersync.config.constants import (
    HEARTBEAT_QUEUE,
    HOME_VHOST_KEY,
    USERS_FETCHED_QUEUE,
    USERS_SYNC_QUEUE,
    WORK_VHOST_KEY,
)
from usersync.messaging import codec
from usersync.messaging.models import HeartbeatEvent, SyncUsersCommand, UsersFetchedEvent
from usersync.messaging.vhosts import VirtualHost
from usersync.shared.exceptions import PublishError
from usersync.utility.logging_client import get_request_id, logger


async def publish(
    vhost: VirtualHost,
    destination: str,
    payload: Any,
    correlation_id: Optional[str] = None,
) -> None:
    """
    Положить одно сообщение в очередь `destination` внутри `vhost`.

    Raises:
        PublishError: vhost закрыт, очередь не объявлена или брокер отказал
    """
    if not vhost.ready:
        raise PublishError("Channel is closed", vhost=vhost.name, destination=destination)
    if not vhost.has_destination(destination):
        raise PublishError("Destination does not exist", vhost=vhost.name, destination=destination)

    options: Dict[str, Any] = {"content_type": codec.content_type(payload)}
    correlation_id = correlation_id or get_request_id()
    if correlation_id:
        options["correlation_id"] = correlation_id

    try:
        await vhost.broker.publish(codec.encode(payload), queue=destination, **options)
    except Exception as e:
        raise PublishError(
            "Broker rejected the message",
            vhost=vhost.name,
            destination=destination,
            original_error=e,
        ) from e

    logger.debug(f"Published to {vhost.name}/{destination}", component="amqp")


class Producer:
    """Publisher bound to one vhost and destination."""

    def __init__(self, vhost: VirtualHost, destination: str):
        self.vhost = vhost
        self.destination = destination

    async def publish(self, payload: Any, correlation_id: Optional[str] = None) -> None:
        await publish(self.vhost, self.destination, payload, correlation_id=correlation_id)

    def __repr__(self) -> str:
        return f"Producer({self.vhost.name}/{self.destination})"


class UserProducers:
    """Типизированные producer'ы приложения."""

    # vhost key -> очереди, в которые публикуют эти producer'ы
    DESTINATIONS = {
        WORK_VHOST_KEY: (USERS_SYNC_QUEUE,),
        HOME_VHOST_KEY: (USERS_FETCHED_QUEUE, HEARTBEAT_QUEUE),
    }

    def __init__(self, home_vhost: VirtualHost, work_vhost: VirtualHost, app_name: str = "usersync"):
        self.app_name = app_name
        self._sync = Producer(work_vhost, USERS_SYNC_QUEUE)
        self._fetched = Producer(home_vhost, USERS_FETCHED_QUEUE)
        self._heartbeat = Producer(home_vhost, HEARTBEAT_QUEUE)

    async def request_user_sync(self, reason: str = "scheduled") -> SyncUsersCommand:
        command = SyncUsersCommand(reason=reason)
        await self._sync.publish(command)
        return command

    async def announce_users_fetched(self, user_ids: List[str], source: str) -> UsersFetchedEvent:
        event = UsersFetchedEvent(user_ids=user_ids, source=source)
        await self._fetched.publish(event)
        return event

    async def heartbeat(self, note: Optional[str] = None) -> HeartbeatEvent:
        event = HeartbeatEvent(app_name=self.app_name, note=note)
        await self._heartbeat.publish(event)
        return event


__all__ = ["publish", "Producer", "UserProducers"]

"""
Виртуальные хосты RabbitMQ и управление подключениями к ним.

Каждый vhost: изолированное пространство очередей/обменников. AMQP выбирает
vhost при открытии соединения, поэтому на каждый vhost держим свой
FastStream `RabbitBroker` (одно соединение, каналы внутри него).

Запуск "всё или ничего": если хотя бы один vhost не поднялся, уже открытые
соединения закрываются и ни один хост не считается готовым.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set
from urllib.parse import quote

from aiormq.exceptions import ConnectionNotAllowed
from faststream.rabbit import RabbitBroker, RabbitQueue

from usersync.shared.exceptions import BrokerConnectionError, NotFoundError, TopologyError
from usersync.utility.helpers import mask_secret
from usersync.utility.logging_client import logger

BrokerFactory = Callable[..., RabbitBroker]


@dataclass(frozen=True)
class BrokerConfig:
    """Параметры подключения к брокеру. Задаются один раз при старте."""

    protocol: str
    host: str
    port: int
    username: str
    password: str
    prefetch_count: Optional[int] = None

    def url(self, vhost: str) -> str:
        """AMQP URL для конкретного vhost'а."""
        auth = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}"
        return f"{self.protocol}://{auth}@{self.host}:{self.port}/{quote(vhost, safe='')}"

    def safe_url(self, vhost: str) -> str:
        """URL без пароля, для логов."""
        return (
            f"{self.protocol}://{self.username}:{mask_secret(self.password)}"
            f"@{self.host}:{self.port}/{vhost}"
        )

    def __repr__(self) -> str:
        return (
            f"BrokerConfig(protocol={self.protocol!r}, host={self.host!r}, "
            f"port={self.port!r}, username={self.username!r}, password='***', "
            f"prefetch_count={self.prefetch_count!r})"
        )


def default_broker_factory(url: str, max_consumers: Optional[int] = None) -> RabbitBroker:
    # max_consumers is FastStream's name for the channel QoS prefetch count
    return RabbitBroker(url, max_consumers=max_consumers)


class VirtualHost:
    """Handle of one started virtual host."""

    def __init__(self, name: str, broker: RabbitBroker):
        self.name = name
        self.broker = broker
        self.queues: Set[str] = set()
        self.ready = False

    async def declare_queue(self, queue_name: str) -> None:
        try:
            await self.broker.declare_queue(RabbitQueue(queue_name, durable=True))
        except Exception as e:
            raise TopologyError(
                f"Cannot declare queue '{queue_name}' in vhost '{self.name}'",
                details={"vhost": self.name, "queue": queue_name},
                original_error=e,
            ) from e
        self.queues.add(queue_name)

    def has_destination(self, destination: str) -> bool:
        return destination in self.queues

    def __repr__(self) -> str:
        return f"VirtualHost(name={self.name!r}, ready={self.ready}, queues={sorted(self.queues)})"


class VirtualHostRegistry:
    """
    Реестр виртуальных хостов.

    - start(names, config, topology): подключение + объявление очередей
    - get(name): handle уже запущенного vhost'а
    - stop(): закрыть все соединения (идемпотентно)
    """

    def __init__(self, broker_factory: Optional[BrokerFactory] = None):
        self._broker_factory = broker_factory or default_broker_factory
        self._vhosts: Dict[str, VirtualHost] = {}

    @property
    def names(self) -> List[str]:
        return list(self._vhosts)

    def __contains__(self, name: object) -> bool:
        return name in self._vhosts

    async def start(
        self,
        names: Iterable[str],
        config: BrokerConfig,
        topology: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> Dict[str, VirtualHost]:
        """
        Поднять все vhost'ы.

        Args:
            names: Имена vhost'ов на брокере
            config: Параметры подключения
            topology: vhost -> очереди, которые нужно объявить

        Raises:
            BrokerConnectionError: брокер недоступен или отклонил учётные данные
            TopologyError: vhost или очередь не удалось объявить
        """
        if self._vhosts:
            logger.warning("Virtual hosts already started", component="amqp")
            return dict(self._vhosts)

        topology = topology or {}
        started: List[VirtualHost] = []

        try:
            for name in dict.fromkeys(names):
                vhost = VirtualHost(
                    name,
                    self._broker_factory(config.url(name), max_consumers=config.prefetch_count),
                )
                started.append(vhost)
                await self._connect(vhost, config)
                for queue_name in topology.get(name, ()):
                    await vhost.declare_queue(queue_name)
        except Exception:
            await self._close_all(started)
            raise

        for vhost in started:
            vhost.ready = True
            self._vhosts[vhost.name] = vhost
            logger.info(
                f"Virtual host '{vhost.name}' ready with {len(vhost.queues)} queue(s)",
                component="amqp",
            )

        return dict(self._vhosts)

    async def _connect(self, vhost: VirtualHost, config: BrokerConfig) -> None:
        try:
            await vhost.broker.connect()
        except ConnectionNotAllowed as e:
            raise TopologyError(
                f"Virtual host '{vhost.name}' is not available on the broker",
                details={"url": config.safe_url(vhost.name)},
                original_error=e,
            ) from e
        except Exception as e:
            raise BrokerConnectionError(
                f"Cannot connect to broker for vhost '{vhost.name}'",
                details={"url": config.safe_url(vhost.name)},
                original_error=e,
            ) from e

    def get(self, name: str) -> VirtualHost:
        vhost = self._vhosts.get(name)
        if vhost is None or not vhost.ready:
            raise NotFoundError(f"Virtual host '{name}' is not started", details={"vhost": name})
        return vhost

    async def stop(self) -> None:
        if not self._vhosts:
            return
        vhosts = list(self._vhosts.values())
        self._vhosts.clear()
        await self._close_all(vhosts)
        logger.info("All virtual hosts closed", component="amqp")

    async def _close_all(self, vhosts: Iterable[VirtualHost]) -> None:
        for vhost in vhosts:
            vhost.ready = False
            try:
                await vhost.broker.close()
            except Exception as e:
                logger.warning(
                    f"Failed to close connection of vhost '{vhost.name}': {e}",
                    component="amqp",
                )


__all__ = [
    "BrokerConfig",
    "VirtualHost",
    "VirtualHostRegistry",
    "default_broker_factory",
]

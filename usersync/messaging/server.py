"""
Broker server: виртуальные хосты + подключения + consumer'ы.

Порядок работы:
    server = BrokerServer(settings.rabbitmq.vhost_names, settings.rabbitmq.broker_config())
    await server.start()                       # vhost'ы, соединения, очереди
    container = Container(..., home_vhost=server.get_home_vhost(), ...)
    await server.start_all_consumers(container)
    ...
    await server.stop(grace_period=10)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Set

from usersync.config.constants import DEFAULT_GRACE_PERIOD_SECONDS, HOME_VHOST_KEY, WORK_VHOST_KEY
from usersync.messaging.consumers import ConsumerBinding, default_bindings
from usersync.messaging.producers import UserProducers
from usersync.messaging.vhosts import BrokerConfig, VirtualHost, VirtualHostRegistry
from usersync.services.shutdown_manager import InFlightTracker
from usersync.shared.exceptions import ConfigurationError, NotFoundError, TopologyError
from usersync.utility.logging_client import logger

if TYPE_CHECKING:
    from usersync.container import Container


class BrokerServer:
    """Composition of the vhost registry, producers' topology and consumer bindings."""

    def __init__(
        self,
        vhost_names: Mapping[str, str],
        config: BrokerConfig,
        bindings: Optional[Iterable[ConsumerBinding]] = None,
        registry: Optional[VirtualHostRegistry] = None,
    ):
        self.vhost_names: Dict[str, str] = dict(vhost_names)
        self.config = config
        self.bindings: List[ConsumerBinding] = (
            list(bindings) if bindings is not None else default_bindings()
        )
        self.registry = registry or VirtualHostRegistry()
        self.tracker = InFlightTracker("deliveries")
        self.started = False
        self._running: Set[str] = set()
        self._stopped = False

    def _name_for(self, key: str) -> str:
        try:
            return self.vhost_names[key]
        except KeyError:
            raise ConfigurationError(
                f"Unknown virtual host key '{key}'",
                details={"known": sorted(self.vhost_names)},
            ) from None

    def topology(self) -> Dict[str, List[str]]:
        """vhost name -> queues to declare (producer destinations + consumer sources)."""
        queues: Dict[str, List[str]] = {name: [] for name in self.vhost_names.values()}

        def add(key: str, queue: str):
            names = queues[self._name_for(key)]
            if queue not in names:
                names.append(queue)

        for key, destinations in UserProducers.DESTINATIONS.items():
            if key in self.vhost_names:
                for queue in destinations:
                    add(key, queue)
        for binding in self.bindings:
            add(binding.vhost_key, binding.source)
        return queues

    async def start(self) -> None:
        """
        Поднять vhost'ы и соединения.

        Raises:
            BrokerConnectionError, TopologyError: старт приложения должен прерваться
        """
        if self.started:
            return
        topology = self.topology()
        with logger.timed("amqp_start", component="amqp").add_context(vhosts=list(topology)):
            await self.registry.start(list(topology), self.config, topology)
        self.started = True
        self._stopped = False

    def get_vhost(self, key: str) -> VirtualHost:
        if key not in self.vhost_names:
            raise NotFoundError(f"Virtual host '{key}' is not configured", details={"key": key})
        return self.registry.get(self.vhost_names[key])

    def get_home_vhost(self) -> VirtualHost:
        return self.get_vhost(HOME_VHOST_KEY)

    def get_work_vhost(self) -> VirtualHost:
        return self.get_vhost(WORK_VHOST_KEY)

    async def start_all_consumers(self, container: "Container") -> int:
        """
        Запустить все consumer'ы. Уже запущенные пропускаются.

        Binding считается запущенным только после успешного `broker.start()`
        его vhost'а, поэтому после TopologyError вызов можно повторить.

        Returns:
            Количество consumer'ов, запущенных этим вызовом
        """
        pending: Dict[str, List[ConsumerBinding]] = {}
        vhosts: Dict[str, VirtualHost] = {}

        for binding in self.bindings:
            if binding.started:
                continue
            vhost = self.get_vhost(binding.vhost_key)
            binding.subscribe(vhost, container, self.tracker)
            pending.setdefault(vhost.name, []).append(binding)
            vhosts[vhost.name] = vhost

        started_now = 0
        for name, bindings in pending.items():
            vhost = vhosts[name]
            if name not in self._running:
                try:
                    await vhost.broker.start()
                except Exception as e:
                    raise TopologyError(
                        f"Cannot start consumers of vhost '{name}'",
                        details={"vhost": name, "consumers": [b.name for b in bindings]},
                        original_error=e,
                    ) from e
                self._running.add(name)
            for binding in bindings:
                binding.started = True
            started_now += len(bindings)

        if started_now:
            logger.info(f"Started {started_now} consumer(s)", component="amqp")
        return started_now

    async def stop(self, grace_period: float = DEFAULT_GRACE_PERIOD_SECONDS) -> None:
        """Дождаться in-flight обработчиков (не дольше grace_period) и закрыть соединения."""
        if self._stopped:
            return
        self._stopped = True
        await self.tracker.drain(grace_period)
        await self.registry.stop()
        self._running.clear()
        self.started = False


__all__ = ["BrokerServer"]

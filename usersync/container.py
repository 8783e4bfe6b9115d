"""
Composition root.

Контейнер собирается один раз, после старта брокера, и передаётся по ссылке
в consumer'ы, задачи воркера, HTTP и административные команды. Записи
доступны только на чтение.
"""

from __future__ import annotations

from usersync.integrations.json_placeholder import JsonPlaceholderClient
from usersync.messaging.producers import UserProducers
from usersync.messaging.vhosts import VirtualHost
from usersync.services.user import UserService
from usersync.shared.exceptions import TopologyError
from usersync.storage.database import Database
from usersync.storage.repositories import UserRepository


class Container:
    def __init__(
        self,
        database: Database,
        json_placeholder: JsonPlaceholderClient,
        home_vhost: VirtualHost,
        work_vhost: VirtualHost,
        app_name: str = "usersync",
    ):
        for vhost in (home_vhost, work_vhost):
            if not vhost.ready:
                raise TopologyError(
                    f"Virtual host '{vhost.name}' must be started before the container is built",
                    details={"vhost": vhost.name},
                )

        self._database = database
        self._json_placeholder = json_placeholder
        self._home_vhost = home_vhost
        self._work_vhost = work_vhost
        self._user_repository = UserRepository(database)
        self._user_service = UserService(database, self._user_repository, json_placeholder)
        self._producers = UserProducers(home_vhost, work_vhost, app_name=app_name)

    @property
    def database(self) -> Database:
        return self._database

    @property
    def json_placeholder(self) -> JsonPlaceholderClient:
        return self._json_placeholder

    @property
    def home_vhost(self) -> VirtualHost:
        return self._home_vhost

    @property
    def work_vhost(self) -> VirtualHost:
        return self._work_vhost

    @property
    def user_repository(self) -> UserRepository:
        return self._user_repository

    @property
    def user_service(self) -> UserService:
        return self._user_service

    @property
    def producers(self) -> UserProducers:
        return self._producers

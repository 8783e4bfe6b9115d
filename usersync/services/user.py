"""
UserService: операции над пользователями, общие для HTTP, consumer'ов,
задач воркера и административных команд.
"""

from __future__ import annotations

from typing import List

from usersync.config.constants import UserSources
from usersync.integrations.json_placeholder import JsonPlaceholderClient
from usersync.shared.exceptions import ResourceNotFoundError
from usersync.storage.database import Database
from usersync.storage.repositories import User, UserCreate, UserRepository, normalize_email
from usersync.utility.logging_client import logger


class UserService:
    def __init__(
        self,
        database: Database,
        user_repository: UserRepository,
        json_placeholder: JsonPlaceholderClient,
    ):
        self.database = database
        self.users = user_repository
        self.json_placeholder = json_placeholder

    async def all(self) -> List[User]:
        return await self.users.all()

    async def find_by_id(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError(f"User {user_id} not found", details={"id": user_id})
        return user

    async def fetch_from_json_placeholder(self) -> List[str]:
        """
        Забрать пользователей JSONPlaceholder и сохранить тех, чьего e-mail
        ещё нет для этого источника.

        Returns:
            ID созданных пользователей
        """
        source = UserSources.JSON_PLACEHOLDER.value
        remote_users = await self.json_placeholder.get_users()
        emails = [normalize_email(u.email) for u in remote_users]

        fetched_ids: List[str] = []
        async with logger.timed("fetch_users", component="users") as op:
            async with self.database.transaction() as conn:
                existing = {
                    u.email_address
                    for u in await self.users.get_by_emails_with_source(emails, source, conn=conn)
                }
                for remote in remote_users:
                    email = normalize_email(remote.email)
                    if email in existing:
                        continue
                    existing.add(email)
                    fetched_ids.append(
                        await self.users.create(
                            UserCreate(
                                name=remote.name,
                                username=remote.username,
                                email_address=email,
                                source=source,
                            ),
                            conn=conn,
                        )
                    )
            op.add_context(remote=len(remote_users), created=len(fetched_ids))

        return fetched_ids

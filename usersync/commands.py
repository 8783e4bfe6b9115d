"""
Административные команды ("--bash" режим).

    usersync --bash sync-users list-users

Каждая сигнатура: операция над тем же контейнером, что используют HTTP,
consumer'ы и воркер.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence

from usersync.shared.exceptions import UnknownCommandError
from usersync.utility.logging_client import logger

if TYPE_CHECKING:
    from usersync.container import Container

Command = Callable[["Container"], Awaitable[Any]]


async def sync_users(container: "Container") -> List[str]:
    user_ids = await container.user_service.fetch_from_json_placeholder()
    logger.info(f"sync-users: {len(user_ids)} new user(s)", component="bash")
    return user_ids


async def request_sync(container: "Container") -> None:
    await container.producers.request_user_sync(reason="admin")
    logger.info("request-sync: command published", component="bash")


async def list_users(container: "Container") -> int:
    users = await container.user_service.all()
    for user in users:
        logger.info(f"{user.id}\t{user.username}\t{user.email_address}\t{user.source}", component="bash")
    return len(users)


COMMANDS: Dict[str, Command] = {
    "sync-users": sync_users,
    "request-sync": request_sync,
    "list-users": list_users,
}


class CommandRunner:
    def __init__(self, container: "Container", commands: Optional[Dict[str, Command]] = None):
        self.container = container
        self.commands = dict(commands if commands is not None else COMMANDS)

    @property
    def signatures(self) -> List[str]:
        return sorted(self.commands)

    async def execute(self, signatures: Sequence[str]) -> List[Any]:
        """
        Выполнить команды по порядку.

        Raises:
            UnknownCommandError: хотя бы одна сигнатура неизвестна (ничего не выполняется)
        """
        unknown = [s for s in signatures if s not in self.commands]
        if unknown:
            raise UnknownCommandError(
                f"Unknown command(s): {', '.join(unknown)}",
                details={"available": self.signatures},
            )

        results = []
        for signature in signatures:
            async with logger.timed("command", component="bash").add_context(signature=signature):
                results.append(await self.commands[signature](self.container))
        return results

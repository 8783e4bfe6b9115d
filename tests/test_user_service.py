"""
Тесты UserService.

Тестирует:
- fetch_from_json_placeholder: дедупликация по e-mail и источнику, одна транзакция
- find_by_id: отсутствующий пользователь
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from usersync.integrations.json_placeholder import JsonPlaceholderUser
from usersync.services.user import UserService
from usersync.shared.exceptions import ExternalFetchError, ResourceNotFoundError
from usersync.storage.repositories import User


def _remote(user_id: int, email: str) -> JsonPlaceholderUser:
    return JsonPlaceholderUser(id=user_id, name=f"User {user_id}", username=f"user{user_id}", email=email)


@pytest.fixture
def repository():
    repository = MagicMock()
    repository.all = AsyncMock(return_value=[])
    repository.get_by_id = AsyncMock(return_value=None)
    repository.get_by_emails_with_source = AsyncMock(return_value=[])
    repository.create = AsyncMock(side_effect=["10", "11", "12"])
    return repository


@pytest.fixture
def json_placeholder():
    client = MagicMock()
    client.get_users = AsyncMock(return_value=[])
    return client


@pytest.fixture
def service(fake_database, repository, json_placeholder) -> UserService:
    return UserService(fake_database, repository, json_placeholder)


class TestFetchFromJsonPlaceholder:
    @pytest.mark.asyncio
    async def test_creates_only_unknown_emails(self, service, repository, json_placeholder, fake_database):
        json_placeholder.get_users.return_value = [
            _remote(1, "Known@Example.com"),
            _remote(2, "new@example.com"),
            _remote(3, " NEW@example.com "),
        ]
        repository.get_by_emails_with_source.return_value = [
            User(
                id="1",
                name="User 1",
                username="user1",
                email_address="known@example.com",
                source="json_placeholder",
            )
        ]

        fetched_ids = await service.fetch_from_json_placeholder()

        assert fetched_ids == ["10"]
        repository.create.assert_awaited_once()
        created = repository.create.await_args.args[0]
        assert created.email_address == "new@example.com"
        assert created.source == "json_placeholder"
        assert repository.create.await_args.kwargs["conn"] is fake_database.conn
        assert fake_database.transactions == 1

    @pytest.mark.asyncio
    async def test_lookup_uses_normalized_emails(self, service, repository, json_placeholder):
        json_placeholder.get_users.return_value = [_remote(1, "Sincere@April.biz")]

        await service.fetch_from_json_placeholder()

        emails, source = repository.get_by_emails_with_source.await_args.args
        assert emails == ["sincere@april.biz"]
        assert source == "json_placeholder"

    @pytest.mark.asyncio
    async def test_nothing_new(self, service, repository):
        assert await service.fetch_from_json_placeholder() == []
        repository.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, service, repository, json_placeholder, fake_database):
        json_placeholder.get_users.side_effect = ExternalFetchError("GET /users failed", status_code=503)

        with pytest.raises(ExternalFetchError):
            await service.fetch_from_json_placeholder()

        repository.create.assert_not_awaited()
        assert fake_database.transactions == 0


class TestFindById:
    @pytest.mark.asyncio
    async def test_missing_user(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.find_by_id("404")

    @pytest.mark.asyncio
    async def test_existing_user(self, service, repository):
        user = User(id="7", name="Kurtis", username="Elwyn", email_address="k@x.io", source="manual")
        repository.get_by_id.return_value = user

        assert await service.find_by_id("7") is user

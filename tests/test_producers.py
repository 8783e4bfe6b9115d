"""
Тесты публикации сообщений.

Тестирует:
- publish: content type, correlation id, ошибки публикации
- UserProducers: очереди и форма сообщений
"""

import json

import pytest

from usersync.config.constants import (
    HEARTBEAT_QUEUE,
    HOME_VHOST_KEY,
    USERS_FETCHED_QUEUE,
    USERS_SYNC_QUEUE,
    WORK_VHOST_KEY,
)
from usersync.messaging.models import SyncUsersCommand
from usersync.messaging.producers import Producer, UserProducers, publish
from usersync.shared.exceptions import PublishError
from usersync.utility.logging_client import set_request_id


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_structured_payload(self, home_vhost):
        await publish(home_vhost, USERS_FETCHED_QUEUE, {"b": 2, "a": 1}, correlation_id="cid-1")

        home_vhost.broker.publish.assert_awaited_once_with(
            b'{"a":1,"b":2}',
            queue=USERS_FETCHED_QUEUE,
            content_type="application/json",
            correlation_id="cid-1",
        )

    @pytest.mark.asyncio
    async def test_publish_text_payload(self, home_vhost):
        await publish(home_vhost, HEARTBEAT_QUEUE, "ping", correlation_id="cid-2")

        args, kwargs = home_vhost.broker.publish.await_args
        assert args == (b"ping",)
        assert kwargs["content_type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_request_id_is_used_as_correlation_id(self, home_vhost):
        set_request_id("req-42")

        await publish(home_vhost, HEARTBEAT_QUEUE, {})

        assert home_vhost.broker.publish.await_args.kwargs["correlation_id"] == "req-42"

    @pytest.mark.asyncio
    async def test_unknown_destination(self, home_vhost):
        with pytest.raises(PublishError) as exc_info:
            await publish(home_vhost, "nowhere", {"a": 1})

        assert exc_info.value.vhost == home_vhost.name
        assert exc_info.value.destination == "nowhere"
        home_vhost.broker.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_vhost(self, home_vhost):
        home_vhost.ready = False

        with pytest.raises(PublishError, match="Channel is closed"):
            await publish(home_vhost, HEARTBEAT_QUEUE, {"a": 1})

        home_vhost.broker.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broker_failure_is_wrapped(self, home_vhost):
        home_vhost.broker.publish.side_effect = RuntimeError("channel closed by broker")

        with pytest.raises(PublishError) as exc_info:
            await publish(home_vhost, HEARTBEAT_QUEUE, {"a": 1})

        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_producer_binds_destination(self, work_vhost):
        producer = Producer(work_vhost, USERS_SYNC_QUEUE)

        await producer.publish("go")

        assert work_vhost.broker.publish.await_args.kwargs["queue"] == USERS_SYNC_QUEUE


class TestUserProducers:
    def test_destinations_cover_all_producers(self):
        assert UserProducers.DESTINATIONS[WORK_VHOST_KEY] == (USERS_SYNC_QUEUE,)
        assert set(UserProducers.DESTINATIONS[HOME_VHOST_KEY]) == {USERS_FETCHED_QUEUE, HEARTBEAT_QUEUE}

    @pytest.mark.asyncio
    async def test_request_user_sync_goes_to_work_vhost(self, home_vhost, work_vhost):
        producers = UserProducers(home_vhost, work_vhost)

        command = await producers.request_user_sync(reason="admin")

        assert isinstance(command, SyncUsersCommand)
        assert command.reason == "admin"
        body = work_vhost.broker.publish.await_args.args[0]
        assert SyncUsersCommand.model_validate_json(body) == command
        home_vhost.broker.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_announce_users_fetched(self, home_vhost, work_vhost):
        producers = UserProducers(home_vhost, work_vhost)

        await producers.announce_users_fetched(["1", "2"], source="json_placeholder")

        kwargs = home_vhost.broker.publish.await_args.kwargs
        body = json.loads(home_vhost.broker.publish.await_args.args[0])
        assert kwargs["queue"] == USERS_FETCHED_QUEUE
        assert body["user_ids"] == ["1", "2"]
        assert body["source"] == "json_placeholder"

    @pytest.mark.asyncio
    async def test_heartbeat_carries_app_name(self, home_vhost, work_vhost):
        producers = UserProducers(home_vhost, work_vhost, app_name="usersync-test")

        event = await producers.heartbeat(note="tick")

        assert event.app_name == "usersync-test"
        assert home_vhost.broker.publish.await_args.kwargs["queue"] == HEARTBEAT_QUEUE

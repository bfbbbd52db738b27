"""
Tests for the workflow layer used without HTTP.

Tests cover:
- Identifier parsing
- Aggregated validation errors
- Contact message status transitions requested by the notification worker
- Recipient merge behavior
- Redis publisher error mapping
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from messaging_api.errors import (
    InvalidIdentifier,
    NotFoundError,
    PersistenceError,
    PublicationError,
    ValidationError,
)
from messaging_api.publisher import RedisPublisher
from messaging_api.schemas import ContactMessageCreate, ContactMessageEvent
from messaging_api.services import ContactMessageService, RecipientService
from messaging_api.validation import MAX_ID, parse_id, validate_payload

from conftest import make_recipient


class TestParseId:

    @pytest.mark.parametrize("raw, expected", [("1", 1), ("42", 42), ("007", 7), (str(MAX_ID), MAX_ID)])
    def test_valid(self, raw, expected):
        assert parse_id(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["", "abc", "!@#", "1.5", "-1", "0", "+1", " 1", "1 ", "1e3", "٣", str(MAX_ID + 1), "99999999999999999999"],
    )
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifier):
            parse_id(raw)


class TestValidatePayload:

    def test_aggregates_all_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(ContactMessageCreate, {"name": "", "email": "bad"})

        message = exc_info.value.message
        assert "name" in message
        assert "email" in message
        assert "subject" in message
        assert "message" in message

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError):
            validate_payload(ContactMessageCreate, "just a string")


class TestUpdateStatus:

    @pytest.fixture
    def service(self, repo, publisher):
        return ContactMessageService(repo, publisher)

    @pytest.mark.parametrize("status", ["pending", "sent", "failed"])
    def test_forwards_known_status(self, service, repo, status):
        service.update_status(3, status, "smtp timeout")

        assert repo.called("update_contact_message_status") == [(3, status, "smtp timeout")]

    def test_last_error_is_optional(self, service, repo):
        service.update_status(3, "sent")

        assert repo.called("update_contact_message_status") == [(3, "sent", None)]

    def test_unknown_status(self, service, repo):
        with pytest.raises(ValidationError):
            service.update_status(3, "delivered")

        assert repo.calls == []

    def test_not_found(self, service, repo):
        def missing(*args):
            raise NotFoundError("no rows")
        repo.funcs["update_contact_message_status"] = missing

        with pytest.raises(NotFoundError):
            service.update_status(3, "failed", "bounced")

    def test_repository_error(self, service, repo):
        def fail(*args):
            raise RuntimeError("database error")
        repo.funcs["update_contact_message_status"] = fail

        with pytest.raises(PersistenceError) as exc_info:
            service.update_status(3, "failed", "bounced")

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestRecipientMerge:

    @pytest.fixture
    def service(self, repo):
        return RecipientService(repo)

    def test_update_round_trip_leaves_other_fields(self, service, repo):
        stored = make_recipient(1, email="admin@example.com", name="Admin User", is_active=False)
        repo.funcs["get_recipient_by_id"] = lambda recipient_id: stored

        first = service.update("1", {"name": "X"})
        second = service.update("1", {"name": "X"})

        for result in (first, second):
            assert result.email == "admin@example.com"
            assert result.is_active is False
            assert result.name == "X"

    def test_invalid_id_makes_no_repository_call(self, service, repo):
        with pytest.raises(InvalidIdentifier):
            service.update("abc", {"name": "X"})
        with pytest.raises(InvalidIdentifier):
            service.delete("abc")
        with pytest.raises(InvalidIdentifier):
            service.get("abc")

        assert repo.calls == []

    def test_create_rejects_before_persisting(self, service, repo):
        with pytest.raises(ValidationError):
            service.create({"email": "nope", "name": "Test"})

        assert repo.calls == []


class TestRedisPublisher:

    @pytest.fixture
    def redis_publisher(self) -> RedisPublisher:
        publisher = RedisPublisher("redis://localhost:6379/15", "contact_messages")
        publisher._client = AsyncMock()
        return publisher

    @pytest.mark.asyncio
    async def test_publish_pushes_camel_case_event(self, redis_publisher):
        await redis_publisher.publish(ContactMessageEvent(message_id=7))

        redis_publisher._client.rpush.assert_awaited_once_with("contact_messages", '{"messageId":7}')

    @pytest.mark.asyncio
    async def test_publish_failure_is_wrapped(self, redis_publisher):
        redis_publisher._client.rpush.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(PublicationError):
            await redis_publisher.publish(ContactMessageEvent(message_id=7))

    @pytest.mark.asyncio
    async def test_ping_reports_unreachable_broker(self, redis_publisher):
        redis_publisher._client.ping.side_effect = RedisConnectionError("connection refused")

        assert await redis_publisher.ping() is False

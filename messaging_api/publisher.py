"""
Queue publisher for contact message notifications.

Events are pushed as JSON onto a Redis list. A separate notification worker
pops them, looks up the message and the active recipients, and sends email.
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache

from redis.asyncio import Redis
from redis.exceptions import RedisError

from messaging_api.config import settings
from messaging_api.errors import PublicationError
from messaging_api.schemas import ContactMessageEvent

logger = logging.getLogger(__name__)


class Publisher(ABC):
    """Fire-and-forget event emission."""

    @abstractmethod
    async def publish(self, event: ContactMessageEvent) -> None:
        """Send one event. Raises PublicationError on failure."""

    async def ping(self) -> bool:
        """Return True if the broker answers."""
        return True

    async def close(self) -> None:
        """Release broker connections."""


class RedisPublisher(Publisher):
    """Publisher backed by a Redis list used as a work queue."""

    def __init__(self, redis_url: str, queue_name: str, timeout: float = 2.0):
        self.queue_name = queue_name
        # No connection is opened until the first command
        self._client = Redis.from_url(
            redis_url,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )

    async def publish(self, event: ContactMessageEvent) -> None:
        payload = event.model_dump_json(by_alias=True)
        try:
            await self._client.rpush(self.queue_name, payload)
        except RedisError as e:
            raise PublicationError(
                f"failed to publish to queue '{self.queue_name}': {e}"
            ) from e
        logger.debug(f"Published event to {self.queue_name}: {payload}")

    async def ping(self) -> bool:
        """Return True if the broker answers."""
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Queue health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()


@lru_cache()
def get_publisher() -> RedisPublisher:
    """
    Get the process-wide publisher.
    The underlying Redis client is a connection pool shared by all requests.
    """
    return RedisPublisher(settings.REDIS_URL, settings.CONTACT_QUEUE_NAME)

"""
Export event notifications over Redis Pub/Sub.

Each event is sent as one orjson-encoded message carrying the ExportEvent
fields plus the channel it was sent on. Publishing is retried with tenacity;
the export itself never is.
"""

import logging
from typing import Optional

import orjson
import redis.asyncio as redis
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from scroll_export.utils.config import settings
from scroll_export.utils.schemas import ExportEvent

logger = logging.getLogger(__name__)


def encode_event(event: ExportEvent, channel: str) -> bytes:
    return orjson.dumps({**event.model_dump(mode="json"), "channel": channel})


class RedisPublisher:
    """Sends export events to a Redis channel."""

    def __init__(self, redis_url: Optional[str] = None, channel: Optional[str] = None) -> None:
        """
        Args:
            redis_url: Defaults to settings.REDIS_URL
            channel: Defaults to settings.REDIS_CHANNEL_EXPORT

        Raises:
            ValueError: If no Redis URL is configured
        """
        self.redis_url = redis_url or settings.REDIS_URL
        if not self.redis_url:
            raise ValueError("REDIS_URL is not configured")
        self.channel = channel or settings.REDIS_CHANNEL_EXPORT
        self._client: Optional[redis.Redis] = None

    def _connection(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, max_connections=settings.REDIS_MAX_CONNECTIONS)
        return self._client

    @retry(
        retry=retry_if_exception_type(redis.RedisError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def publish_event(self, event: ExportEvent) -> int:
        """Publish one export event, returning how many subscribers got it.

        Raises:
            redis.RedisError: If the last of three attempts fails
        """
        receivers = await self._connection().publish(self.channel, encode_event(event, self.channel))
        logger.debug("Export event sent on %s to %d subscribers", self.channel, receivers)
        return receivers

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

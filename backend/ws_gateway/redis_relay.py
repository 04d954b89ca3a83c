"""
Redis pub/sub relay for realtime events.

When several API workers run behind a load balancer, each one only knows
its own WebSocket clients. Publishing every event to one Redis channel and
having each worker deliver what it receives to its local clients keeps
delivery at-most-once per client.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

REQUIRED_ENVELOPE_FIELDS = {"event", "data"}
MAX_BACKOFF_SECONDS = 30.0


def validate_envelope(data: Any) -> tuple[bool, str | None]:
    """
    Validate an envelope received from Redis.

    Returns (is_valid, error_message).
    """
    if not isinstance(data, dict):
        return False, "Envelope must be a dictionary"
    missing = REQUIRED_ENVELOPE_FIELDS - set(data.keys())
    if missing:
        return False, f"Missing required fields: {sorted(missing)}"
    if not isinstance(data["event"], str):
        return False, "event must be a string"
    return True, None


class RedisEventRelay:
    """Publishes envelopes to a channel and feeds received ones to a callback."""

    def __init__(self, url: str | None = None, channel: str | None = None):
        self._url = url or settings.redis_url
        self.channel = channel or settings.realtime_channel
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30,
            )
            logger.info("Redis relay client initialized", channel=self.channel)
        return self._redis

    async def publish(self, envelope: dict[str, Any]) -> int:
        """Publish an envelope. Returns the number of subscribed workers."""
        return await self._client().publish(self.channel, json.dumps(envelope, default=str))

    async def _listen(self, on_message: Callable[[dict[str, Any]], Awaitable[Any]]) -> None:
        pubsub = self._client().pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("Redis relay subscribed", channel=self.channel)
        try:
            async for msg in pubsub.listen():
                if msg is None or msg.get("type") != "message":
                    continue
                try:
                    data = json.loads(msg["data"])
                except json.JSONDecodeError as e:
                    logger.warning("Failed to parse relayed event", error=str(e))
                    continue

                is_valid, error = validate_envelope(data)
                if not is_valid:
                    logger.warning("Invalid relayed event", error=error)
                    continue

                try:
                    await on_message(data)
                except Exception as e:
                    logger.error("Error delivering relayed event", error=str(e), exc_info=True)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def run(self, on_message: Callable[[dict[str, Any]], Awaitable[Any]]) -> None:
        """
        Subscribe and dispatch forever, reconnecting with exponential backoff.
        Stops only when cancelled.
        """
        backoff = 1.0
        while True:
            try:
                await self._listen(on_message)
                backoff = 1.0
            except asyncio.CancelledError:
                logger.info("Redis relay subscriber cancelled")
                raise
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                logger.warning(
                    "Redis relay connection lost, reconnecting",
                    error=str(e),
                    retry_in=backoff,
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF_SECONDS)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis relay client closed")

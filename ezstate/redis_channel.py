"""Redis pub/sub realtime channel.

Events travel as JSON envelopes ``{"event": <name>, "data": <payload>}``.
Each subscription owns a background task reading its pubsub connection.
When the connection drops, the task resubscribes with exponential backoff
and invokes the subscription's reconnect callback once it is back, so the
owner can re-fetch anything missed while disconnected.
"""

import asyncio
import logging
from typing import Any, Optional, Union

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError

from ezclient.config import Settings, settings as default_settings
from ezstate.realtime import MessageHandler, ReconnectHandler, dispatch

logger = logging.getLogger(__name__)

RECONNECT_BASE_DELAY = 0.5


class RealtimeEvent(BaseModel):
    """Wire envelope of one published event.

    Payload values are JSON-encoded by pydantic, so datetimes and UUIDs in
    a message dump travel as ISO strings.
    """

    event: str
    data: dict[str, Any]

    @classmethod
    def build(cls, event: str, payload: Union[dict[str, Any], BaseModel]) -> "RealtimeEvent":
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        return cls(event=event, data=payload)

    def encode(self) -> str:
        return self.model_dump_json()

    @classmethod
    def decode(cls, raw: str | bytes) -> "RealtimeEvent":
        """Parse a raw pubsub message.

        Raises:
            pydantic.ValidationError: If ``raw`` is not an event envelope.
        """
        return cls.model_validate_json(raw)


def reconnect_delay(attempt: int, max_delay: float) -> float:
    """Backoff before reconnect attempt ``attempt`` (0-based)."""
    return min(RECONNECT_BASE_DELAY * (2**attempt), max_delay)


class RedisSubscription:
    """One channel subscription backed by a Redis pubsub connection."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel_name: str,
        event: str,
        handler: MessageHandler,
        on_reconnect: Optional[ReconnectHandler] = None,
        max_reconnect_delay: float = 30.0,
    ) -> None:
        self._redis = redis
        self.channel_name = channel_name
        self.event = event
        self._handler = handler
        self._on_reconnect = on_reconnect
        self._max_delay = max_reconnect_delay
        self._pubsub: Any = None
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Subscribe and start the listener task.

        Raises:
            redis.exceptions.ConnectionError: If the first subscribe fails.
        """
        self._pubsub = await self._open()
        self._task = asyncio.create_task(self._run(), name=f"realtime:{self.channel_name}")
        logger.info(f"Realtime subscription started on channel={self.channel_name}")

    async def unsubscribe(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pubsub is not None:
            await self._close(self._pubsub)
            self._pubsub = None
            logger.info(f"Realtime subscription stopped on channel={self.channel_name}")

    async def _open(self) -> Any:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel_name)
        return pubsub

    async def _close(self, pubsub: Any) -> None:
        try:
            await pubsub.unsubscribe(self.channel_name)
            await pubsub.aclose()
        except (RedisConnectionError, OSError) as e:
            logger.debug(f"Closing pubsub for {self.channel_name} failed: {e}")

    async def _run(self) -> None:
        # self._pubsub is None while disconnected; unsubscribe() closes whatever is left.
        attempt = 0
        while True:
            try:
                if self._pubsub is None:
                    self._pubsub = await self._open()
                    attempt = 0
                    logger.info(f"Resubscribed to {self.channel_name}")
                    await self._notify_reconnect()
                await self._listen(self._pubsub)
                return
            except (RedisConnectionError, OSError) as e:
                if self._pubsub is not None:
                    await self._close(self._pubsub)
                    self._pubsub = None
                delay = reconnect_delay(attempt, self._max_delay)
                attempt += 1
                logger.warning(
                    f"Lost realtime connection on {self.channel_name} ({e}); "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _listen(self, pubsub: Any) -> None:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                envelope = RealtimeEvent.decode(message["data"])
                if envelope.event != self.event:
                    continue
                await dispatch(self._handler, envelope.data)
            except Exception:
                logger.exception(f"Error processing realtime message on {self.channel_name}")

    async def _notify_reconnect(self) -> None:
        if self._on_reconnect is None:
            return
        try:
            await dispatch(self._on_reconnect)
        except Exception:
            logger.exception(f"Reconnect callback for {self.channel_name} failed")


class RedisChannel:
    """RealtimeChannel over Redis pub/sub.

    Example:
        channel = RedisChannel.from_url("redis://localhost:6379/0")
        sub = await channel.subscribe("chat.7", "message-sent", on_message)
    """

    def __init__(self, redis: aioredis.Redis, max_reconnect_delay: float = 30.0) -> None:
        self._redis = redis
        self.max_reconnect_delay = max_reconnect_delay

    @classmethod
    def from_url(cls, url: str, max_reconnect_delay: float = 30.0) -> "RedisChannel":
        return cls(aioredis.from_url(url), max_reconnect_delay=max_reconnect_delay)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "RedisChannel":
        """Connect to ``REDIS_URL`` with the configured reconnect cap."""
        config = config or default_settings
        return cls.from_url(config.REDIS_URL, max_reconnect_delay=config.REALTIME_RECONNECT_MAX_DELAY)

    async def subscribe(
        self,
        channel_name: str,
        event: str,
        handler: MessageHandler,
        on_reconnect: Optional[ReconnectHandler] = None,
    ) -> RedisSubscription:
        subscription = RedisSubscription(
            self._redis,
            channel_name,
            event,
            handler,
            on_reconnect=on_reconnect,
            max_reconnect_delay=self.max_reconnect_delay,
        )
        await subscription.start()
        return subscription

    async def publish(
        self, channel_name: str, event: str, payload: Union[dict[str, Any], BaseModel]
    ) -> None:
        """Publish ``payload`` (a dict or a model such as ChatMessage) under ``event``."""
        await self._redis.publish(channel_name, RealtimeEvent.build(event, payload).encode())

    async def close(self) -> None:
        await self._redis.aclose()

"""Realtime channel abstraction.

A conversation listens on a per-conversation channel for pushed messages.
Anything implementing RealtimeChannel can deliver them; two are provided:
- InMemoryChannel: process-local fan-out, used in tests and single-process setups
- RedisChannel (ezstate.redis_channel): Redis pub/sub with reconnect

Handlers receive the decoded event payload (a dict). They may be plain
functions or coroutine functions.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message-sent"

MessageHandler = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]
ReconnectHandler = Callable[[], Union[None, Awaitable[None]]]


def chat_channel_name(conversation_id: object, prefix: str = "chat.") -> str:
    """Return the channel name for a conversation, e.g. ``chat.42``."""
    return f"{prefix}{conversation_id}"


async def dispatch(callback: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async callback and await it if needed."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class Subscription(Protocol):
    """A live registration on one channel."""

    channel_name: str

    async def unsubscribe(self) -> None: ...


class RealtimeChannel(Protocol):
    """Source of pushed events."""

    async def subscribe(
        self,
        channel_name: str,
        event: str,
        handler: MessageHandler,
        on_reconnect: Optional[ReconnectHandler] = None,
    ) -> Subscription: ...


class InMemorySubscription:
    """Subscription handle returned by InMemoryChannel."""

    def __init__(
        self,
        hub: "InMemoryChannel",
        channel_name: str,
        event: str,
        handler: MessageHandler,
        on_reconnect: Optional[ReconnectHandler],
    ) -> None:
        self._hub = hub
        self.channel_name = channel_name
        self.event = event
        self.handler = handler
        self.on_reconnect = on_reconnect
        self.active = True

    async def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._hub._remove(self)


class InMemoryChannel:
    """Process-local realtime channel.

    Example:
        channel = InMemoryChannel()
        sub = await channel.subscribe("chat.7", "message-sent", print)
        await channel.publish("chat.7", "message-sent", {"id": 1})
        await sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._subscriptions: defaultdict[str, list[InMemorySubscription]] = defaultdict(list)

    async def subscribe(
        self,
        channel_name: str,
        event: str,
        handler: MessageHandler,
        on_reconnect: Optional[ReconnectHandler] = None,
    ) -> InMemorySubscription:
        subscription = InMemorySubscription(self, channel_name, event, handler, on_reconnect)
        self._subscriptions[channel_name].append(subscription)
        logger.debug(f"Subscribed to {channel_name} ({event})")
        return subscription

    async def publish(self, channel_name: str, event: str, payload: dict[str, Any]) -> int:
        """Deliver an event to every matching subscriber.

        A failing handler is logged and does not block the others.

        Returns:
            Number of handlers the event was delivered to.
        """
        delivered = 0
        for subscription in list(self._subscriptions.get(channel_name, ())):
            if not subscription.active or subscription.event != event:
                continue
            try:
                await dispatch(subscription.handler, payload)
                delivered += 1
            except Exception:
                logger.exception(f"Handler for {channel_name} ({event}) failed")
        return delivered

    async def simulate_reconnect(self, channel_name: str | None = None) -> None:
        """Invoke the reconnect callbacks, as a dropped connection would."""
        names = [channel_name] if channel_name is not None else list(self._subscriptions)
        for name in names:
            for subscription in list(self._subscriptions.get(name, ())):
                if subscription.active and subscription.on_reconnect is not None:
                    await dispatch(subscription.on_reconnect)

    def subscriber_count(self, channel_name: str | None = None) -> int:
        if channel_name is not None:
            return len(self._subscriptions.get(channel_name, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def _remove(self, subscription: InMemorySubscription) -> None:
        subs = self._subscriptions.get(subscription.channel_name)
        if subs and subscription in subs:
            subs.remove(subscription)
            if not subs:
                del self._subscriptions[subscription.channel_name]
        logger.debug(f"Unsubscribed from {subscription.channel_name}")

"""Chat conversation state machine.

    IDLE --select()--> LOADING --history resolved--> READY --close()--> IDLE

Selecting a conversation fetches its history, then subscribes to the
conversation's realtime channel. Pushed messages are deduplicated by id and
inserted in ascending ``created_at`` order. Locally sent messages appear at
once under a ``tmp-`` id and are swapped for the canonical record when the
backend confirms them.

Every selection bumps a generation counter; responses and events belonging
to an older generation are discarded, so the last selection always wins.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from pydantic import ValidationError as PydanticValidationError

from ezclient.config import Settings, settings as default_settings
from ezclient.exceptions import AuthError
from ezclient.models import TEMP_ID_PREFIX, ChatMessage, MessageStatus, is_temp_id
from ezclient.session import Session
from ezstate.collection import OptimisticCollection
from ezstate.effects import EffectBus
from ezstate.errors import OperationFailed, as_load_failed
from ezstate.mutation import MutationController, MutationOutcome
from ezstate.realtime import MESSAGE_EVENT, RealtimeChannel, Subscription, chat_channel_name

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load messages."
SEND_FAILED_MESSAGE = "Failed to send message."
CLEAR_FAILED_MESSAGE = "Failed to clear chat."
EMPTY_MESSAGE = "Type a message or attach a file."


class ConversationPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class ChatBackend(Protocol):
    """The chat endpoints a conversation needs (see ezclient.ChatClient)."""

    async def messages(self, chat_id: int) -> list[ChatMessage]: ...

    async def send(self, receiver_id: int, message: str, attachments: Sequence[Any] = ()) -> ChatMessage: ...

    async def clear(self, chat_id: int) -> None: ...

    async def mark_read(self, sender_id: int) -> None: ...


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def sort_messages(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """Ascending by ``created_at``; ties keep their original order."""
    return sorted(messages, key=lambda m: m.created_at)


def _attachment_name(attachment: Any) -> str:
    if isinstance(attachment, tuple) and attachment:
        return str(attachment[0])
    return str(getattr(attachment, "name", attachment))


class Conversation:
    """State of the currently open chat conversation.

    Attributes:
        phase: Current phase.
        conversation_id: Id of the selected conversation (the partner's user id).
        collection: Messages of the selected conversation.
        load_error: Failure of the last history fetch, if it failed.
        live: True while a realtime subscription is active.
    """

    def __init__(
        self,
        chat: ChatBackend,
        channel: RealtimeChannel,
        effects: EffectBus,
        controller: MutationController | None = None,
        session: Session | None = None,
        self_id: int | None = None,
        channel_prefix: str = "chat.",
        message_event: str = MESSAGE_EVENT,
    ) -> None:
        self._chat = chat
        self._channel = channel
        self.effects = effects
        self.session = session
        self.controller = controller or MutationController(effects, session=session)
        self.self_id = self_id
        self.channel_prefix = channel_prefix
        self.message_event = message_event

        self.phase = ConversationPhase.IDLE
        self.conversation_id: Optional[int] = None
        self.collection: OptimisticCollection[ChatMessage] = OptimisticCollection()
        self.load_error: Optional[OperationFailed] = None
        self._generation = 0
        self._subscription: Optional[Subscription] = None
        self._failed: dict[str, tuple[str, tuple[Any, ...]]] = {}

    @classmethod
    def from_settings(
        cls,
        chat: ChatBackend,
        channel: RealtimeChannel,
        effects: EffectBus,
        controller: MutationController | None = None,
        session: Session | None = None,
        self_id: int | None = None,
        config: Settings | None = None,
    ) -> "Conversation":
        """Build a conversation using the configured channel prefix and event name.

        Without an explicit controller, one is built from the same settings.
        """
        config = config or default_settings
        if controller is None:
            controller = MutationController.from_settings(effects, session=session, config=config)
        return cls(
            chat,
            channel,
            effects,
            controller,
            session=session,
            self_id=self_id,
            channel_prefix=config.CHAT_CHANNEL_PREFIX,
            message_event=config.CHAT_MESSAGE_EVENT,
        )

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self.collection.items)

    @property
    def live(self) -> bool:
        return self._subscription is not None

    # Lifecycle

    async def select(self, conversation_id: int) -> list[ChatMessage]:
        """Open a conversation, replacing any open one.

        Returns:
            The messages once the selection settled; empty if it was
            superseded or the history fetch failed.
        """
        await self.close()
        self._generation += 1
        generation = self._generation
        self.conversation_id = conversation_id
        self.collection = OptimisticCollection()
        self.load_error = None
        self.phase = ConversationPhase.LOADING
        logger.info(f"Opening conversation {conversation_id}")

        history: list[ChatMessage] = []
        try:
            history = await self._chat.messages(conversation_id)
        except AuthError as e:
            if self._is_current(generation):
                self.effects.auth_expired(self.session, e)
                self.load_error = OperationFailed(str(e), cause=e)
                self.phase = ConversationPhase.IDLE
            return []
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Dropping stale history failure for {conversation_id}: {e!r}")
                return []
            logger.warning(f"Loading conversation {conversation_id} failed: {e!r}")
            self.load_error = as_load_failed(e, LOAD_FAILED_MESSAGE)
            self.effects.error(self.load_error.message)

        if not self._is_current(generation):
            logger.debug(f"Dropping stale history for conversation {conversation_id}")
            return []

        self.collection.reset(sort_messages(history))
        await self._subscribe(generation)
        if not self._is_current(generation):
            return []
        self.phase = ConversationPhase.READY
        if self.load_error is None:
            await self.mark_read()
        return self.messages

    async def close(self) -> None:
        """Unsubscribe and return to IDLE. Late responses are ignored."""
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()
        self.collection.close()
        self._failed.clear()
        if self.conversation_id is not None:
            logger.info(f"Closed conversation {self.conversation_id}")
        self.conversation_id = None
        self.phase = ConversationPhase.IDLE

    async def _subscribe(self, generation: int) -> None:
        name = chat_channel_name(self.conversation_id, self.channel_prefix)

        async def on_message(payload: dict[str, Any]) -> None:
            self.ingest(payload, generation=generation)

        async def on_reconnect() -> None:
            await self.resync(generation=generation)

        try:
            subscription = await self._channel.subscribe(
                name, self.message_event, on_message, on_reconnect=on_reconnect
            )
        except Exception as e:
            # History stays usable; pushes resume on the next selection.
            logger.warning(f"Subscribing to {name} failed: {e!r}")
            return

        if not self._is_current(generation):
            await subscription.unsubscribe()
            return
        self._subscription = subscription

    # Incoming messages

    def ingest(self, payload: dict[str, Any], generation: int | None = None) -> bool:
        """Add a pushed message unless it is already present.

        Args:
            payload: Event payload; the message itself or ``{"message": {...}}``.
            generation: Selection the event was subscribed under.

        Returns:
            True if the message was inserted.
        """
        if generation is not None and not self._is_current(generation):
            return False
        if self.phase == ConversationPhase.IDLE:
            return False

        data = payload.get("message") if isinstance(payload.get("message"), dict) else payload
        try:
            message = ChatMessage.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Discarding malformed chat event: {e}")
            return False

        if message.id in self.collection:
            logger.debug(f"Duplicate message {message.id} ignored")
            return False
        self.collection.insert(message, self._position_for(message))
        return True

    def _position_for(self, message: ChatMessage) -> int:
        index = len(self.collection.items)
        while index > 0 and self.collection.items[index - 1].created_at > message.created_at:
            index -= 1
        return index

    async def resync(self, generation: int | None = None) -> int:
        """Re-fetch history and merge messages missing locally.

        Used after a realtime reconnect. Placeholders are left untouched.

        Returns:
            Number of messages added.
        """
        if generation is None:
            generation = self._generation
        if not self._is_current(generation) or self.conversation_id is None:
            return 0
        try:
            history = await self._chat.messages(self.conversation_id)
        except AuthError as e:
            if self._is_current(generation):
                self.effects.auth_expired(self.session, e)
            return 0
        except Exception as e:
            logger.warning(f"Resync of conversation {self.conversation_id} failed: {e!r}")
            return 0
        if not self._is_current(generation):
            return 0
        self.load_error = None

        added = 0
        for message in sort_messages(history):
            if message.id not in self.collection:
                self.collection.insert(message, self._position_for(message))
                added += 1
        if added:
            logger.info(f"Resync added {added} message(s) to conversation {self.conversation_id}")
        return added

    async def load_more_history(self) -> int:
        """Fetch history again, merging by id (e.g. after a failed load)."""
        if self.phase != ConversationPhase.READY:
            return 0
        return await self.resync()

    # Outgoing messages

    async def send(self, body: str, attachments: Sequence[Any] = ()) -> Optional[MutationOutcome]:
        """Send a message optimistically.

        The message shows immediately with status ``sending``. If the
        backend rejects it, it stays in the list with status ``failed`` and
        can be resent with retry().

        Returns:
            The mutation outcome, or None when local validation refused it.
        """
        if self.phase != ConversationPhase.READY or self.conversation_id is None:
            self.effects.error("Select a conversation first.")
            return None
        if not (body or "").strip() and not attachments:
            self.effects.error(EMPTY_MESSAGE)
            return None

        conversation_id = self.conversation_id
        collection = self.collection
        attachments = tuple(attachments)
        placeholder = ChatMessage(
            id=new_temp_id(),
            sender_id=self.self_id,
            receiver_id=conversation_id,
            message=body or "",
            attachment=[_attachment_name(a) for a in attachments],
            created_at=datetime.now(timezone.utc),
            status=MessageStatus.SENDING,
        )

        outcome = await self.controller.run_insert(
            collection,
            placeholder,
            lambda: self._chat.send(conversation_id, body or "", attachments),
            index=self._position_for(placeholder),
            failure_message=SEND_FAILED_MESSAGE,
            description=f"send to {conversation_id}",
        )

        if outcome.rolled_back and collection is self.collection and not collection.closed:
            failed = placeholder.model_copy(update={"status": MessageStatus.FAILED})
            collection.insert(failed, self._position_for(failed))
            self._failed[failed.id] = (body or "", attachments)
        return outcome

    async def retry(self, temp_id: str) -> Optional[MutationOutcome]:
        """Resend a message left in the failed state."""
        if not is_temp_id(temp_id) or temp_id not in self._failed:
            raise KeyError(temp_id)
        body, attachments = self._failed.pop(temp_id)
        self.collection.remove(temp_id)
        return await self.send(body, attachments)

    # Conversation actions

    async def clear(self) -> Optional[MutationOutcome]:
        """Delete every message of the conversation, optimistically."""
        if self.phase != ConversationPhase.READY or self.conversation_id is None:
            return None
        conversation_id = self.conversation_id
        outcome = await self.controller.run_clear(
            self.collection,
            lambda: self._chat.clear(conversation_id),
            success_message="Chat cleared successfully!",
            failure_message=CLEAR_FAILED_MESSAGE,
            description=f"clear {conversation_id}",
        )
        if outcome.committed:
            self._failed.clear()
        return outcome

    async def mark_read(self) -> None:
        """Send a read receipt. Failures are logged only."""
        if self.conversation_id is None:
            return
        try:
            await self._chat.mark_read(self.conversation_id)
        except Exception as e:
            logger.warning(f"Marking conversation {self.conversation_id} read failed: {e!r}")

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

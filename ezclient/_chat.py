"""Chat sub-client for the EZSubcontractor API.

This module provides ChatClient for the chat endpoints (/common/chat/*).
Realtime delivery is not handled here; see `ezstate.realtime`.

This is an internal module. Import from `ezclient` instead.
"""

from typing import Any, Sequence

from ezclient._base import AsyncBaseClient
from ezclient.exceptions import MalformedResponseError, ValidationError
from ezclient.models import ChatContact, ChatMessage


class ChatClient(AsyncBaseClient):
    """Client for chat endpoints.

    Example:
        contacts = await client.chat.contacts()
        history = await client.chat.messages(contacts[0].id)
        sent = await client.chat.send(contacts[0].id, "Hello")
    """

    _BASE_PATH = "/common/chat"

    async def contacts(self) -> list[ChatContact]:
        """List conversation partners with their last message."""
        envelope = await self._get(f"{self._BASE_PATH}/users")
        return [ChatContact.model_validate(c) for c in envelope.items("users")]

    async def messages(self, chat_id: int) -> list[ChatMessage]:
        """Fetch the message history of one conversation.

        Args:
            chat_id: Conversation id (the other participant's user id).

        Returns:
            Messages as sent by the backend; ordering is left to the caller.
        """
        envelope = await self._get(f"{self._BASE_PATH}/messages/{chat_id}")
        return [ChatMessage.model_validate(m) for m in envelope.items("messages")]

    async def send(
        self,
        receiver_id: int,
        message: str,
        attachments: Sequence[Any] = (),
    ) -> ChatMessage:
        """Send a message with optional attachments.

        Args:
            receiver_id: Recipient user id.
            message: Message body; may be empty when attachments are given.
            attachments: File objects or (filename, file) tuples.

        Returns:
            The canonical stored message.

        Raises:
            ValidationError: If both the body and the attachments are empty.
            MalformedResponseError: If the backend does not echo the message.
        """
        if not (message or "").strip() and not attachments:
            raise ValidationError("Type a message or attach a file", field="message")

        files = [(f"attachments[{i}]", f) for i, f in enumerate(attachments)]
        envelope = await self._post(
            f"{self._BASE_PATH}/send-message",
            data={"receiver_id": receiver_id, "message": message or ""},
            files=files or None,
        )
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("message"), dict):
            data = data["message"]
        if not isinstance(data, dict) or "id" not in data:
            raise MalformedResponseError(
                message="The server did not confirm the sent message.",
                status_code=200,
            )
        return ChatMessage.model_validate(data)

    async def clear(self, chat_id: int) -> None:
        """Delete every message in a conversation."""
        await self._delete(f"{self._BASE_PATH}/clear/{chat_id}")

    async def mark_read(self, sender_id: int) -> None:
        """Mark messages from ``sender_id`` as read."""
        await self._get(f"{self._BASE_PATH}/mark-unread-messages/{sender_id}")

"""Saved payment cards sub-client.

This module provides CardsClient for an affiliate's saved cards
(/affiliate/cards/*). Only processor token ids are ever sent to the
backend; raw card data goes to the tokenizer in `ezclient._payments`.

This is an internal module. Import from `ezclient` instead.
"""

from ezclient._base import AsyncBaseClient, require
from ezclient.models import Card


class CardsClient(AsyncBaseClient):
    """Client for saved card endpoints.

    Example:
        cards = await client.cards.get_all()
        await client.cards.set_default(cards[-1].id)
    """

    _BASE_PATH = "/affiliate/cards"

    async def get_all(self) -> list[Card]:
        """List saved cards, normalized to a single shape."""
        envelope = await self._get(self._BASE_PATH)
        return [Card.from_api(c) for c in envelope.items("cards")]

    async def add(self, payment_method_id: str) -> Card | None:
        """Attach a tokenized payment method to the account.

        Args:
            payment_method_id: Token id issued by the payment processor.

        Returns:
            The stored card when the backend echoes it, otherwise None.

        Raises:
            ValidationError: If the token id is blank.
        """
        require(payment_method_id, "payment_method_id", "Card details missing")
        envelope = await self._post(
            f"{self._BASE_PATH}/add",
            json={"payment_method_id": payment_method_id},
        )
        if isinstance(envelope.data, dict) and envelope.data:
            return Card.from_api(envelope.data)
        return None

    async def set_default(self, card_id: str) -> None:
        """Make ``card_id`` the default card."""
        require(card_id, "card_id")
        await self._post(f"{self._BASE_PATH}/set-default", json={"card_id": card_id})

    async def remove(self, card_id: str) -> None:
        """Detach a saved card."""
        await self._delete(f"{self._BASE_PATH}/{card_id}")

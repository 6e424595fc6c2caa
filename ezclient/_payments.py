"""Payment tokenization against the card processor.

Card data never reaches the marketplace backend: the tokenizer exchanges
it with the processor for a ``pm_...`` payment method id using the
publishable key, and only that id is forwarded.

This is an internal module. Import from `ezclient` instead.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ezclient._base import require
from ezclient.config import Settings, settings as default_settings
from ezclient.exceptions import IntegrationError, ValidationError

logger = logging.getLogger(__name__)

GENERIC_PAYMENT_ERROR = "Payment method creation failed"


class CardDetails(BaseModel):
    """Raw card input. Held only long enough to tokenize."""

    number: str
    exp_month: int
    exp_year: int
    cvc: str

    def __repr__(self) -> str:
        return f"CardDetails(last4={self.number[-4:]!r})"


class BillingDetails(BaseModel):
    """Billing details attached to the payment method."""

    name: str
    email: Optional[str] = None
    postal_code: Optional[str] = None


class PaymentTokenizer:
    """Creates payment method tokens with the processor's REST API.

    Attributes:
        publishable_key: Processor publishable key.
        base_url: Processor API base URL.
    """

    def __init__(
        self,
        publishable_key: str,
        base_url: str = "https://api.stripe.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.publishable_key = publishable_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PaymentTokenizer":
        """Build a tokenizer from ``STRIPE_PUBLISHABLE_KEY`` and ``STRIPE_API_BASE``."""
        config = config or default_settings
        return cls(
            config.STRIPE_PUBLISHABLE_KEY,
            base_url=config.STRIPE_API_BASE,
            timeout=config.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "PaymentTokenizer":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def create_payment_method(self, card: CardDetails, billing: BillingDetails) -> str:
        """Tokenize a card.

        Args:
            card: Card number, expiry and CVC.
            billing: Cardholder name and contact details.

        Returns:
            The payment method id.

        Raises:
            ValidationError: If the card or billing details are incomplete.
            IntegrationError: If the processor refuses or cannot be reached.
        """
        if not self.publishable_key:
            raise IntegrationError("Payments are not configured")
        require(card.number, "number", "Card details missing")
        require(card.cvc, "cvc", "Card details missing")
        require(billing.name, "name", "Cardholder name is required")
        if not 1 <= card.exp_month <= 12:
            raise ValidationError("Card expiry month is invalid", field="exp_month")

        form = {
            "type": "card",
            "card[number]": card.number.replace(" ", ""),
            "card[exp_month]": str(card.exp_month),
            "card[exp_year]": str(card.exp_year),
            "card[cvc]": card.cvc,
            "billing_details[name]": billing.name,
        }
        if billing.email:
            form["billing_details[email]"] = billing.email
        if billing.postal_code:
            form["billing_details[address][postal_code]"] = billing.postal_code

        try:
            response = await self._client.post(
                "/v1/payment_methods",
                data=form,
                headers={"Authorization": f"Bearer {self.publishable_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Payment tokenization request failed: {e}")
            raise IntegrationError(GENERIC_PAYMENT_ERROR) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success and isinstance(body, dict) and body.get("id"):
            return body["id"]

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            raise IntegrationError(
                error.get("message") or GENERIC_PAYMENT_ERROR,
                code=error.get("code"),
                decline_code=error.get("decline_code"),
            )
        raise IntegrationError(GENERIC_PAYMENT_ERROR)

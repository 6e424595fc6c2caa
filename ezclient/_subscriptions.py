"""Subscription billing sub-client.

This module provides SubscriptionsClient for plans, promo codes and the
caller's subscription (/common/subscription/*).

This is an internal module. Import from `ezclient` instead.
"""

from typing import Any

from ezclient._base import AsyncBaseClient, require
from ezclient.models import PromoCode, Subscription, SubscriptionPlan, Transaction


class SubscriptionsClient(AsyncBaseClient):
    """Client for subscription endpoints."""

    _BASE_PATH = "/common/subscription"

    async def plans(self, role: str | None = None, public: bool = False) -> list[SubscriptionPlan]:
        """List plans for a role.

        Args:
            role: Account role; defaults to the session's role.
            public: Use the unauthenticated listing shown before signup.

        Returns:
            Plans offered to that role.
        """
        role = role or self._http.session.role
        path = f"{self._BASE_PATH}/public/plans" if public else f"{self._BASE_PATH}/plans"
        envelope = await self._get(path, params={"role": role}, auth=not public)
        return [SubscriptionPlan.model_validate(p) for p in envelope.items("plans")]

    async def check_promo(self, code: str) -> PromoCode:
        """Validate a promo code.

        Raises:
            ValidationError: If the code is blank.
            APIError: If the backend rejects the code.
        """
        require(code, "code", "Enter a promo code")
        envelope = await self._post(f"{self._BASE_PATH}/promo/check", json={"code": code.strip()})
        data = envelope.data if isinstance(envelope.data, dict) else {}
        return PromoCode.model_validate({"code": code.strip(), **data})

    async def create(
        self,
        plan_id: int,
        payment_method_id: str | None = None,
        promo_code: str | None = None,
        category_ids: list[int] | None = None,
    ) -> dict[str, Any]:
        """Start a subscription.

        Args:
            plan_id: Plan to subscribe to.
            payment_method_id: Processor token id; omitted for free plans.
            promo_code: Optional promo code.
            category_ids: Trades a subcontractor subscribes to.

        Returns:
            The backend's ``data`` payload.
        """
        body: dict[str, Any] = {"plan_id": plan_id}
        if payment_method_id:
            body["payment_method_id"] = payment_method_id
        if promo_code:
            body["promo_code"] = promo_code
        if category_ids:
            body["category_ids"] = category_ids
        envelope = await self._post(f"{self._BASE_PATH}/create-subscription", json=body)
        return envelope.data if isinstance(envelope.data, dict) else {}

    async def cancel(self, reason: str | None = None) -> None:
        """Cancel the active subscription."""
        await self._post(f"{self._BASE_PATH}/cancel", json={"reason": reason} if reason else None)

    async def mine(self) -> list[Subscription]:
        """List the caller's subscriptions."""
        envelope = await self._get(f"{self._BASE_PATH}/my-subscriptions")
        return [Subscription.model_validate(s) for s in envelope.items("subscriptions")]

    async def transactions(self) -> list[Transaction]:
        """List billing transactions."""
        envelope = await self._get(f"{self._BASE_PATH}/transactions")
        return [Transaction.model_validate(t) for t in envelope.items("transactions")]

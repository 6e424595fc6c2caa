"""Unit tests for the user actions in ezstate.actions.

This module tests:
- Saved toggles: save/unsave chosen from the visible state, rollback on failure
- Default card: exclusive flag swap, no-op on the current default
- Deletions: optimistic removal and restoration
- add_card: tokenization guards the backend call, list reloads on success
- subscribe_with_card: promo check, free plans skip tokenization
"""

import httpx
import pytest

from ezclient._payments import BillingDetails, CardDetails, PaymentTokenizer
from ezclient.exceptions import APIError, NotFoundError
from ezclient.models import PromoCode, SubscriptionPlan
from ezclient.session import Session
from ezstate import actions
from ezstate.collection import OptimisticCollection
from ezstate.effects import EffectBus
from ezstate.mutation import MutationController
from ezstate.views import ListView
from tests.fixtures.state import EffectRecorder, make_cards


# =============================================================================
# Fakes
# =============================================================================


class FakeSavable:
    """Records save/unsave calls; fails when ``error`` is set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, object]] = []
        self.error = error

    async def _record(self, name: str, item_id) -> None:
        self.calls.append((name, item_id))
        if self.error is not None:
            raise self.error

    async def save(self, item_id) -> None:
        await self._record("save", item_id)

    async def unsave(self, item_id) -> None:
        await self._record("unsave", item_id)

    async def delete(self, item_id) -> None:
        await self._record("delete", item_id)


class FakeCards:
    def __init__(self, cards=None, error: Exception | None = None) -> None:
        self.cards = cards if cards is not None else make_cards("a")
        self.calls: list[tuple[str, object]] = []
        self.error = error

    async def get_all(self):
        return list(self.cards)

    async def set_default(self, card_id: str) -> None:
        self.calls.append(("set_default", card_id))
        if self.error is not None:
            raise self.error

    async def remove(self, card_id: str) -> None:
        self.calls.append(("remove", card_id))
        if self.error is not None:
            raise self.error

    async def add(self, payment_method_id: str):
        self.calls.append(("add", payment_method_id))
        if self.error is not None:
            raise self.error
        return None


class FakeSubscriptions:
    def __init__(self, promo: PromoCode | Exception | None = None, error: Exception | None = None) -> None:
        self.promo = promo
        self.error = error
        self.created: list[dict] = []

    async def check_promo(self, code: str) -> PromoCode:
        if isinstance(self.promo, Exception):
            raise self.promo
        return self.promo or PromoCode(code=code)

    async def create(self, plan_id, payment_method_id=None, promo_code=None, category_ids=None):
        if self.error is not None:
            raise self.error
        request = {
            "plan_id": plan_id,
            "payment_method_id": payment_method_id,
            "promo_code": promo_code,
            "category_ids": category_ids,
        }
        self.created.append(request)
        return {"subscription_id": 77}


def tokenizer_returning(status: int, body: dict, seen: list | None = None) -> PaymentTokenizer:
    """Create a PaymentTokenizer whose processor answers with ``body``."""
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)

    return PaymentTokenizer("pk_test_123", transport=httpx.MockTransport(handler))


CARD = CardDetails(number="4242 4242 4242 4242", exp_month=12, exp_year=2030, cvc="123")
BILLING = BillingDetails(name="Ada Affiliate", email="ada@example.com", postal_code="10001")


# =============================================================================
# Saved toggles
# =============================================================================


class TestToggleSaved:
    """Tests for save/unsave on projects and contractors."""

    async def test_unsaved_project_is_saved(
        self, controller: MutationController, projects: OptimisticCollection, recorder: EffectRecorder
    ) -> None:
        client = FakeSavable()

        outcome = await actions.toggle_saved_project(controller, projects, client, 1)

        assert outcome.committed is True
        assert client.calls == [("save", 1)]
        assert projects.get(1).is_saved is True
        assert recorder.successes == ["Project saved successfully!"]

    async def test_saved_project_is_unsaved(
        self, controller: MutationController, projects: OptimisticCollection
    ) -> None:
        client = FakeSavable()

        await actions.toggle_saved_project(controller, projects, client, 2)

        assert client.calls == [("unsave", 2)]
        assert projects.get(2).is_saved is False

    async def test_failed_save_rolls_back(
        self, controller: MutationController, projects: OptimisticCollection, recorder: EffectRecorder
    ) -> None:
        client = FakeSavable(error=APIError("Already saved", status_code=409))

        outcome = await actions.toggle_saved_project(controller, projects, client, 1)

        assert outcome.rolled_back is True
        assert projects.get(1).is_saved is False
        assert recorder.errors == ["Already saved"]

    async def test_contractor_toggle(self, controller: MutationController) -> None:
        from ezclient.models import Contractor

        contractors = OptimisticCollection([Contractor(id=5, name="Sam Sub")])
        client = FakeSavable()

        await actions.toggle_saved_contractor(controller, contractors, client, 5)

        assert client.calls == [("save", 5)]
        assert contractors.get(5).is_saved is True

    async def test_missing_item_raises(
        self, controller: MutationController, projects: OptimisticCollection
    ) -> None:
        with pytest.raises(KeyError):
            await actions.toggle_saved_project(controller, projects, FakeSavable(), 99)


# =============================================================================
# Cards
# =============================================================================


class TestSetDefaultCard:
    """Tests for the exclusive default card flag."""

    async def test_sets_new_default(
        self, controller: MutationController, cards: OptimisticCollection
    ) -> None:
        client = FakeCards()

        outcome = await actions.set_default_card(controller, cards, client, "b")

        assert outcome.committed is True
        assert [c.id for c in cards.items if c.is_default] == ["b"]
        assert client.calls == [("set_default", "b")]

    async def test_current_default_is_noop(
        self, controller: MutationController, cards: OptimisticCollection
    ) -> None:
        client = FakeCards()

        outcome = await actions.set_default_card(controller, cards, client, "a")

        assert outcome.skipped is True
        assert client.calls == []

    async def test_failure_keeps_old_default(
        self, controller: MutationController, cards: OptimisticCollection, recorder: EffectRecorder
    ) -> None:
        client = FakeCards(error=APIError("Card expired", status_code=400))

        await actions.set_default_card(controller, cards, client, "c")

        assert [c.id for c in cards.items if c.is_default] == ["a"]
        assert recorder.errors == ["Card expired"]


class TestAddCard:
    """Tests for tokenizing and registering a card."""

    async def test_add_card_tokenizes_then_reloads(
        self, effects: EffectBus, session: Session, recorder: EffectRecorder
    ) -> None:
        seen: list[httpx.Request] = []
        tokenizer = tokenizer_returning(200, {"id": "pm_new", "object": "payment_method"}, seen)
        client = FakeCards()
        view = ListView(client.get_all, effects, session=session, exclusive_flags=("is_default",))

        token = await actions.add_card(tokenizer, client, view, CARD, BILLING)

        assert token == "pm_new"
        assert client.calls == [("add", "pm_new")]
        assert view.phase.value == "ready"
        assert recorder.successes == ["Card added successfully!"]
        assert seen[0].url.path == "/v1/payment_methods"

    async def test_declined_card_never_reaches_backend(
        self, effects: EffectBus, recorder: EffectRecorder
    ) -> None:
        tokenizer = tokenizer_returning(
            402, {"error": {"message": "Your card was declined.", "code": "card_declined"}}
        )
        client = FakeCards()
        view = ListView(client.get_all, effects)

        token = await actions.add_card(tokenizer, client, view, CARD, BILLING)

        assert token is None
        assert client.calls == []
        assert recorder.errors == ["Your card was declined."]

    async def test_incomplete_card_is_rejected_locally(
        self, effects: EffectBus, recorder: EffectRecorder
    ) -> None:
        seen: list = []
        tokenizer = tokenizer_returning(200, {"id": "pm_x"}, seen)
        client = FakeCards()
        view = ListView(client.get_all, effects)
        card = CardDetails(number="", exp_month=1, exp_year=2030, cvc="123")

        assert await actions.add_card(tokenizer, client, view, card, BILLING) is None
        assert seen == []
        assert recorder.errors == ["Card details missing"]

    async def test_backend_rejection_is_reported(
        self, effects: EffectBus, recorder: EffectRecorder
    ) -> None:
        tokenizer = tokenizer_returning(200, {"id": "pm_new"})
        client = FakeCards(error=APIError("Card already on file", status_code=422))
        view = ListView(client.get_all, effects)

        assert await actions.add_card(tokenizer, client, view, CARD, BILLING) is None
        assert recorder.errors == ["Card already on file"]


# =============================================================================
# Deletions
# =============================================================================


class TestDeletions:
    """Tests for optimistic removals."""

    async def test_delete_project(
        self, controller: MutationController, projects: OptimisticCollection, recorder: EffectRecorder
    ) -> None:
        client = FakeSavable()

        outcome = await actions.delete_project(controller, projects, client, 2)

        assert outcome.committed is True
        assert projects.ids == [1, 3]
        assert recorder.successes == ["Project deleted successfully."]

    async def test_failed_delete_restores_position(
        self, controller: MutationController, projects: OptimisticCollection
    ) -> None:
        client = FakeSavable(error=NotFoundError("Project not found"))

        await actions.delete_project(controller, projects, client, 2)

        assert projects.ids == [1, 2, 3]

    async def test_delete_ad(self, controller: MutationController) -> None:
        from ezclient.models import Ad

        ads = OptimisticCollection([Ad(id=1), Ad(id=2)])
        client = FakeSavable()

        await actions.delete_ad(controller, ads, client, 1)

        assert ads.ids == [2]
        assert client.calls == [("delete", 1)]

    async def test_delete_card(
        self, controller: MutationController, cards: OptimisticCollection
    ) -> None:
        client = FakeCards()

        await actions.delete_card(controller, cards, client, "c")

        assert cards.ids == ["a", "b"]
        assert client.calls == [("remove", "c")]


# =============================================================================
# Checkout
# =============================================================================


class TestSubscribeWithCard:
    """Tests for the subscription checkout flow."""

    async def test_paid_plan_tokenizes_and_subscribes(
        self, controller: MutationController, session: Session, recorder: EffectRecorder
    ) -> None:
        subscriptions = FakeSubscriptions()
        plan = SubscriptionPlan(id=3, name="Pro", price=49.0)
        tokenizer = tokenizer_returning(200, {"id": "pm_sub"})

        result = await actions.subscribe_with_card(
            controller, subscriptions, tokenizer, plan, billing=BILLING, card=CARD, category_ids=[4, 5]
        )

        assert result == {"subscription_id": 77}
        assert subscriptions.created == [
            {"plan_id": 3, "payment_method_id": "pm_sub", "promo_code": None, "category_ids": [4, 5]}
        ]
        assert session.subscription == "Pro"
        assert recorder.successes == ["Subscription activated successfully!"]

    async def test_free_plan_skips_tokenization(self, controller: MutationController) -> None:
        subscriptions = FakeSubscriptions()
        plan = SubscriptionPlan(id=1, name="Free", price=0)

        result = await actions.subscribe_with_card(controller, subscriptions, None, plan)

        assert result is not None
        assert subscriptions.created[0]["payment_method_id"] is None

    async def test_full_discount_skips_tokenization(self, controller: MutationController) -> None:
        subscriptions = FakeSubscriptions(promo=PromoCode(code="FREE100", type="percent", value=100))
        plan = SubscriptionPlan(id=3, name="Pro", price=49.0)

        await actions.subscribe_with_card(controller, subscriptions, None, plan, promo_code="FREE100")

        assert subscriptions.created[0]["payment_method_id"] is None
        assert subscriptions.created[0]["promo_code"] == "FREE100"

    async def test_invalid_promo_stops_checkout(
        self, controller: MutationController, recorder: EffectRecorder
    ) -> None:
        subscriptions = FakeSubscriptions(promo=APIError("Promo code expired", status_code=422))
        plan = SubscriptionPlan(id=3, price=49.0)

        result = await actions.subscribe_with_card(
            controller, subscriptions, None, plan, promo_code="OLD", billing=BILLING, card=CARD
        )

        assert result is None
        assert subscriptions.created == []
        assert recorder.errors == ["Promo code expired"]

    async def test_declined_card_blocks_backend_call(
        self, controller: MutationController, recorder: EffectRecorder
    ) -> None:
        subscriptions = FakeSubscriptions()
        plan = SubscriptionPlan(id=3, price=49.0)
        tokenizer = tokenizer_returning(402, {"error": {"message": "Insufficient funds"}})

        result = await actions.subscribe_with_card(
            controller, subscriptions, tokenizer, plan, billing=BILLING, card=CARD
        )

        assert result is None
        assert subscriptions.created == []
        assert recorder.errors == ["Insufficient funds"]

    async def test_missing_card_for_paid_plan(
        self, controller: MutationController, recorder: EffectRecorder
    ) -> None:
        plan = SubscriptionPlan(id=3, price=49.0)

        result = await actions.subscribe_with_card(controller, FakeSubscriptions(), None, plan)

        assert result is None
        assert recorder.errors == ["Enter your card details to continue."]

    async def test_backend_failure_is_reported(
        self, controller: MutationController, recorder: EffectRecorder
    ) -> None:
        subscriptions = FakeSubscriptions(error=APIError("Plan unavailable", status_code=400))
        plan = SubscriptionPlan(id=1, price=0)

        assert await actions.subscribe_with_card(controller, subscriptions, None, plan) is None
        assert recorder.errors == ["Plan unavailable"]

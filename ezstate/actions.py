"""User actions wired to the optimistic controller.

Each function here is one button in the marketplace UI: it validates
locally, runs the optimistic flow through a MutationController and reports
through the controller's EffectBus. None of them raise for backend failures;
callers inspect the returned outcome.
"""

import logging
from typing import Any, Optional

from ezclient._ads import AdsClient
from ezclient._cards import CardsClient
from ezclient._contractors import ContractorsClient
from ezclient._payments import BillingDetails, CardDetails, PaymentTokenizer
from ezclient._projects import ProjectsClient
from ezclient._subscriptions import SubscriptionsClient
from ezclient.exceptions import IntegrationError, ValidationError
from ezclient.models import PromoCode, SubscriptionPlan
from ezstate.collection import REMOVE, OptimisticCollection, SetFields
from ezstate.mutation import MutationController, MutationOutcome
from ezstate.views import ListView

logger = logging.getLogger(__name__)


def _saved_target(collection: OptimisticCollection, item_id: object) -> bool:
    item = collection.get(item_id)
    if item is None:
        raise KeyError(item_id)
    return not item.is_saved


# Saved lists (shared flag)


async def toggle_saved_project(
    controller: MutationController,
    collection: OptimisticCollection,
    projects: ProjectsClient,
    project_id: int,
) -> MutationOutcome:
    """Save or unsave a project.

    The target state is read from what the user currently sees, so two quick
    clicks mean save-then-unsave even while the first is still in flight.
    """
    target = _saved_target(collection, project_id)
    remote = projects.save if target else projects.unsave
    return await controller.run(
        collection,
        project_id,
        SetFields(is_saved=target),
        lambda: remote(project_id),
        success_message="Project saved successfully!" if target else "Project removed from saved list.",
        failure_message="Failed to save project." if target else "Failed to unsave project.",
        description=f"{'save' if target else 'unsave'} project {project_id}",
    )


async def toggle_saved_contractor(
    controller: MutationController,
    collection: OptimisticCollection,
    contractors: ContractorsClient,
    contractor_id: int,
) -> MutationOutcome:
    """Save or unsave a contractor."""
    target = _saved_target(collection, contractor_id)
    remote = contractors.save if target else contractors.unsave
    return await controller.run(
        collection,
        contractor_id,
        SetFields(is_saved=target),
        lambda: remote(contractor_id),
        success_message="Contractor saved successfully!" if target else "Contractor removed from saved list.",
        failure_message="Failed to save contractor." if target else "Failed to unsave contractor.",
        description=f"{'save' if target else 'unsave'} contractor {contractor_id}",
    )


# Cards (exclusive flag)


async def set_default_card(
    controller: MutationController,
    collection: OptimisticCollection,
    cards: CardsClient,
    card_id: str,
) -> MutationOutcome:
    """Make one card the default; the previous default is reverted locally."""
    card = collection.get(card_id)
    if card is None:
        raise KeyError(card_id)
    if card.is_default:
        return MutationOutcome(skipped=True)
    return await controller.run(
        collection,
        card_id,
        SetFields(is_default=True),
        lambda: cards.set_default(card_id),
        success_message="Default card updated.",
        failure_message="Failed to set default card.",
        description=f"set default card {card_id}",
    )


async def add_card(
    tokenizer: PaymentTokenizer,
    cards: CardsClient,
    view: ListView,
    card: CardDetails,
    billing: BillingDetails,
) -> Optional[str]:
    """Tokenize a card, register it with the backend and reload the list.

    Raw card data only goes to the payment processor; the backend receives
    the payment method id.

    Returns:
        The payment method id, or None if any step failed.
    """
    effects = view.effects
    try:
        payment_method_id = await tokenizer.create_payment_method(card, billing)
    except (ValidationError, IntegrationError) as e:
        logger.info(f"Card tokenization refused: {e}")
        effects.error(e.message)
        return None

    try:
        await cards.add(payment_method_id)
    except Exception as e:
        logger.warning(f"Adding card failed: {e!r}")
        effects.report_failure(e, "Failed to add card.", session=view.session)
        return None

    effects.success("Card added successfully!")
    await view.reload()
    return payment_method_id


# Deletions


async def delete_project(
    controller: MutationController,
    collection: OptimisticCollection,
    projects: ProjectsClient,
    project_id: int,
) -> MutationOutcome:
    return await controller.run(
        collection,
        project_id,
        REMOVE,
        lambda: projects.delete(project_id),
        success_message="Project deleted successfully.",
        failure_message="Failed to delete project.",
        description=f"delete project {project_id}",
    )


async def delete_ad(
    controller: MutationController,
    collection: OptimisticCollection,
    ads: AdsClient,
    ad_id: int,
) -> MutationOutcome:
    return await controller.run(
        collection,
        ad_id,
        REMOVE,
        lambda: ads.delete(ad_id),
        success_message="Ad deleted successfully.",
        failure_message="Failed to delete ad.",
        description=f"delete ad {ad_id}",
    )


async def delete_card(
    controller: MutationController,
    collection: OptimisticCollection,
    cards: CardsClient,
    card_id: str,
) -> MutationOutcome:
    return await controller.run(
        collection,
        card_id,
        REMOVE,
        lambda: cards.remove(card_id),
        success_message="Card removed.",
        failure_message="Failed to remove card.",
        description=f"delete card {card_id}",
    )


# Checkout


async def subscribe_with_card(
    controller: MutationController,
    subscriptions: SubscriptionsClient,
    tokenizer: Optional[PaymentTokenizer],
    plan: SubscriptionPlan,
    billing: Optional[BillingDetails] = None,
    card: Optional[CardDetails] = None,
    promo_code: Optional[str] = None,
    category_ids: Optional[list[int]] = None,
) -> Optional[dict[str, Any]]:
    """Purchase a subscription plan.

    Steps: check the promo code (if given), tokenize the card unless
    nothing is due, then create the subscription. Any failed step reports
    through the effect bus and stops the flow before the backend is charged.

    Returns:
        The backend's subscription payload, or None on failure.
    """
    effects = controller.effects
    session = controller.session

    promo: Optional[PromoCode] = None
    if promo_code and promo_code.strip():
        try:
            promo = await subscriptions.check_promo(promo_code)
        except Exception as e:
            effects.report_failure(e, "Invalid promo code.", session=session)
            return None

    due = promo.apply(plan.price) if promo is not None else plan.price
    payment_method_id: Optional[str] = None
    if not plan.is_free and due > 0:
        if card is None or billing is None or tokenizer is None:
            effects.error("Enter your card details to continue.")
            return None
        try:
            payment_method_id = await tokenizer.create_payment_method(card, billing)
        except (ValidationError, IntegrationError) as e:
            logger.info(f"Checkout tokenization refused: {e}")
            effects.error(e.message)
            return None

    try:
        result = await subscriptions.create(
            plan.id,
            payment_method_id=payment_method_id,
            promo_code=promo.code if promo is not None else None,
            category_ids=category_ids,
        )
    except Exception as e:
        logger.warning(f"Subscribing to plan {plan.id} failed: {e!r}")
        effects.report_failure(e, "Subscription failed. Please try again.", session=session)
        return None

    if session is not None:
        session.subscription = plan.name or str(plan.id)
    effects.success("Subscription activated successfully!")
    logger.info(f"Subscribed to plan {plan.id}")
    return result

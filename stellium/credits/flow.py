"""Routing for insufficient-credit events.

Decides where to send a user who cannot afford an action: a subscription
offer, a credit pack, or a choice between the two. The decision depends only
on the subscription tier and the size of the shortfall; presenting it is
delegated to a purchase provider (paywall / store SDK wrapper).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import logfire

from stellium.credits.packs import (
    CREDIT_PACKS,
    MEDIUM_SHORTFALL_MAX,
    SMALL_SHORTFALL_MAX,
    CreditPack,
    pack_for_shortfall,
)
from stellium.credits.types import SubscriptionTier
from stellium.providers.base import PurchaseResult

if TYPE_CHECKING:
    from stellium.credits.ledger import CreditLedger
    from stellium.providers.base import PurchaseProvider


class FlowOutcome(StrEnum):
    """Remediation shown for an insufficient-credit event."""

    SUBSCRIPTION_OFFER = "subscription_offer"  # Free users: convert to paid
    BUY_PACK = "buy_pack"  # Straight to a credit pack
    PACK_OR_UPGRADE = "pack_or_upgrade"  # Let the user choose
    UPGRADE_FIRST = "upgrade_first"  # Pitch the upgrade, pack as fallback


# Paywall placements
PAYWALL_FREE_USER = "credits_depleted_free_user"
PAYWALL_PRO_UPGRADE = "tier_upgrade_pro"


@dataclass(frozen=True, slots=True)
class FlowDecision:
    """Where an insufficient-credit event sends the user."""

    outcome: FlowOutcome
    tier: SubscriptionTier
    shortfall: int
    pack: CreditPack | None = None  # Recommended (or fallback) pack
    paywall: str | None = None  # Subscription paywall placement
    source: str = "unknown"

    @property
    def offers_pack(self) -> bool:
        return self.pack is not None

    @property
    def offers_upgrade(self) -> bool:
        return self.paywall is not None


@dataclass(frozen=True, slots=True)
class FlowResult:
    """A decision together with what the user did with it."""

    decision: FlowDecision
    purchase: PurchaseResult


def decide(tier: SubscriptionTier | str, shortfall: int, source: str = "unknown") -> FlowDecision:
    """Pick the remediation for a shortfall.

    Every (tier, shortfall) pair maps to exactly one outcome.

    Raises:
        ValueError: If the tier is not a known subscription tier.
    """
    tier = SubscriptionTier(tier)

    if tier is SubscriptionTier.FREE:
        return FlowDecision(
            outcome=FlowOutcome.SUBSCRIPTION_OFFER,
            tier=tier,
            shortfall=shortfall,
            paywall=PAYWALL_FREE_USER,
            source=source,
        )

    if tier is SubscriptionTier.PREMIUM:
        if shortfall <= SMALL_SHORTFALL_MAX:
            return FlowDecision(
                outcome=FlowOutcome.BUY_PACK,
                tier=tier,
                shortfall=shortfall,
                pack=CREDIT_PACKS["small"],
                source=source,
            )
        if shortfall <= MEDIUM_SHORTFALL_MAX:
            return FlowDecision(
                outcome=FlowOutcome.PACK_OR_UPGRADE,
                tier=tier,
                shortfall=shortfall,
                pack=CREDIT_PACKS["medium"],
                paywall=PAYWALL_PRO_UPGRADE,
                source=source,
            )
        return FlowDecision(
            outcome=FlowOutcome.UPGRADE_FIRST,
            tier=tier,
            shortfall=shortfall,
            pack=CREDIT_PACKS["large"],
            paywall=PAYWALL_PRO_UPGRADE,
            source=source,
        )

    if tier is SubscriptionTier.PRO:
        # Already on the top tier, only packs are left
        return FlowDecision(
            outcome=FlowOutcome.BUY_PACK,
            tier=tier,
            shortfall=shortfall,
            pack=pack_for_shortfall(shortfall),
            source=source,
        )

    raise ValueError(f"No credit flow for tier {tier!r}")


class CreditFlowRouter:
    """Runs the insufficient-credit journey end to end.

    Usage:
        router = CreditFlowRouter(paywall, ledger)
        result = await router.handle_insufficient_credits(
            tier, available=3, required=10, source="weekly_horoscope"
        )
    """

    def __init__(
        self,
        purchases: PurchaseProvider,
        ledger: CreditLedger | None = None,
        user_id: str | None = None,
    ) -> None:
        self.purchases = purchases
        self.ledger = ledger
        self.user_id = user_id

    def decide(self, tier: SubscriptionTier | str, shortfall: int, source: str = "unknown") -> FlowDecision:
        return decide(tier, shortfall, source)

    async def handle_insufficient_credits(
        self,
        tier: SubscriptionTier | str,
        available: int,
        required: int,
        source: str = "unknown",
    ) -> FlowResult:
        """Decide, present, and pick up purchased credits on success."""
        decision = decide(tier, required - available, source)
        logfire.info(
            "insufficient_credits_routed",
            tier=decision.tier.value,
            available=available,
            required=required,
            shortfall=decision.shortfall,
            outcome=decision.outcome.value,
            pack=decision.pack.id if decision.pack else None,
            paywall=decision.paywall,
            source=source,
        )

        purchase = PurchaseResult(await self.purchases.present(decision))
        logfire.info(
            "credit_flow_finished",
            outcome=decision.outcome.value,
            purchase=purchase.value,
            source=source,
        )

        # Purchased credits and tier changes land server side
        if purchase is PurchaseResult.SUCCESS and self.ledger and self.user_id:
            try:
                await self.ledger.refresh(self.user_id)
            except Exception:
                logfire.exception("credit_refresh_after_purchase_failed", source=source)

        return FlowResult(decision=decision, purchase=purchase)

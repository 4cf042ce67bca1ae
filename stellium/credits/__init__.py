"""Credit economy for monetization.

Provides:
- Action registry with static credit costs
- Credit packs and tier allotments
- Local dual-pool ledger with optimistic updates
- Credits gate for credit-costing remote calls
- Routing for insufficient-credit events
"""

from stellium.credits.actions import (
    ACTION_REGISTRY,
    ActionConfig,
    CreditAction,
    cheapest_cost,
    cost_of,
    get_action,
)
from stellium.credits.flow import (
    CreditFlowRouter,
    FlowDecision,
    FlowOutcome,
    FlowResult,
    decide,
)
from stellium.credits.gate import CreditsGate, GateResult
from stellium.credits.ledger import CreditLedger
from stellium.credits.packs import (
    CREDIT_PACKS,
    TIER_CREDITS,
    CreditPack,
    get_pack,
    pack_for_shortfall,
)
from stellium.credits.types import BalanceStatus, CreditBalance, SubscriptionTier

__all__ = [
    # Action registry
    "CreditAction",
    "ActionConfig",
    "ACTION_REGISTRY",
    "get_action",
    "cost_of",
    "cheapest_cost",
    # Packs and tiers
    "CreditPack",
    "CREDIT_PACKS",
    "TIER_CREDITS",
    "get_pack",
    "pack_for_shortfall",
    # Ledger
    "CreditLedger",
    "CreditBalance",
    "BalanceStatus",
    "SubscriptionTier",
    # Gate and flow
    "CreditsGate",
    "GateResult",
    "CreditFlowRouter",
    "FlowDecision",
    "FlowOutcome",
    "FlowResult",
    "decide",
]

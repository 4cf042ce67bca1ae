"""Action registry with static credit costs.

Each billable action has a fixed cost known on the client. The server still
makes the authoritative spend decision; these costs drive local gating,
optimistic deduction and shortfall calculation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CreditAction(StrEnum):
    """Billable operations."""

    QUICK_CHART_OVERVIEW = "quick_chart_overview"
    FULL_NATAL_REPORT = "full_natal_report"
    RELATIONSHIP_OVERVIEW = "relationship_overview"
    FULL_RELATIONSHIP_REPORT = "full_relationship_report"
    ASK_STELLIUM_QUESTION = "ask_stellium_question"
    DAILY_HOROSCOPE_UNLOCK = "daily_horoscope_unlock"
    WEEKLY_HOROSCOPE_UNLOCK = "weekly_horoscope_unlock"
    MONTHLY_HOROSCOPE_UNLOCK = "monthly_horoscope_unlock"


@dataclass(frozen=True, slots=True)
class ActionConfig:
    """Configuration for a billable action."""

    action: CreditAction
    description: str
    cost: int


# Action registry - add new billable actions here
ACTION_REGISTRY: dict[CreditAction, ActionConfig] = {
    CreditAction.QUICK_CHART_OVERVIEW: ActionConfig(
        action=CreditAction.QUICK_CHART_OVERVIEW,
        description="Quick overview of a birth chart",
        cost=10,
    ),
    CreditAction.FULL_NATAL_REPORT: ActionConfig(
        action=CreditAction.FULL_NATAL_REPORT,
        description="Full natal chart interpretation",
        cost=75,
    ),
    CreditAction.RELATIONSHIP_OVERVIEW: ActionConfig(
        action=CreditAction.RELATIONSHIP_OVERVIEW,
        description="Quick compatibility overview",
        cost=10,
    ),
    CreditAction.FULL_RELATIONSHIP_REPORT: ActionConfig(
        action=CreditAction.FULL_RELATIONSHIP_REPORT,
        description="Full relationship analysis",
        cost=60,
    ),
    CreditAction.ASK_STELLIUM_QUESTION: ActionConfig(
        action=CreditAction.ASK_STELLIUM_QUESTION,
        description="One chat question",
        cost=1,
    ),
    # Horoscope unlocks, one per period
    CreditAction.DAILY_HOROSCOPE_UNLOCK: ActionConfig(
        action=CreditAction.DAILY_HOROSCOPE_UNLOCK,
        description="Unlock today's horoscope",
        cost=2,
    ),
    CreditAction.WEEKLY_HOROSCOPE_UNLOCK: ActionConfig(
        action=CreditAction.WEEKLY_HOROSCOPE_UNLOCK,
        description="Unlock this week's horoscope",
        cost=5,
    ),
    CreditAction.MONTHLY_HOROSCOPE_UNLOCK: ActionConfig(
        action=CreditAction.MONTHLY_HOROSCOPE_UNLOCK,
        description="Unlock this month's horoscope",
        cost=10,
    ),
}


def get_action(action: CreditAction | str) -> ActionConfig:
    """Get an action configuration.

    Raises:
        KeyError: If the action is not registered.
    """
    # StrEnum members hash like their values, so plain strings work as keys
    return ACTION_REGISTRY[action]  # type: ignore[index]


def cost_of(action: CreditAction | str) -> int:
    """Credit cost of an action."""
    return get_action(action).cost


def cheapest_cost() -> int:
    """Cost of the cheapest registered action."""
    return min(config.cost for config in ACTION_REGISTRY.values())

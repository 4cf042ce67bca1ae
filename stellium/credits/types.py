"""Types for credit operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class SubscriptionTier(StrEnum):
    """Subscription tiers, each with its own monthly allotment."""

    FREE = "free"
    PREMIUM = "premium"
    PRO = "pro"


class BalanceStatus(StrEnum):
    """Coarse balance level for badges and meters."""

    UNKNOWN = "unknown"  # Nothing loaded yet
    EMPTY = "empty"
    LOW = "low"
    OK = "ok"


@dataclass(slots=True)
class CreditBalance:
    """Dual-pool credit balance for one signed-in user.

    The monthly pool resets every billing period and is spent first; the pack
    pool holds purchased credits that never expire and is spent second.
    ``total`` is always derived from the two pools and cannot be assigned.
    """

    monthly_allotment: int
    monthly_remaining: int
    pack_balance: int
    tier: SubscriptionTier = SubscriptionTier.FREE
    last_updated: datetime = field(default_factory=datetime.now)

    @property
    def total(self) -> int:
        return self.monthly_remaining + self.pack_balance

    @property
    def is_monthly_depleted(self) -> bool:
        return self.monthly_remaining == 0

    def is_consistent(self) -> bool:
        """Whether both pools sit inside their allowed ranges."""
        return (
            self.monthly_allotment >= 0
            and 0 <= self.monthly_remaining <= self.monthly_allotment
            and self.pack_balance >= 0
        )

"""Contracts for the remote services the gating engine consumes.

The engine never talks to the network directly. It is handed objects that
satisfy these protocols: the HTTP client in ``stellium.providers.http`` for
the real backend, or fakes in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stellium.credits.flow import FlowDecision
    from stellium.credits.types import CreditBalance
    from stellium.gating.types import ContentType
    from stellium.providers.schemas import Horoscope


@dataclass(frozen=True, slots=True)
class UnlockPurchase:
    """Result of a successful unlock purchase call."""

    success: bool
    credits_charged: int = 0
    already_unlocked: bool = False


class PurchaseResult(StrEnum):
    """Opaque outcome of a pack purchase or subscription paywall."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


class BalanceProvider(Protocol):
    async def fetch_balance(self, user_id: str) -> CreditBalance:
        """Authoritative dual-pool balance snapshot."""
        ...


class UnlockProvider(Protocol):
    async def check_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> bool:
        """Whether the user has paid for the period."""
        ...

    async def purchase_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> UnlockPurchase:
        """Spend credits to unlock the period.

        Raises:
            InsufficientCreditsError: If the server rejects the spend.
        """
        ...


class ContentGenerator(Protocol):
    async def generate(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> Horoscope:
        """Generate (or return already generated) content for the period.

        Idempotent per period and safe to call before the user unlocks.
        """
        ...


class PurchaseProvider(Protocol):
    async def present(self, decision: FlowDecision) -> PurchaseResult:
        """Show the paywall or pack purchase the decision asks for."""
        ...

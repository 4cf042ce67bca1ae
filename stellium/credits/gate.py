"""Credit gating for any action that costs credits.

Checks the local balance before an action, deducts optimistically, runs the
remote call and reconciles with the server afterwards. Insufficient credit,
whether detected locally or by the server, is handed to the flow router
instead of surfacing as an error.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import logfire

from stellium.credits.actions import CreditAction, cost_of
from stellium.credits.types import SubscriptionTier
from stellium.providers.errors import InsufficientCreditsError

if TYPE_CHECKING:
    from stellium.credits.flow import CreditFlowRouter, FlowResult
    from stellium.credits.ledger import CreditLedger

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class GateResult(Generic[T]):
    """Outcome of a gated action."""

    proceeded: bool  # The action ran and the server accepted it
    value: T | None = None  # What the action returned
    flow: FlowResult | None = None  # Set when the user was routed for credits

    @property
    def was_routed(self) -> bool:
        return self.flow is not None


class CreditsGate:
    """Wraps credit-costing remote calls.

    Usage:
        gate = CreditsGate(ledger, router, user_id)
        result = await gate.check_and_proceed(
            CreditAction.FULL_NATAL_REPORT,
            lambda: api.generate_report(user_id),
            source="chart_screen",
        )
        if result.proceeded:
            show(result.value)
    """

    def __init__(self, ledger: CreditLedger, router: CreditFlowRouter, user_id: str) -> None:
        self.ledger = ledger
        self.router = router
        self.user_id = user_id

    @property
    def tier(self) -> SubscriptionTier:
        balance = self.ledger.balance
        return balance.tier if balance else SubscriptionTier.FREE

    def can_afford(self, action: CreditAction | str) -> bool:
        return self.ledger.has_enough(action)

    def cost_message(self, action: CreditAction | str) -> str:
        cost = cost_of(action)
        if self.ledger.has_enough(action):
            return f"This costs {cost} credits"
        total = self.ledger.total
        return f"Need {cost - total} more credits ({cost} required, {total} available)"

    async def check_and_proceed(
        self,
        action: CreditAction | str,
        proceed: Callable[[], Awaitable[T]],
        *,
        source: str = "unknown",
    ) -> GateResult[T]:
        """Run ``proceed`` if the user can afford ``action``.

        The optimistic deduction always happens before ``proceed`` is
        called, and the balance is re-fetched once the server has answered.

        Raises:
            ProviderError: Any failure of ``proceed`` other than
                insufficient credit, after the balance is reconciled.
        """
        cost = cost_of(action)

        if not self.ledger.loaded:
            await self.ledger.refresh(self.user_id)

        if not self.ledger.has_enough(action):
            logfire.info(
                "credits_gate_blocked",
                action=str(action),
                cost=cost,
                total=self.ledger.total,
                source=source,
            )
            flow = await self.router.handle_insufficient_credits(
                self.tier, available=self.ledger.total, required=cost, source=source
            )
            return GateResult(proceeded=False, flow=flow)

        self.ledger.deduct(action)

        try:
            value = await proceed()
        except InsufficientCreditsError as exc:
            # Local balance was stale; the server has the final word
            logfire.info(
                "credits_gate_rejected_by_server",
                action=str(action),
                available=exc.available,
                required=exc.required,
                source=source,
            )
            await self._reconcile(source)
            flow = await self.router.handle_insufficient_credits(
                self.tier,
                available=exc.available if exc.available is not None else self.ledger.total,
                required=exc.required if exc.required is not None else cost,
                source=source,
            )
            return GateResult(proceeded=False, flow=flow)
        except Exception:
            await self._reconcile(source)
            raise

        await self._reconcile(source)
        logfire.info("credits_gate_completed", action=str(action), source=source)
        return GateResult(proceeded=True, value=value)

    async def _reconcile(self, source: str) -> None:
        """Replace the optimistic balance with the server's, best effort."""
        try:
            await self.ledger.refresh(self.user_id)
        except Exception:
            logfire.exception("credit_reconcile_failed", source=source)

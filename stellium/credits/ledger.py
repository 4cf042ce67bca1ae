"""Local credit ledger with optimistic updates.

This is the single local source of truth for the user's balance between
remote refreshes. It handles:
- Replacing the balance wholesale after an authoritative fetch
- Optimistic deduction (monthly pool first, then pack credits)
- Optimistic crediting of purchased packs
- Fail-closed affordability checks
- Notifying every subscribed surface on each change
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

import logfire

from stellium.common.listeners import ListenerBus
from stellium.config import settings
from stellium.credits.actions import CreditAction, cheapest_cost, cost_of
from stellium.credits.types import BalanceStatus, CreditBalance

if TYPE_CHECKING:
    from stellium.providers.base import BalanceProvider


class CreditLedger:
    """Owner of the signed-in user's dual-pool balance.

    Usage:
        ledger = CreditLedger(api)
        unsubscribe = ledger.subscribe(render_meter)

        await ledger.refresh(user_id)
        if ledger.has_enough(CreditAction.FULL_NATAL_REPORT):
            ledger.deduct(CreditAction.FULL_NATAL_REPORT)  # before the remote call
            ...
            await ledger.refresh(user_id)  # reconcile with the server

    Only ``set_balance``, ``deduct``, ``credit`` and ``clear`` write the
    balance. Readers get copies, so nothing outside can move the pools.
    """

    def __init__(self, provider: BalanceProvider | None = None) -> None:
        self.provider = provider
        self._balance: CreditBalance | None = None
        self._bus: ListenerBus[CreditBalance] = ListenerBus("credit_ledger")
        # Bumped by `clear`; a refresh started before sign-out must not land after it
        self._epoch = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def balance(self) -> CreditBalance | None:
        """Snapshot of the current balance, None until one is loaded."""
        return replace(self._balance) if self._balance else None

    @property
    def loaded(self) -> bool:
        return self._balance is not None

    @property
    def total(self) -> int:
        return self._balance.total if self._balance else 0

    def has_enough(self, action: CreditAction | str) -> bool:
        """Whether the cached balance covers an action.

        Without a loaded balance this is False: an unknown balance must not
        let a spend through on the client.
        """
        if self._balance is None:
            logfire.warning("credit_check_without_balance", action=str(action))
            return False

        cost = cost_of(action)
        has_enough = self._balance.total >= cost
        logfire.debug(
            "credit_check",
            action=str(action),
            cost=cost,
            total=self._balance.total,
            has_enough=has_enough,
        )
        return has_enough

    @property
    def is_balance_low(self) -> bool:
        """True when nothing is loaded or the cheapest action is unaffordable."""
        if self._balance is None:
            return True
        return self._balance.total < cheapest_cost()

    @property
    def is_monthly_depleted(self) -> bool:
        return self._balance is not None and self._balance.is_monthly_depleted

    def balance_status(self) -> BalanceStatus:
        if self._balance is None:
            return BalanceStatus.UNKNOWN
        if self._balance.total == 0:
            return BalanceStatus.EMPTY
        if self._balance.total < settings.low_balance_threshold:
            return BalanceStatus.LOW
        return BalanceStatus.OK

    def formatted_balance(self) -> str:
        if self._balance is None:
            return "--"
        return str(self._balance.total)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_balance(self, remote: CreditBalance) -> None:
        """Replace the local balance with an authoritative one.

        This is the reconciliation point: it overrides any optimistic
        deduction or credit applied since the last fetch.
        """
        balance = replace(remote)
        if not balance.is_consistent():
            logfire.warning(
                "remote_balance_clamped",
                monthly_allotment=balance.monthly_allotment,
                monthly_remaining=balance.monthly_remaining,
                pack_balance=balance.pack_balance,
            )
            balance.monthly_allotment = max(0, balance.monthly_allotment)
            balance.monthly_remaining = min(
                max(0, balance.monthly_remaining), balance.monthly_allotment
            )
            balance.pack_balance = max(0, balance.pack_balance)

        self._balance = balance
        logfire.info(
            "credit_balance_set",
            tier=balance.tier.value,
            monthly_remaining=balance.monthly_remaining,
            pack_balance=balance.pack_balance,
            total=balance.total,
        )
        self._notify()

    def deduct(self, action: CreditAction | str) -> None:
        """Spend an action's cost locally, monthly pool first.

        Optimistic: the server is not called and may disagree until the
        next ``set_balance``. Pools are floored at zero.
        """
        if self._balance is None:
            logfire.warning("credit_deduct_without_balance", action=str(action))
            return

        cost = cost_of(action)
        balance = self._balance
        old_total = balance.total

        from_monthly = min(balance.monthly_remaining, cost)
        balance.monthly_remaining -= from_monthly
        balance.pack_balance = max(0, balance.pack_balance - (cost - from_monthly))
        balance.last_updated = datetime.now()

        logfire.info(
            "credits_deducted_optimistically",
            action=str(action),
            cost=cost,
            from_monthly=from_monthly,
            old_total=old_total,
            new_total=balance.total,
        )
        self._notify()

    def credit(self, amount: int) -> None:
        """Add purchased credits locally; they always go to the pack pool."""
        if amount < 0:
            raise ValueError(f"`amount` should be non-negative, not {amount}")
        if self._balance is None:
            logfire.warning("credit_add_without_balance", amount=amount)
            return

        self._balance.pack_balance += amount
        self._balance.last_updated = datetime.now()
        logfire.info(
            "credits_added_optimistically",
            amount=amount,
            pack_balance=self._balance.pack_balance,
            new_total=self._balance.total,
        )
        self._notify()

    async def refresh(self, user_id: str) -> CreditBalance:
        """Fetch the authoritative balance and install it.

        A balance that arrives after ``clear`` is returned but not installed.
        """
        if self.provider is None:
            raise RuntimeError("CreditLedger has no balance provider to refresh from")

        epoch = self._epoch
        with logfire.span("credit_balance_refresh", user_id=user_id):
            remote = await self.provider.fetch_balance(user_id)

        if self._epoch != epoch:
            logfire.info("credit_refresh_dropped_after_clear", user_id=user_id)
            return replace(remote)

        self.set_balance(remote)
        return replace(self._balance)  # type: ignore[arg-type]

    def clear(self) -> None:
        """Drop the balance and every listener (sign-out)."""
        logfire.info("credit_ledger_cleared")
        self._epoch += 1
        self._balance = None
        self._bus.clear()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[CreditBalance], None]) -> Callable[[], None]:
        """Observe balance changes; returns the unsubscribe function."""
        return self._bus.subscribe(callback)

    def _notify(self) -> None:
        if self._balance is not None:
            self._bus.notify(replace(self._balance))

"""Test configuration and reusable fixtures for the Stellium gating test suite.

Provides an in-memory fake of the Stellium backend (balance, unlocks and
horoscope generation), a controllable wall clock and pre-wired ledger,
router and orchestrator instances.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import replace
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set up test environment variables before any imports
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")
os.environ.setdefault("STELLIUM_ENVIRONMENT", "dev")

from stellium.credits import CreditBalance, CreditFlowRouter, CreditLedger, SubscriptionTier
from stellium.credits.actions import cost_of
from stellium.gating import ContentType, GatingOrchestrator
from stellium.providers import InsufficientCreditsError, PurchaseResult, UnlockPurchase
from stellium.providers.schemas import Horoscope

USER_ID = "user-123"

# Friday of ISO week 49, 2025
FIXED_NOW = datetime(2025, 12, 5, 10, 30)


# =============================================================================
# FAKES
# =============================================================================


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class FakeBackend:
    """In-memory backend implementing every remote provider.

    Calls can be held open with the ``*_gate`` events to control the order
    in which concurrent requests complete.
    """

    def __init__(self, balance: CreditBalance) -> None:
        self.balance = balance
        self.unlocked: set[tuple[ContentType, date]] = set()

        self.balance_calls: list[str] = []
        self.check_calls: list[tuple[ContentType, date]] = []
        self.purchase_calls: list[tuple[ContentType, date]] = []
        self.generate_calls: list[tuple[ContentType, date]] = []

        self.check_gate: asyncio.Event | None = None
        self.generate_gate: asyncio.Event | None = None
        self.purchase_gate: asyncio.Event | None = None
        self.balance_gate: asyncio.Event | None = None

        self.check_error: BaseException | None = None
        self.generate_error: BaseException | None = None
        self.purchase_error: BaseException | None = None

    async def fetch_balance(self, user_id: str) -> CreditBalance:
        self.balance_calls.append(user_id)
        if self.balance_gate is not None:
            await self.balance_gate.wait()
        return replace(self.balance)

    async def check_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> bool:
        self.check_calls.append((content_type, period_start))
        if self.check_gate is not None:
            await self.check_gate.wait()
        if self.check_error is not None:
            raise self.check_error
        return (content_type, period_start) in self.unlocked

    async def purchase_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> UnlockPurchase:
        self.purchase_calls.append((content_type, period_start))
        if self.purchase_gate is not None:
            await self.purchase_gate.wait()
        if self.purchase_error is not None:
            raise self.purchase_error
        if (content_type, period_start) in self.unlocked:
            return UnlockPurchase(success=True, already_unlocked=True)

        cost = cost_of(content_type.unlock_action)
        if self.balance.total < cost:
            raise InsufficientCreditsError(
                available=self.balance.total,
                required=cost,
                action=content_type.unlock_action.value,
            )

        from_monthly = min(self.balance.monthly_remaining, cost)
        self.balance.monthly_remaining -= from_monthly
        self.balance.pack_balance -= cost - from_monthly
        self.unlocked.add((content_type, period_start))
        return UnlockPurchase(success=True, credits_charged=cost)

    async def generate(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> Horoscope:
        self.generate_calls.append((content_type, period_start))
        if self.generate_gate is not None:
            await self.generate_gate.wait()
        if self.generate_error is not None:
            raise self.generate_error
        return Horoscope(
            text=f"Your {content_type.value} horoscope",
            start_date=period_start.isoformat(),
            end_date=period_start.isoformat(),
        )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote_balance() -> CreditBalance:
    """Premium user with some monthly credits left and a small pack balance."""
    return CreditBalance(
        monthly_allotment=200,
        monthly_remaining=3,
        pack_balance=10,
        tier=SubscriptionTier.PREMIUM,
    )


@pytest.fixture
def backend(remote_balance: CreditBalance) -> FakeBackend:
    return FakeBackend(remote_balance)


@pytest.fixture
def ledger(backend: FakeBackend) -> CreditLedger:
    return CreditLedger(backend)


@pytest.fixture
def loaded_ledger(ledger: CreditLedger, remote_balance: CreditBalance) -> CreditLedger:
    ledger.set_balance(remote_balance)
    return ledger


@pytest.fixture
def purchases() -> MagicMock:
    """Paywall / store wrapper; the user dismisses whatever is shown."""
    provider = MagicMock()
    provider.present = AsyncMock(return_value=PurchaseResult.CANCELLED)
    return provider


@pytest.fixture
def router(purchases: MagicMock, ledger: CreditLedger) -> CreditFlowRouter:
    return CreditFlowRouter(purchases, ledger, USER_ID)


@pytest.fixture
def orchestrator(
    backend: FakeBackend,
    loaded_ledger: CreditLedger,
    router: CreditFlowRouter,
    clock: FakeClock,
) -> GatingOrchestrator:
    return GatingOrchestrator(
        USER_ID,
        loaded_ledger,
        backend,
        backend,
        router,
        clock=clock,
    )

"""Tests for the local credit ledger and the listener bus behind it."""

from __future__ import annotations

import asyncio

import pytest

from stellium.common.listeners import ListenerBus
from stellium.credits import BalanceStatus, CreditAction, CreditBalance, CreditLedger, SubscriptionTier
from tests.conftest import USER_ID, FakeBackend


def _balance(monthly: int, pack: int, allotment: int = 200) -> CreditBalance:
    return CreditBalance(
        monthly_allotment=allotment,
        monthly_remaining=monthly,
        pack_balance=pack,
        tier=SubscriptionTier.PREMIUM,
    )


class TestListenerBus:
    def test_notifies_in_registration_order(self) -> None:
        bus: ListenerBus[int] = ListenerBus("test")
        seen: list[str] = []
        bus.subscribe(lambda v: seen.append(f"a{v}"))
        bus.subscribe(lambda v: seen.append(f"b{v}"))

        bus.notify(1)

        assert seen == ["a1", "b1"]

    def test_unsubscribe_stops_notifications(self) -> None:
        bus: ListenerBus[int] = ListenerBus("test")
        seen: list[int] = []
        unsubscribe = bus.subscribe(seen.append)

        unsubscribe()
        unsubscribe()  # Idempotent
        bus.notify(1)

        assert seen == []
        assert len(bus) == 0

    def test_failing_listener_does_not_block_others(self) -> None:
        bus: ListenerBus[int] = ListenerBus("test")
        seen: list[int] = []

        def boom(_: int) -> None:
            raise RuntimeError("listener bug")

        bus.subscribe(boom)
        bus.subscribe(seen.append)

        bus.notify(7)

        assert seen == [7]

    def test_listener_may_unsubscribe_itself(self) -> None:
        bus: ListenerBus[int] = ListenerBus("test")
        seen: list[int] = []
        unsubscribe = None

        def once(value: int) -> None:
            seen.append(value)
            unsubscribe()

        unsubscribe = bus.subscribe(once)
        bus.notify(1)
        bus.notify(2)

        assert seen == [1]


class TestBalanceReads:
    def test_nothing_loaded(self) -> None:
        ledger = CreditLedger()

        assert ledger.balance is None
        assert not ledger.loaded
        assert ledger.total == 0
        assert ledger.balance_status() is BalanceStatus.UNKNOWN
        assert ledger.formatted_balance() == "--"

    def test_has_enough_is_false_without_balance(self) -> None:
        ledger = CreditLedger()

        assert ledger.has_enough(CreditAction.ASK_STELLIUM_QUESTION) is False

    def test_is_balance_low_without_balance(self) -> None:
        assert CreditLedger().is_balance_low is True

    def test_has_enough_compares_total_with_cost(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=2))

        assert ledger.has_enough(CreditAction.WEEKLY_HOROSCOPE_UNLOCK)  # 5 == 5
        assert not ledger.has_enough(CreditAction.MONTHLY_HOROSCOPE_UNLOCK)  # 10 > 5

    def test_total_is_sum_of_pools(self) -> None:
        balance = _balance(monthly=3, pack=10)
        assert balance.total == 13

    def test_total_cannot_be_assigned(self) -> None:
        balance = _balance(monthly=3, pack=10)
        with pytest.raises(AttributeError):
            balance.total = 99  # type: ignore[misc]

    def test_balance_is_a_snapshot(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=10))

        snapshot = ledger.balance
        assert snapshot is not None
        snapshot.pack_balance = 1000

        assert ledger.total == 13

    @pytest.mark.parametrize(
        ("monthly", "pack", "status"),
        [
            (0, 0, BalanceStatus.EMPTY),
            (3, 0, BalanceStatus.LOW),
            (5, 4, BalanceStatus.LOW),
            (5, 5, BalanceStatus.OK),
            (200, 75, BalanceStatus.OK),
        ],
    )
    def test_balance_status(self, monthly: int, pack: int, status: BalanceStatus) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=monthly, pack=pack))

        assert ledger.balance_status() is status

    def test_flags(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=0, pack=0))

        assert ledger.is_balance_low
        assert ledger.is_monthly_depleted
        assert ledger.formatted_balance() == "0"

        ledger.set_balance(_balance(monthly=0, pack=40))
        assert not ledger.is_balance_low
        assert ledger.is_monthly_depleted


class TestDeduct:
    def test_monthly_pool_is_spent_first(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=10))

        ledger.deduct(CreditAction.WEEKLY_HOROSCOPE_UNLOCK)  # costs 5

        balance = ledger.balance
        assert balance is not None
        assert balance.monthly_remaining == 0
        assert balance.pack_balance == 8
        assert balance.total == 8

    def test_monthly_only_when_it_covers_the_cost(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=50, pack=10))

        ledger.deduct(CreditAction.QUICK_CHART_OVERVIEW)

        balance = ledger.balance
        assert balance is not None
        assert (balance.monthly_remaining, balance.pack_balance) == (40, 10)

    def test_overdraw_floors_at_zero(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=4))

        ledger.deduct(CreditAction.FULL_NATAL_REPORT)

        balance = ledger.balance
        assert balance is not None
        assert (balance.monthly_remaining, balance.pack_balance) == (0, 0)

    def test_accepts_plain_action_names(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=10, pack=0))

        ledger.deduct("daily_horoscope_unlock")

        assert ledger.total == 8

    def test_without_balance_is_a_noop(self) -> None:
        ledger = CreditLedger()
        seen: list[CreditBalance] = []
        ledger.subscribe(seen.append)

        ledger.deduct(CreditAction.ASK_STELLIUM_QUESTION)

        assert ledger.balance is None
        assert seen == []

    def test_unknown_action_raises(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=10, pack=0))

        with pytest.raises(KeyError):
            ledger.deduct("summon_the_moon")

    def test_pools_stay_consistent_across_mutations(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=12, pack=7, allotment=20))
        steps = [
            CreditAction.DAILY_HOROSCOPE_UNLOCK,
            CreditAction.WEEKLY_HOROSCOPE_UNLOCK,
            25,
            CreditAction.MONTHLY_HOROSCOPE_UNLOCK,
            CreditAction.FULL_RELATIONSHIP_REPORT,
            0,
            CreditAction.ASK_STELLIUM_QUESTION,
        ]

        for step in steps:
            if isinstance(step, int):
                ledger.credit(step)
            else:
                ledger.deduct(step)

            balance = ledger.balance
            assert balance is not None
            assert balance.is_consistent()
            assert balance.total == balance.monthly_remaining + balance.pack_balance


class TestCredit:
    def test_credit_goes_to_pack_pool(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=10))

        ledger.credit(75)

        balance = ledger.balance
        assert balance is not None
        assert balance.monthly_remaining == 3
        assert balance.pack_balance == 85

    def test_negative_credit_raises(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=10))

        with pytest.raises(ValueError, match="non-negative"):
            ledger.credit(-1)

        assert ledger.total == 13


class TestSetBalance:
    def test_overrides_optimistic_changes(self) -> None:
        ledger = CreditLedger()
        ledger.set_balance(_balance(monthly=3, pack=10))
        ledger.deduct(CreditAction.WEEKLY_HOROSCOPE_UNLOCK)

        ledger.set_balance(_balance(monthly=3, pack=5))

        assert ledger.total == 8

    def test_inconsistent_remote_balance_is_clamped(self) -> None:
        ledger = CreditLedger()

        ledger.set_balance(
            CreditBalance(monthly_allotment=10, monthly_remaining=15, pack_balance=-4)
        )

        balance = ledger.balance
        assert balance is not None
        assert balance.monthly_remaining == 10
        assert balance.pack_balance == 0
        assert balance.is_consistent()

    def test_does_not_keep_a_reference_to_the_input(self) -> None:
        ledger = CreditLedger()
        remote = _balance(monthly=3, pack=10)
        ledger.set_balance(remote)

        remote.pack_balance = 0

        assert ledger.total == 13


class TestNotifications:
    def test_every_mutation_notifies_once(self) -> None:
        ledger = CreditLedger()
        seen: list[int] = []
        ledger.subscribe(lambda balance: seen.append(balance.total))

        ledger.set_balance(_balance(monthly=3, pack=10))
        ledger.deduct(CreditAction.WEEKLY_HOROSCOPE_UNLOCK)
        ledger.credit(75)

        assert seen == [13, 8, 83]

    def test_clear_drops_balance_and_listeners(self) -> None:
        ledger = CreditLedger()
        seen: list[CreditBalance] = []
        ledger.subscribe(seen.append)
        ledger.set_balance(_balance(monthly=3, pack=10))

        ledger.clear()
        ledger.set_balance(_balance(monthly=1, pack=1))

        assert len(seen) == 1
        assert ledger.total == 2


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_installs_remote_balance(
        self, ledger: CreditLedger, backend: FakeBackend
    ) -> None:
        seen: list[CreditBalance] = []
        ledger.subscribe(seen.append)

        balance = await ledger.refresh(USER_ID)

        assert backend.balance_calls == [USER_ID]
        assert balance.total == 13
        assert ledger.total == 13
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_refresh_reconciles_optimistic_deduction(
        self, loaded_ledger: CreditLedger, backend: FakeBackend
    ) -> None:
        loaded_ledger.deduct(CreditAction.MONTHLY_HOROSCOPE_UNLOCK)
        assert loaded_ledger.total == 3

        # Server never charged
        await loaded_ledger.refresh(USER_ID)

        assert loaded_ledger.total == 13

    @pytest.mark.asyncio
    async def test_refresh_landing_after_clear_is_dropped(
        self, loaded_ledger: CreditLedger, backend: FakeBackend
    ) -> None:
        backend.balance_gate = asyncio.Event()
        seen: list[CreditBalance] = []
        pending = asyncio.create_task(loaded_ledger.refresh(USER_ID))
        while not backend.balance_calls:
            await asyncio.sleep(0)

        loaded_ledger.clear()
        loaded_ledger.subscribe(seen.append)
        backend.balance_gate.set()
        fetched = await pending

        assert fetched.total == 13
        assert not loaded_ledger.loaded
        assert seen == []

    @pytest.mark.asyncio
    async def test_refresh_after_clear_loads_again(
        self, loaded_ledger: CreditLedger
    ) -> None:
        loaded_ledger.clear()

        await loaded_ledger.refresh(USER_ID)

        assert loaded_ledger.total == 13

    @pytest.mark.asyncio
    async def test_refresh_without_provider_raises(self) -> None:
        with pytest.raises(RuntimeError, match="no balance provider"):
            await CreditLedger().refresh(USER_ID)

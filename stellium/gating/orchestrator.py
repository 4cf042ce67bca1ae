"""Per-tab gating of period-scoped content behind credit unlocks.

For each tab the orchestrator runs two independent concerns side by side:
- Is the current period unlocked? (unlock status cache, fast)
- Is the content generated? (content cache, slow, not billable)

Content is generated whether or not the user has paid and is held back in
the cache until an unlock is confirmed, at which point it is promoted to the
visible slot. Either answer may arrive first; the derived state is the same
for both orders.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import logfire

from stellium.common.listeners import ListenerBus
from stellium.config import settings
from stellium.credits.gate import CreditsGate
from stellium.gating.content_cache import ContentCache
from stellium.gating.periods import local_now, resolve_period
from stellium.gating.staleness import AppState, StalenessInvalidator, SweepResult
from stellium.gating.state import GatingState, derive_gating_state, is_taking_long
from stellium.gating.types import ContentType, EntryStatus, Period
from stellium.gating.unlock_cache import UnlockStatusCache
from stellium.providers.base import UnlockPurchase
from stellium.providers.errors import ProviderError

if TYPE_CHECKING:
    from stellium.credits.flow import CreditFlowRouter, FlowResult
    from stellium.credits.ledger import CreditLedger
    from stellium.providers.base import ContentGenerator, UnlockProvider
    from stellium.providers.schemas import Horoscope

_Key = tuple[ContentType, str]


@dataclass(frozen=True, slots=True)
class GatingEvent:
    """A tab's derived state changed."""

    content_type: ContentType
    period: Period
    state: GatingState


class UnlockStatus(StrEnum):
    UNLOCKED = "unlocked"
    ALREADY_UNLOCKED = "already_unlocked"
    INSUFFICIENT_CREDITS = "insufficient_credits"


@dataclass(frozen=True, slots=True)
class UnlockOutcome:
    """What an explicit unlock did."""

    status: UnlockStatus
    state: GatingState
    credits_charged: int = 0
    flow: FlowResult | None = None  # Set when the user was routed for credits

    @property
    def unlocked(self) -> bool:
        return self.status is not UnlockStatus.INSUFFICIENT_CREDITS


class GatingOrchestrator:
    """Gating for one signed-in user.

    Usage:
        orchestrator = GatingOrchestrator(user_id, ledger, api, api, router)
        orchestrator.subscribe(render_tab)

        state = orchestrator.open(ContentType.WEEKLY_HOROSCOPE)  # returns at once
        ...
        outcome = await orchestrator.unlock(ContentType.WEEKLY_HOROSCOPE)
        if outcome.unlocked:
            show(orchestrator.visible_content(ContentType.WEEKLY_HOROSCOPE))
    """

    def __init__(
        self,
        user_id: str,
        ledger: CreditLedger,
        unlocks: UnlockProvider,
        generator: ContentGenerator,
        router: CreditFlowRouter,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.user_id = user_id
        self.ledger = ledger
        self.unlocks = unlocks
        self.clock = clock
        self.gate = CreditsGate(ledger, router, user_id)
        self.content_cache = ContentCache(generator, user_id, clock)
        self.unlock_cache = UnlockStatusCache(unlocks, user_id)
        self.invalidator = StalenessInvalidator(self.content_cache, self.unlock_cache, clock)

        self._visible: dict[_Key, Horoscope] = {}
        self._published: dict[_Key, GatingState] = {}
        self._unlocking: dict[_Key, asyncio.Task[UnlockOutcome]] = {}
        self._epoch = 0  # Bumped by `clear`
        self._bus: ListenerBus[GatingEvent] = ListenerBus("gating_state")

        self.content_cache.subscribe(lambda entry: self._settle(entry.content_type, entry.period))
        self.unlock_cache.subscribe(lambda record: self._settle(record.content_type, record.period))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_period(self, content_type: ContentType) -> Period:
        return resolve_period(content_type.granularity, self.clock())

    def state(self, content_type: ContentType) -> GatingState:
        return self._state_for(content_type, self.current_period(content_type))

    def states(self) -> dict[ContentType, GatingState]:
        return {content_type: self.state(content_type) for content_type in ContentType}

    def visible_content(self, content_type: ContentType) -> Horoscope | None:
        """Content the user may see; None while locked or not ready."""
        period = self.current_period(content_type)
        return self._visible.get((content_type, period.key))

    def requested_at(self, content_type: ContentType) -> datetime | None:
        """When generation for the current period was requested."""
        period = self.current_period(content_type)
        entry = self.content_cache.get(content_type, period.key)
        return entry.requested_at if entry else None

    def is_taking_long(self, content_type: ContentType) -> bool:
        """Whether a generating tab should show the "taking longer" hint."""
        if not self.state(content_type).is_generating:
            return False
        return is_taking_long(
            self.requested_at(content_type), self.clock(), settings.slow_generation_seconds
        )

    def error(self, content_type: ContentType) -> str | None:
        period = self.current_period(content_type)
        entry = self.content_cache.get(content_type, period.key)
        return entry.error if entry and entry.status is EntryStatus.ERROR else None

    def subscribe(self, callback: Callable[[GatingEvent], None]) -> Callable[[], None]:
        """Observe tab state changes; returns the unsubscribe function."""
        return self._bus.subscribe(callback)

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def open(self, content_type: ContentType) -> GatingState:
        """Start the unlock check and generation for the current period.

        Neither request waits on the other. Returns the state as of now;
        later changes arrive through ``subscribe``.
        """
        return self._state_for(content_type, self._open(content_type))

    async def evaluate(self, content_type: ContentType) -> GatingState:
        """Open the tab and wait for both the unlock check and generation."""
        period = self._open(content_type)
        await asyncio.gather(
            self.unlock_cache.check(content_type, period),
            self.content_cache.load(content_type, period),
        )
        return self._state_for(content_type, period)

    async def retry(self, content_type: ContentType) -> GatingState:
        """Re-request failed generation for this tab only."""
        period = self.current_period(content_type)
        entry = self.content_cache.get(content_type, period.key)
        if entry is not None and entry.status is EntryStatus.ERROR:
            logfire.info(
                "content_generation_retry",
                content_type=content_type.value,
                period=period.key,
                error=entry.error,
            )
            self.content_cache.discard(content_type, period.key)
        return await self.evaluate(content_type)

    async def refresh(self, content_type: ContentType) -> GatingState:
        """Pull-to-refresh: ask the server again about the unlock and retry failures."""
        period = self.current_period(content_type)
        if not self.unlock_cache.peek(content_type, period.key):
            self.unlock_cache.discard(content_type, period.key)
        return await self.retry(content_type)

    async def unlock(self, content_type: ContentType) -> UnlockOutcome:
        """Spend credits to unlock the current period of a tab.

        Concurrent calls for the same tab share one purchase.

        Raises:
            ProviderError: If the purchase call fails for any reason other
                than insufficient credit.
        """
        period = self.current_period(content_type)
        key = (content_type, period.key)

        task = self._unlocking.get(key)
        if task is None:
            task = asyncio.create_task(self._unlock(content_type, period))
            self._unlocking[key] = task
            task.add_done_callback(lambda done: self._unlock_finished(key, done))
        return await asyncio.shield(task)

    def on_app_state_change(self, state: AppState | str) -> None:
        """Drop periods that ended while the app was in the background."""
        result = self.invalidator.on_app_state_change(state)
        if result:
            self._forget(result)

    def clear(self) -> None:
        """Forget everything (sign-out).

        Unlocks still in flight are cancelled; their purchases may still land
        server side but nothing is recorded locally.
        """
        self._epoch += 1
        for task in self._unlocking.values():
            task.cancel()
        if self._unlocking:
            logfire.info("unlocks_cancelled_on_clear", count=len(self._unlocking))
        self._unlocking.clear()
        self.content_cache.clear()
        self.unlock_cache.clear()
        self._visible.clear()
        self._published.clear()
        self._bus.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, content_type: ContentType) -> Period:
        result = self.invalidator.sweep()
        if result:
            self._forget(result)

        period = self.current_period(content_type)
        self.unlock_cache.prefetch(content_type, period)
        self.content_cache.prefetch(content_type, period)
        self._publish(content_type, period)
        return period

    def _state_for(self, content_type: ContentType, period: Period) -> GatingState:
        return derive_gating_state(
            self.unlock_cache.peek(content_type, period.key),
            self.content_cache.get(content_type, period.key),
        )

    def _settle(self, content_type: ContentType, period: Period) -> None:
        """Promote ready content once the period is known to be unlocked."""
        key = (content_type, period.key)
        entry = self.content_cache.get(content_type, period.key)
        if (
            key not in self._visible
            and entry is not None
            and entry.status is EntryStatus.READY
            and self.unlock_cache.peek(content_type, period.key)
        ):
            self._visible[key] = entry.payload  # type: ignore[assignment]
            logfire.info(
                "content_promoted",
                content_type=content_type.value,
                period=period.key,
            )
        self._publish(content_type, period)

    def _publish(self, content_type: ContentType, period: Period) -> None:
        key = (content_type, period.key)
        state = self._state_for(content_type, period)
        if self._published.get(key) is state:
            return
        self._published[key] = state
        self._bus.notify(GatingEvent(content_type=content_type, period=period, state=state))

    def _forget(self, result: SweepResult) -> None:
        touched: set[ContentType] = set()
        for content_type, key in [*result.content, *result.unlocks]:
            self._visible.pop((content_type, key), None)
            self._published.pop((content_type, key), None)
            touched.add(content_type)
        for content_type in touched:
            self._publish(content_type, self.current_period(content_type))

    def _unlock_finished(self, key: _Key, task: asyncio.Task[UnlockOutcome]) -> None:
        if self._unlocking.get(key) is task:
            del self._unlocking[key]

    async def _unlock(self, content_type: ContentType, period: Period) -> UnlockOutcome:
        if self.unlock_cache.peek(content_type, period.key):
            return UnlockOutcome(
                status=UnlockStatus.ALREADY_UNLOCKED,
                state=self._state_for(content_type, period),
            )

        epoch = self._epoch

        async def purchase() -> UnlockPurchase:
            result = await self.unlocks.purchase_unlock(
                self.user_id, content_type, period.start.date()
            )
            if not (result.success or result.already_unlocked):
                raise ProviderError(
                    f"Unlock of {content_type.value} for {period.key} was not confirmed"
                )
            if self._epoch != epoch:
                # Signed out meanwhile, the caches belong to nobody now
                return result
            # Promotes pending content through the unlock cache listener
            self.unlock_cache.mark_unlocked(content_type, period)
            return result

        result = await self.gate.check_and_proceed(
            content_type.unlock_action,
            purchase,
            source=f"{content_type.value}_horoscope",
        )
        state = self._state_for(content_type, period)

        if not result.proceeded:
            logfire.info(
                "unlock_needs_credits",
                content_type=content_type.value,
                period=period.key,
            )
            return UnlockOutcome(
                status=UnlockStatus.INSUFFICIENT_CREDITS, state=state, flow=result.flow
            )

        purchase_result = result.value
        logfire.info(
            "period_unlocked",
            content_type=content_type.value,
            period=period.key,
            credits_charged=purchase_result.credits_charged,
            already_unlocked=purchase_result.already_unlocked,
        )
        return UnlockOutcome(
            status=(
                UnlockStatus.ALREADY_UNLOCKED
                if purchase_result.already_unlocked
                else UnlockStatus.UNLOCKED
            ),
            state=state,
            credits_charged=purchase_result.credits_charged,
        )

"""Drops cached content and unlock records whose period has ended."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

import logfire

from stellium.gating.content_cache import ContentCache
from stellium.gating.periods import is_current, local_now, to_local
from stellium.gating.types import ContentType
from stellium.gating.unlock_cache import UnlockStatusCache


class AppState(StrEnum):
    """Application lifecycle states reported by the host app."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


@dataclass
class SweepResult:
    content: list[tuple[ContentType, str]] = field(default_factory=list)
    unlocks: list[tuple[ContentType, str]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.content or self.unlocks)


class StalenessInvalidator:
    """Keeps the caches scoped to the live calendar windows.

    An entry is stale once "now" leaves its ``[start, end)`` window or its
    key no longer matches the key computed for "now". Unlock records are
    swept with the same rule, so a new period always gets a fresh check.
    """

    def __init__(
        self,
        content_cache: ContentCache,
        unlock_cache: UnlockStatusCache,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.content_cache = content_cache
        self.unlock_cache = unlock_cache
        self.clock = clock
        self._app_state = AppState.ACTIVE

    def sweep(self, now: datetime | None = None) -> SweepResult:
        now = to_local(now) if now is not None else self.clock()
        result = SweepResult()

        for entry in self.content_cache.entries():
            if not is_current(entry.period, now):
                self.content_cache.discard(entry.content_type, entry.key)
                result.content.append((entry.content_type, entry.key))

        for record in self.unlock_cache.records():
            if not is_current(record.period, now):
                self.unlock_cache.discard(record.content_type, record.period.key)
                result.unlocks.append((record.content_type, record.period.key))

        if result:
            logfire.info(
                "stale_periods_discarded",
                content=[f"{ct.value}:{key}" for ct, key in result.content],
                unlocks=[f"{ct.value}:{key}" for ct, key in result.unlocks],
            )
        return result

    def on_app_state_change(self, state: AppState | str) -> SweepResult | None:
        """Sweep when the app comes back to the foreground."""
        state = AppState(state)
        previous, self._app_state = self._app_state, state

        if state is AppState.ACTIVE and previous is not AppState.ACTIVE:
            logfire.debug("app_foregrounded", previous=previous.value)
            return self.sweep()
        return None

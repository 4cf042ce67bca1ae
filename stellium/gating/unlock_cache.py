"""Memoized "has the user paid for this period" lookups.

Records are keyed by (content type, period key) and filled lazily from the
remote unlock provider. A missing record means "unknown" and always leads to
a remote check; it is never read as locked or unlocked. Any failure of the
remote check is stored as not unlocked.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

import logfire

from stellium.common.listeners import ListenerBus
from stellium.gating.types import ContentType, Period, UnlockRecord

if TYPE_CHECKING:
    from stellium.providers.base import UnlockProvider

_Key = tuple[ContentType, str]


class UnlockStatusCache:
    """Per-user unlock records with one in-flight check per key."""

    def __init__(self, provider: UnlockProvider, user_id: str) -> None:
        self.provider = provider
        self.user_id = user_id
        self._records: dict[_Key, UnlockRecord] = {}
        self._inflight: dict[_Key, asyncio.Task[bool]] = {}
        self._bus: ListenerBus[UnlockRecord] = ListenerBus("unlock_status")

    def peek(self, content_type: ContentType, key: str) -> bool | None:
        """Cached answer, or None when the server has not been asked yet."""
        record = self._records.get((content_type, key))
        return record.unlocked if record else None

    def records(self) -> list[UnlockRecord]:
        return list(self._records.values())

    def is_checking(self, content_type: ContentType, key: str) -> bool:
        return (content_type, key) in self._inflight

    async def check(self, content_type: ContentType, period: Period) -> bool:
        """Whether the period is unlocked, asking the server at most once.

        A cached answer returns without suspending. Concurrent callers for
        the same key share one remote request.
        """
        record = self._records.get((content_type, period.key))
        if record is not None:
            return record.unlocked

        task = self._ensure_check(content_type, period)
        # Callers going away must not cancel the shared request
        return await asyncio.shield(task)

    def prefetch(self, content_type: ContentType, period: Period) -> None:
        """Start a check in the background unless the answer is known."""
        if (content_type, period.key) not in self._records:
            self._ensure_check(content_type, period)

    def mark_unlocked(self, content_type: ContentType, period: Period) -> None:
        """Record a confirmed purchase without another round trip."""
        record = UnlockRecord(content_type=content_type, period=period, unlocked=True)
        self._records[(content_type, period.key)] = record
        logfire.info(
            "unlock_marked",
            content_type=content_type.value,
            period=period.key,
        )
        self._bus.notify(record)

    def discard(self, content_type: ContentType, key: str) -> None:
        """Forget the record; an in-flight check for it will be ignored."""
        self._records.pop((content_type, key), None)
        self._inflight.pop((content_type, key), None)

    def clear(self) -> None:
        self._records.clear()
        self._inflight.clear()

    def subscribe(self, callback: Callable[[UnlockRecord], None]) -> Callable[[], None]:
        """Observe records as they settle."""
        return self._bus.subscribe(callback)

    def _ensure_check(self, content_type: ContentType, period: Period) -> asyncio.Task[bool]:
        key = (content_type, period.key)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch(content_type, period))
            self._inflight[key] = task
        return task

    async def _fetch(self, content_type: ContentType, period: Period) -> bool:
        key = (content_type, period.key)
        try:
            with logfire.span(
                "unlock_check",
                content_type=content_type.value,
                period=period.key,
            ):
                unlocked = bool(
                    await self.provider.check_unlock(
                        self.user_id, content_type, period.start.date()
                    )
                )
        except asyncio.CancelledError:
            # Leave the record absent so the next check asks again
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
                logfire.warning(
                    "unlock_check_cancelled",
                    content_type=content_type.value,
                    period=period.key,
                )
            raise
        except Exception:
            # Unknown must never grant access
            logfire.exception(
                "unlock_check_failed",
                content_type=content_type.value,
                period=period.key,
            )
            unlocked = False

        if self._inflight.get(key) is not asyncio.current_task():
            # Discarded while in flight, the answer belongs to a dead period
            return unlocked
        del self._inflight[key]

        existing = self._records.get(key)
        if existing is not None:
            # A purchase confirmed while we were asking wins
            return existing.unlocked

        record = UnlockRecord(content_type=content_type, period=period, unlocked=unlocked)
        self._records[key] = record
        logfire.debug(
            "unlock_checked",
            content_type=content_type.value,
            period=period.key,
            unlocked=unlocked,
        )
        self._bus.notify(record)
        return unlocked

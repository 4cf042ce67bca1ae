"""Generated content per (content type, period), independent of payment."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import logfire

from stellium.common.listeners import ListenerBus
from stellium.gating.periods import local_now
from stellium.gating.types import ContentCacheEntry, ContentType, EntryStatus, Period
from stellium.providers.errors import ApiError

if TYPE_CHECKING:
    from stellium.providers.base import ContentGenerator

_Key = tuple[ContentType, str]


class ContentCache:
    """Generation status and payload for each period.

    Generation is not billable and runs whether or not the period is
    unlocked, so content is ready the moment the user pays. At most one
    generation per key is in flight; failed entries stay failed until
    they are discarded and requested again.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        user_id: str,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.generator = generator
        self.user_id = user_id
        self.clock = clock
        self._entries: dict[_Key, ContentCacheEntry] = {}
        self._inflight: dict[_Key, asyncio.Task[None]] = {}
        self._bus: ListenerBus[ContentCacheEntry] = ListenerBus("content_cache")

    def get(self, content_type: ContentType, key: str) -> ContentCacheEntry | None:
        return self._entries.get((content_type, key))

    def entries(self) -> list[ContentCacheEntry]:
        return list(self._entries.values())

    def is_generating(self, content_type: ContentType, key: str) -> bool:
        return (content_type, key) in self._inflight

    def prefetch(self, content_type: ContentType, period: Period) -> ContentCacheEntry:
        """Existing entry for the period, or a new pending one being generated."""
        key = (content_type, period.key)
        entry = self._entries.get(key)
        if entry is not None:
            return entry

        entry = ContentCacheEntry(
            content_type=content_type,
            period=period,
            requested_at=self.clock(),
        )
        self._entries[key] = entry
        self._inflight[key] = asyncio.create_task(self._generate(entry))
        logfire.debug(
            "content_generation_started",
            content_type=content_type.value,
            period=period.key,
        )
        return entry

    async def load(self, content_type: ContentType, period: Period) -> ContentCacheEntry:
        """Entry for the period once its generation has settled."""
        entry = self.prefetch(content_type, period)
        task = self._inflight.get((content_type, period.key))
        if task is not None:
            # Leaving the screen must not cancel shared generation
            await asyncio.shield(task)
        return entry

    def discard(self, content_type: ContentType, key: str) -> ContentCacheEntry | None:
        """Drop an entry; a generation still running for it is ignored."""
        self._inflight.pop((content_type, key), None)
        return self._entries.pop((content_type, key), None)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def subscribe(self, callback: Callable[[ContentCacheEntry], None]) -> Callable[[], None]:
        """Observe entries as they become ready or fail."""
        return self._bus.subscribe(callback)

    def _is_current(self, key: _Key) -> bool:
        # False once the entry was discarded while generating
        return self._inflight.get(key) is asyncio.current_task()

    async def _generate(self, entry: ContentCacheEntry) -> None:
        key = (entry.content_type, entry.key)
        try:
            with logfire.span(
                "content_generation",
                content_type=entry.content_type.value,
                period=entry.key,
            ):
                payload = await self.generator.generate(
                    self.user_id, entry.content_type, entry.start.date()
                )
        except asyncio.CancelledError:
            # Settle as failed so `retry` can recover the entry
            if self._is_current(key):
                logfire.warning(
                    "content_generation_cancelled",
                    content_type=entry.content_type.value,
                    period=entry.key,
                )
                entry.status = EntryStatus.ERROR
                entry.error = "Generation was cancelled"
            raise
        except Exception as exc:
            if self._is_current(key):
                logfire.exception(
                    "content_generation_failed",
                    content_type=entry.content_type.value,
                    period=entry.key,
                )
                entry.status = EntryStatus.ERROR
                entry.error = (
                    exc.message if isinstance(exc, ApiError) else str(exc) or type(exc).__name__
                )
        else:
            if self._is_current(key):
                entry.status = EntryStatus.READY
                entry.payload = payload
        finally:
            if self._is_current(key):
                del self._inflight[key]
                self._bus.notify(entry)

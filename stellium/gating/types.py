"""Types shared by the gating caches and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from stellium.credits.actions import CreditAction

if TYPE_CHECKING:
    from stellium.providers.schemas import Horoscope


class Granularity(StrEnum):
    """Calendar window a piece of content is scoped to."""

    DAY = "daily"
    WEEK = "weekly"
    MONTH = "monthly"


class ContentType(StrEnum):
    """Gated content, one tab each."""

    DAILY_HOROSCOPE = "daily"
    WEEKLY_HOROSCOPE = "weekly"
    MONTHLY_HOROSCOPE = "monthly"

    @property
    def granularity(self) -> Granularity:
        return _GRANULARITY[self]

    @property
    def unlock_action(self) -> CreditAction:
        return _UNLOCK_ACTION[self]


_GRANULARITY = {
    ContentType.DAILY_HOROSCOPE: Granularity.DAY,
    ContentType.WEEKLY_HOROSCOPE: Granularity.WEEK,
    ContentType.MONTHLY_HOROSCOPE: Granularity.MONTH,
}

_UNLOCK_ACTION = {
    ContentType.DAILY_HOROSCOPE: CreditAction.DAILY_HOROSCOPE_UNLOCK,
    ContentType.WEEKLY_HOROSCOPE: CreditAction.WEEKLY_HOROSCOPE_UNLOCK,
    ContentType.MONTHLY_HOROSCOPE: CreditAction.MONTHLY_HOROSCOPE_UNLOCK,
}


@dataclass(frozen=True, slots=True)
class Period:
    """A calendar window in local wall-clock time, ``[start, end)``."""

    key: str
    granularity: Granularity
    start: datetime
    end: datetime

    def contains(self, when: datetime) -> bool:
        return self.start <= when < self.end


class EntryStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


@dataclass(slots=True)
class ContentCacheEntry:
    """Generated content for one (content type, period), paid for or not."""

    content_type: ContentType
    period: Period
    requested_at: datetime
    status: EntryStatus = EntryStatus.PENDING
    payload: Horoscope | None = None
    error: str | None = None

    @property
    def key(self) -> str:
        return self.period.key

    @property
    def start(self) -> datetime:
        return self.period.start

    @property
    def end(self) -> datetime:
        return self.period.end


@dataclass(frozen=True, slots=True)
class UnlockRecord:
    """Server answer to "has this user paid for this period"."""

    content_type: ContentType
    period: Period
    unlocked: bool

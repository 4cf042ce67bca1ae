"""Calendar period keys for content and unlock scoping.

Keys follow the device's local calendar:
- ``daily-YYYY-MM-DD`` changes at local midnight
- ``weekly-YYYY-Www`` (ISO week-year and week) changes on Monday 00:00
- ``monthly-YYYY-MM`` changes on the first of the month at 00:00

All arithmetic happens on naive local wall-clock datetimes; aware datetimes
are converted to local time first.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from stellium.gating.types import Granularity, Period


def local_now() -> datetime:
    """Current local wall-clock time."""
    return datetime.now()


def to_local(when: datetime) -> datetime:
    """Naive local wall-clock equivalent of ``when``."""
    if when.tzinfo is None:
        return when
    return when.astimezone().replace(tzinfo=None)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _window(granularity: Granularity, day: date) -> tuple[date, date]:
    """First day of the window containing ``day`` and first day after it."""
    if granularity is Granularity.DAY:
        return day, day + timedelta(days=1)
    if granularity is Granularity.WEEK:
        monday = day - timedelta(days=day.weekday())
        return monday, monday + timedelta(days=7)
    if granularity is Granularity.MONTH:
        first = day.replace(day=1)
        if first.month == 12:
            return first, first.replace(year=first.year + 1, month=1)
        return first, first.replace(month=first.month + 1)
    raise ValueError(f"Unknown granularity {granularity!r}")


def period_key(granularity: Granularity | str, when: datetime) -> str:
    """Key of the calendar window that contains ``when``."""
    granularity = Granularity(granularity)
    day = to_local(when).date()

    if granularity is Granularity.DAY:
        return f"daily-{day.isoformat()}"
    if granularity is Granularity.WEEK:
        iso_year, iso_week, _ = day.isocalendar()
        return f"weekly-{iso_year}-W{iso_week:02d}"
    if granularity is Granularity.MONTH:
        return f"monthly-{day.year:04d}-{day.month:02d}"
    raise ValueError(f"Unknown granularity {granularity!r}")


def resolve_period(granularity: Granularity | str, when: datetime) -> Period:
    """Calendar window that contains ``when``, with its bounds."""
    granularity = Granularity(granularity)
    start, end = _window(granularity, to_local(when).date())
    return Period(
        key=period_key(granularity, _midnight(start)),
        granularity=granularity,
        start=_midnight(start),
        end=_midnight(end),
    )


def next_period(period: Period) -> Period:
    """The window right after ``period`` (tomorrow, next week, next month)."""
    return resolve_period(period.granularity, period.end)


def is_current(period: Period, now: datetime) -> bool:
    """Whether ``period`` is still the live window at ``now``."""
    local = to_local(now)
    return period.contains(local) and period.key == period_key(period.granularity, local)

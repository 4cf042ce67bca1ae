"""Period-scoped content gating.

Provides:
- Period keys for daily, weekly and monthly windows
- Content and unlock-status caches with single in-flight requests
- Derived per-tab gating state
- Staleness invalidation across period boundaries and app foregrounding
- The orchestrator tying these to credit unlocks
"""

from stellium.gating.types import (
    ContentCacheEntry,
    ContentType,
    EntryStatus,
    Granularity,
    Period,
    UnlockRecord,
)
from stellium.gating.periods import next_period, period_key, resolve_period
from stellium.gating.state import GatingState, derive_gating_state, is_taking_long
from stellium.gating.content_cache import ContentCache
from stellium.gating.unlock_cache import UnlockStatusCache
from stellium.gating.staleness import AppState, StalenessInvalidator, SweepResult
from stellium.gating.orchestrator import (
    GatingEvent,
    GatingOrchestrator,
    UnlockOutcome,
    UnlockStatus,
)

__all__ = [
    # Types
    "ContentType",
    "Granularity",
    "Period",
    "EntryStatus",
    "ContentCacheEntry",
    "UnlockRecord",
    # Periods
    "period_key",
    "resolve_period",
    "next_period",
    # State
    "GatingState",
    "derive_gating_state",
    "is_taking_long",
    # Caches
    "ContentCache",
    "UnlockStatusCache",
    "StalenessInvalidator",
    "SweepResult",
    "AppState",
    # Orchestrator
    "GatingOrchestrator",
    "GatingEvent",
    "UnlockOutcome",
    "UnlockStatus",
]

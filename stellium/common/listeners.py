"""Synchronous fan-out of state changes to registered callbacks.

Used by the credit ledger, the gating caches and the orchestrator so that
several UI surfaces can observe one owner without each of them polling or
re-fetching. Every ``notify`` reaches every current subscriber immediately;
there is no batching or debouncing.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

import logfire

T = TypeVar("T")

Listener = Callable[[T], None]


class ListenerBus(Generic[T]):
    """A set of callbacks notified in registration order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: dict[int, Listener[T]] = {}
        self._next_id = 0

    def subscribe(self, callback: Listener[T]) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        token = self._next_id
        self._next_id += 1
        self._listeners[token] = callback

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def notify(self, value: T) -> None:
        # Copy so a listener may unsubscribe itself while being notified
        for callback in list(self._listeners.values()):
            try:
                callback(value)
            except Exception:
                logfire.exception("listener_failed", bus=self.name)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

"""Errors raised by remote providers."""

from __future__ import annotations

from typing import Any


class ProviderError(Exception):
    """Raised when a remote provider call fails."""


class ApiError(ProviderError):
    """Raised for a non-success response from the Stellium backend."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class InsufficientCreditsError(ProviderError):
    """Raised when the backend rejects a spend for lack of credits.

    Never shown to the user as an error: callers hand it to the credit
    flow router, which picks a remediation (pack purchase or upgrade).
    """

    def __init__(
        self, available: int | None, required: int | None, action: str | None = None
    ):
        # Either amount is None when the server did not report it
        super().__init__(f"Need {required} credits, {available} available")
        self.available = available
        self.required = required
        self.action = action

    @property
    def shortfall(self) -> int | None:
        if self.available is None or self.required is None:
            return None
        return self.required - self.available

    @classmethod
    def from_payload(cls, payload: Any) -> InsufficientCreditsError:
        """Build from a 402 response body; missing amounts stay None."""
        data = payload if isinstance(payload, dict) else {}
        return cls(
            available=_amount(data.get("available")),
            required=_amount(data.get("required")),
            action=data.get("action"),
        )


def is_insufficient_credits_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("error") == "INSUFFICIENT_CREDITS"


def _amount(value: Any) -> int | None:
    return int(value) if value is not None else None

"""Remote provider contracts and errors."""

from stellium.providers.base import (
    BalanceProvider,
    ContentGenerator,
    PurchaseProvider,
    PurchaseResult,
    UnlockProvider,
    UnlockPurchase,
)
from stellium.providers.errors import ApiError, InsufficientCreditsError, ProviderError

__all__ = [
    # Contracts
    "BalanceProvider",
    "UnlockProvider",
    "ContentGenerator",
    "PurchaseProvider",
    "UnlockPurchase",
    "PurchaseResult",
    # Errors
    "ProviderError",
    "ApiError",
    "InsufficientCreditsError",
]

"""Credit pack and tier allotment definitions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stellium.config import settings
from stellium.credits.types import SubscriptionTier

# Store product ids differ between production and dev builds
PRODUCT_PREFIX = "com.stelliumapp" if settings.is_production else "com.stelliumapp.dev"

# Shortfall thresholds shared by pack sizing and flow routing
SMALL_SHORTFALL_MAX = 20
MEDIUM_SHORTFALL_MAX = 100


@dataclass(frozen=True, slots=True)
class CreditPack:
    """A purchasable credit pack."""

    id: str
    credits: int  # Credits received, added to the pack pool
    price: Decimal  # USD
    product_id: str  # Store product identifier

    @property
    def price_display(self) -> str:
        return f"${self.price}"


CREDIT_PACKS: dict[str, CreditPack] = {
    "small": CreditPack("small", 75, Decimal("9.99"), f"{PRODUCT_PREFIX}.credits.small"),
    "medium": CreditPack(
        "medium", 200, Decimal("24.99"), f"{PRODUCT_PREFIX}.credits.medium"
    ),
    "large": CreditPack("large", 500, Decimal("49.99"), f"{PRODUCT_PREFIX}.credits.large"),
}

# Monthly allotment per tier
TIER_CREDITS: dict[SubscriptionTier, int] = {
    SubscriptionTier.FREE: 10,
    SubscriptionTier.PREMIUM: 200,
    SubscriptionTier.PRO: 1000,
}


def get_pack(pack_id: str) -> CreditPack:
    """Get a credit pack by id.

    Raises:
        KeyError: If the pack is not found.
    """
    return CREDIT_PACKS[pack_id]


def pack_for_shortfall(shortfall: int) -> CreditPack:
    """Smallest pack tier matching the size of a shortfall."""
    if shortfall <= SMALL_SHORTFALL_MAX:
        return CREDIT_PACKS["small"]
    if shortfall <= MEDIUM_SHORTFALL_MAX:
        return CREDIT_PACKS["medium"]
    return CREDIT_PACKS["large"]

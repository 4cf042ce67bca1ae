"""Pydantic models for Stellium backend payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from stellium.credits.packs import TIER_CREDITS
from stellium.credits.types import CreditBalance, SubscriptionTier


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeyTransit(_CamelModel):
    transiting_planet: str
    aspect: str
    target_planet: str
    exact_date: str


class KeyTheme(_CamelModel):
    transiting_planet: str
    aspect: str
    target_planet: str | None = None
    exact_date: str | None = None


class HoroscopeAnalysis(_CamelModel):
    key_themes: list[KeyTheme] = Field(default_factory=list)


class Horoscope(_CamelModel):
    """Generated horoscope for one period."""

    text: str | None = None
    interpretation: str | None = None
    start_date: str
    end_date: str
    key_transits: list[KeyTransit] = Field(default_factory=list)
    analysis: HoroscopeAnalysis | None = None

    @property
    def body(self) -> str:
        return self.text or self.interpretation or ""


class HoroscopeResponse(_CamelModel):
    success: bool
    horoscope: Horoscope | None = None


class SubscriptionBalance(_CamelModel):
    """Credit part of ``GET /users/{id}/subscription``."""

    tier: SubscriptionTier = SubscriptionTier.FREE
    monthly_limit: int | None = None
    monthly_remaining: int = 0
    pack_balance: int = 0

    @field_validator("tier", mode="before")
    @classmethod
    def _default_tier(cls, value: object) -> object:
        return value or SubscriptionTier.FREE

    def to_balance(self) -> CreditBalance:
        allotment = (
            self.monthly_limit if self.monthly_limit is not None else TIER_CREDITS[self.tier]
        )
        return CreditBalance(
            monthly_allotment=allotment,
            monthly_remaining=self.monthly_remaining,
            pack_balance=self.pack_balance,
            tier=self.tier,
            last_updated=datetime.now(),
        )


class SubscriptionStatusResponse(_CamelModel):
    subscription: SubscriptionBalance


class UnlockStatusResponse(_CamelModel):
    unlocked: bool = False


class UnlockPurchaseResponse(_CamelModel):
    success: bool
    credits_charged: int = 0
    already_unlocked: bool = False

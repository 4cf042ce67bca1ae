"""HTTP client for the Stellium backend.

Implements the balance, unlock and content-generation providers on top of
``httpx``. Requests carry the user's bearer token when a token getter is
configured.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import logfire
from pydantic import BaseModel, ValidationError

from stellium.config import settings
from stellium.providers.base import UnlockPurchase
from stellium.providers.errors import (
    ApiError,
    InsufficientCreditsError,
    is_insufficient_credits_payload,
)
from stellium.providers.schemas import (
    Horoscope,
    HoroscopeResponse,
    SubscriptionStatusResponse,
    UnlockPurchaseResponse,
    UnlockStatusResponse,
)

if TYPE_CHECKING:
    from stellium.credits.types import CreditBalance
    from stellium.gating.types import ContentType

M = TypeVar("M", bound=BaseModel)

TokenGetter = Callable[[], Awaitable[str | None]]


class StelliumApiClient:
    """Backend client.

    Usage:
        async with StelliumApiClient(token_getter=auth.id_token) as api:
            ledger = CreditLedger(api)
            orchestrator = GatingOrchestrator(user_id, ledger, api, api, router)
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token_getter: TokenGetter | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token_getter = token_getter
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.api_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> StelliumApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def fetch_balance(self, user_id: str) -> CreditBalance:
        payload = await self._request("GET", f"/users/{user_id}/subscription")
        status = self._parse(SubscriptionStatusResponse, payload)
        return status.subscription.to_balance()

    async def check_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> bool:
        payload = await self._request(
            "GET",
            f"/users/{user_id}/horoscope/{content_type.value}/unlock",
            params={"startDate": period_start.isoformat()},
        )
        return self._parse(UnlockStatusResponse, payload).unlocked

    async def purchase_unlock(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> UnlockPurchase:
        payload = await self._request(
            "POST",
            f"/users/{user_id}/horoscope/{content_type.value}/unlock",
            json={"startDate": period_start.isoformat()},
        )
        response = self._parse(UnlockPurchaseResponse, payload)
        return UnlockPurchase(
            success=response.success,
            credits_charged=response.credits_charged,
            already_unlocked=response.already_unlocked,
        )

    async def generate(
        self, user_id: str, content_type: ContentType, period_start: date
    ) -> Horoscope:
        payload = await self._request(
            "POST",
            f"/users/{user_id}/horoscope/{content_type.value}",
            json={"startDate": period_start.isoformat()},
        )
        response = self._parse(HoroscopeResponse, payload)
        if not response.success or response.horoscope is None:
            raise ApiError("Failed to fetch horoscope", code="generation_failed")
        return response.horoscope

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _headers(self) -> dict[str, str]:
        if self.token_getter is None:
            return {}
        token = await self.token_getter()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=await self._headers()
            )
        except httpx.HTTPError as exc:
            logfire.warning(
                "api_request_failed",
                method=method,
                path=path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ApiError(f"Request to {path} failed", code=type(exc).__name__) from exc

        payload = _json_or_none(response)

        if response.status_code == 402 or is_insufficient_credits_payload(payload):
            raise InsufficientCreditsError.from_payload(payload)

        if response.is_error:
            body = payload if isinstance(payload, dict) else {}
            message = body.get("message") or body.get("error") or response.reason_phrase
            logfire.warning(
                "api_error_response",
                method=method,
                path=path,
                status=response.status_code,
                message=message,
            )
            raise ApiError(str(message), status=response.status_code, code=body.get("code"))

        return payload

    @staticmethod
    def _parse(model: type[M], payload: Any) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ApiError(
                f"Unexpected {model.__name__} payload", code="invalid_payload"
            ) from exc


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None

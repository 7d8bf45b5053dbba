"""Finnhub REST quote provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import QuoteError
from .interface import QuoteProvider
from .models import RawQuote

logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class FinnhubQuoteProvider(QuoteProvider):
    """QuoteProvider backed by Finnhub's ``GET /quote`` endpoint.

    Response fields used: ``c`` current price, ``pc`` previous close,
    ``h`` day high, ``l`` day low. A null ``c`` means the symbol has no data.

    Rate limits:
      - Free tier: 60 req/min, a 429 surfaces as QuoteError for that symbol
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = FINNHUB_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def get_quote(self, symbol: str) -> RawQuote | None:
        try:
            response = await self._client.get(
                "/quote", params={"symbol": symbol, "token": self._api_key}
            )
        except httpx.HTTPError as e:
            raise QuoteError(symbol, str(e) or type(e).__name__) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("error"):
            raise QuoteError(symbol, str(payload["error"]))
        if not response.is_success:
            raise QuoteError(symbol, f"HTTP {response.status_code}")
        if not isinstance(payload, dict):
            logger.warning("Finnhub quote for %s was not a JSON object", symbol)
            return None

        current = _number(payload.get("c"))
        if current is None:
            return None
        return RawQuote(
            current_price=current,
            previous_close=_number(payload.get("pc")),
            day_high=_number(payload.get("h")),
            day_low=_number(payload.get("l")),
        )

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

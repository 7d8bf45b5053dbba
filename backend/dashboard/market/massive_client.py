"""Massive (Polygon.io) quote provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import QuoteError
from .interface import QuoteProvider
from .models import RawQuote

logger = logging.getLogger(__name__)


def _field(obj: Any, *path: str) -> float | None:
    """Walk attribute ``path`` on a snapshot object; None if any hop is missing."""
    for name in path:
        obj = getattr(obj, name, None)
        if obj is None:
            return None
    if isinstance(obj, bool) or not isinstance(obj, (int, float)):
        return None
    return float(obj)


class MassiveQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the Massive (Polygon.io) REST API.

    Uses GET /v2/snapshot/locale/us/markets/stocks/tickers/{ticker}, which
    carries the last trade, today's aggregate and the previous day's bar in
    one call.

    Rate limits:
      - Free tier: 5 req/min, so keep the poll interval long
    """

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._client: Any = None  # RESTClient, built on first use

    async def get_quote(self, symbol: str) -> RawQuote | None:
        try:
            # RESTClient is synchronous; keep it off the event loop
            snap = await asyncio.to_thread(self._fetch_snapshot, symbol)
        except Exception as e:
            # Common failures: 401 (bad key), 429 (rate limit), network errors.
            raise QuoteError(symbol, str(e) or type(e).__name__) from e

        current = _field(snap, "last_trade", "price")
        if current is None:
            logger.warning("Massive snapshot for %s has no last trade price", symbol)
            return None
        return RawQuote(
            current_price=current,
            previous_close=_field(snap, "prev_day", "close"),
            day_high=_field(snap, "day", "high"),
            day_low=_field(snap, "day", "low"),
        )

    async def aclose(self) -> None:
        self._client = None

    def _fetch_snapshot(self, symbol: str) -> Any:
        """Synchronous call to the Massive REST API. Runs in a thread."""
        from massive import RESTClient
        from massive.rest.models import SnapshotMarketType

        if self._client is None:
            self._client = RESTClient(api_key=self._api_key)
        return self._client.get_snapshot_ticker(SnapshotMarketType.STOCKS, symbol)

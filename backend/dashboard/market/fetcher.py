"""Quote fetcher: the poll source for the price reconciler."""

from __future__ import annotations

import asyncio
import logging

from .errors import QuoteError
from .interface import QuoteProvider
from .models import QuoteResult, RawQuote, Snap

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "quote source not configured"


def snap_from_quote(quote: RawQuote) -> Snap:
    """Derive a Snap from raw quote fields.

    today_pct is the move against the previous close, 0 when the previous
    close is missing or zero. High/low default to the current price.
    """
    current = quote.current_price
    previous = quote.previous_close
    if previous:
        today_pct = round((current - previous) / previous * 100, 2)
    else:
        today_pct = 0.0
    return Snap(
        price=current,
        today_pct=today_pct,
        day_max=quote.day_high if quote.day_high is not None else current,
        day_min=quote.day_low if quote.day_low is not None else current,
    )


class QuoteFetcher:
    """Stateless single/batch quote requests over a QuoteProvider.

    Never raises for upstream problems: a single fetch returns None, a batch
    fetch reports an error for the failing symbol and keeps the others.
    """

    def __init__(self, provider: QuoteProvider | None) -> None:
        self._provider = provider

    @property
    def configured(self) -> bool:
        return self._provider is not None

    async def fetch_quote(self, symbol: str) -> Snap | None:
        """Current snap for one symbol, or None on no-data or failure."""
        result = await self._fetch_one(symbol)
        return result.snap

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, QuoteResult]:
        """Fetch many symbols concurrently. Returns {symbol: QuoteResult}.

        Blank and duplicate symbols are dropped; order follows first
        appearance.
        """
        unique = list(dict.fromkeys(s.strip() for s in symbols if s and s.strip()))
        results = await asyncio.gather(*(self._fetch_one(s) for s in unique))
        failed = sum(1 for r in results if r.error)
        if failed:
            logger.warning("Quote batch: %d/%d symbols failed", failed, len(unique))
        return {r.symbol: r for r in results}

    async def aclose(self) -> None:
        if self._provider is not None:
            await self._provider.aclose()

    async def _fetch_one(self, symbol: str) -> QuoteResult:
        if self._provider is None:
            return QuoteResult(symbol=symbol, error=NOT_CONFIGURED)
        try:
            quote = await self._provider.get_quote(symbol)
        except QuoteError as e:
            logger.warning("Quote fetch failed for %s: %s", symbol, e.reason)
            return QuoteResult(symbol=symbol, error=e.reason)
        if quote is None:
            logger.debug("No quote data for %s", symbol)
            return QuoteResult(symbol=symbol)
        return QuoteResult(symbol=symbol, snap=snap_from_quote(quote))

"""Company news from Finnhub, merged across symbols."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from ..market.errors import ConfigurationError
from ..market.finnhub_client import FINNHUB_BASE_URL
from ..portfolio.models import SYMBOL_RE
from .models import NewsItem, NewsResult

logger = logging.getLogger(__name__)

MAX_SYMBOLS = 10
MAX_ITEMS = 40
DEFAULT_DAYS = 7
MIN_DAYS, MAX_DAYS = 1, 30
NO_VALID_SYMBOLS = "no valid symbols"


def parse_symbols(raw: str | Iterable[str]) -> list[str]:
    """Comma-separated (or iterable) symbols → valid, distinct, at most 10."""
    parts = raw.split(",") if isinstance(raw, str) else raw
    cleaned = (str(p).strip().upper() for p in parts)
    valid = [s for s in cleaned if s and SYMBOL_RE.match(s)]
    return list(dict.fromkeys(valid))[:MAX_SYMBOLS]


def clamp_days(raw: Any) -> int:
    """Day range in [1, 30]; default 7 when missing or not a number."""
    if raw in (None, ""):
        return DEFAULT_DAYS
    try:
        days = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_DAYS
    if math.isnan(days):
        return DEFAULT_DAYS
    return int(max(MIN_DAYS, min(MAX_DAYS, days)))


def merge_news(items: Iterable[NewsItem], limit: int = MAX_ITEMS) -> list[NewsItem]:
    """Dedupe by URL (first seen wins), newest first, capped at ``limit``."""
    by_url: dict[str, NewsItem] = {}
    for item in items:
        by_url.setdefault(item.url, item)
    ranked = sorted(by_url.values(), key=lambda item: item.timestamp, reverse=True)
    return ranked[:limit]


def _parse_item(symbol: str, raw: Any) -> NewsItem | None:
    if not isinstance(raw, dict):
        return None
    url = raw.get("url")
    headline = raw.get("headline")
    timestamp = raw.get("datetime")
    if not url or not headline or not isinstance(timestamp, (int, float)):
        return None
    return NewsItem(
        symbol=symbol,
        timestamp=int(timestamp),
        headline=str(headline),
        source=str(raw.get("source") or ""),
        url=str(url),
        image=raw.get("image") or None,
        summary=raw.get("summary") or None,
    )


class NewsClient:
    """Fetches company news for up to 10 symbols in parallel.

    A failing symbol never sinks the others: rate-limited symbols (429)
    contribute nothing, other failures are reported in ``errors``. A missing
    API key is a configuration error for the whole request.
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

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def fetch_news(
        self,
        symbols: str | Iterable[str],
        days: Any = DEFAULT_DAYS,
        now: float | None = None,
    ) -> NewsResult:
        if not self._api_key:
            raise ConfigurationError("api key missing (set FINNHUB_API_KEY)")

        wanted = parse_symbols(symbols)
        if not wanted:
            logger.warning("News request without valid symbols")
            return NewsResult(warning=NO_VALID_SYMBOLS)

        to = datetime.fromtimestamp(time.time() if now is None else now, tz=timezone.utc)
        since = to - timedelta(days=clamp_days(days))
        settled = await asyncio.gather(
            *(self._fetch_symbol(s, since, to) for s in wanted),
            return_exceptions=True,
        )

        items: list[NewsItem] = []
        errors: dict[str, str] = {}
        for symbol, outcome in zip(wanted, settled):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning("News fetch failed for %s: %s", symbol, outcome)
                errors[symbol] = str(outcome) or type(outcome).__name__
            else:
                items.extend(outcome)

        merged = merge_news(items)
        logger.debug("News: %d items for %d symbols", len(merged), len(wanted))
        return NewsResult(items=merged, errors=errors)

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _fetch_symbol(
        self, symbol: str, since: datetime, to: datetime
    ) -> list[NewsItem]:
        response = await self._client.get(
            "/company-news",
            params={
                "symbol": symbol,
                "from": since.strftime("%Y-%m-%d"),
                "to": to.strftime("%Y-%m-%d"),
                "token": self._api_key,
            },
        )
        if response.status_code == 429:
            logger.info("News rate-limited for %s; skipping", symbol)
            return []
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            return []
        items = [_parse_item(symbol, raw) for raw in payload]
        return [item for item in items if item is not None]

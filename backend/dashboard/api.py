"""HTTP routes: quote proxy, news proxy, portfolio, and the live snap stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .market.errors import ConfigurationError
from .market.fetcher import QuoteFetcher
from .market.reconciler import PriceReconciler
from .market.simulator import make_series
from .news.client import NewsClient
from .news.feed import NewsFeed
from .portfolio.models import DEFAULT_HOLDINGS
from .portfolio.store import PortfolioStore
from .portfolio.valuation import summarize, value_positions

logger = logging.getLogger(__name__)


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def snapshot_payload(reconciler: PriceReconciler) -> dict[str, dict]:
    """Every tracked symbol's snap, tagged with its source and live flag."""
    return {
        symbol: {
            **snap.to_dict(),
            "source": reconciler.source_of(symbol).value,
            "live": reconciler.is_live(symbol),
        }
        for symbol, snap in reconciler.snapshot().items()
    }


def create_api_router(
    reconciler: PriceReconciler,
    fetcher: QuoteFetcher,
    news_client: NewsClient,
    news_feed: NewsFeed,
    portfolio: PortfolioStore,
) -> APIRouter:
    """Create the API router bound to the app's components."""
    router = APIRouter(prefix="/api")

    async def track_holdings() -> None:
        symbols = portfolio.symbols()
        await reconciler.set_symbols(symbols)
        if news_client.configured:
            news_feed.schedule(symbols)

    @router.get("/prices", tags=["prices"])
    async def get_prices(symbol: str | None = None, symbols: str | None = None) -> Any:
        """Point-in-time quotes straight from the quote provider.

        ``?symbol=X`` returns one snap; ``?symbols=A,B`` returns
        ``{"data": [...]}`` where failing symbols carry an ``error`` field.
        """
        if not fetcher.configured:
            return _error(503, "Missing quote API key")

        if symbol and not symbols:
            wanted = symbol.strip().upper()
            result = (await fetcher.fetch_quotes([wanted])).get(wanted)
            if result is None or result.no_data:
                return _error(404, "No data")
            if result.error:
                return _error(502, result.error)
            return {"symbol": wanted, **result.snap.to_dict(), "source": "poll"}

        wanted = [s.strip().upper() for s in (symbols or "").split(",") if s.strip()]
        if not wanted:
            return _error(400, "symbol or symbols required")
        results = await fetcher.fetch_quotes(wanted)
        return {"data": [r.to_dict() for r in results.values()]}

    @router.get("/news", tags=["news"])
    async def get_news(symbols: str | None = None, days: str | None = None) -> Any:
        if not symbols:
            return _error(400, "symbols required (comma-separated)")
        try:
            result = await news_client.fetch_news(symbols, days)
        except ConfigurationError as e:
            return _error(500, str(e))
        return result.to_dict()

    @router.get("/news/feed", tags=["news"])
    async def get_news_feed() -> dict:
        """News for the current holdings, refreshed whenever they change."""
        return {**news_feed.result.to_dict(), "error": news_feed.error}

    @router.delete("/news/feed/error", tags=["news"])
    async def dismiss_news_error() -> dict:
        news_feed.dismiss_error()
        return {"error": None}

    @router.get("/portfolio", tags=["portfolio"])
    async def get_portfolio() -> dict:
        rows = value_positions(portfolio.holdings, reconciler.snap_for)
        return {
            "onboarding": not rows,
            "selected": reconciler.selected,
            "positions": [
                {**row.to_dict(), "live": reconciler.is_live(row.symbol)} for row in rows
            ],
            "summary": summarize(rows).to_dict(),
        }

    @router.put("/portfolio", tags=["portfolio"])
    async def put_portfolio(rows: list[dict] = Body(...)) -> dict:
        saved = portfolio.save(rows)
        await track_holdings()
        return {"holdings": [h.to_dict() for h in saved]}

    @router.post("/portfolio/demo", tags=["portfolio"])
    async def load_demo_portfolio() -> dict:
        saved = portfolio.save(DEFAULT_HOLDINGS)
        await track_holdings()
        return {"holdings": [h.to_dict() for h in saved]}

    @router.delete("/portfolio", tags=["portfolio"])
    async def delete_portfolio() -> dict:
        portfolio.reset()
        await track_holdings()
        return {"holdings": []}

    @router.post("/select/{symbol}", tags=["prices"])
    async def select_symbol(symbol: str) -> dict:
        await reconciler.select(symbol.strip().upper())
        return {"selected": reconciler.selected}

    @router.get("/series/{symbol}", tags=["prices"])
    async def get_series(symbol: str) -> dict:
        wanted = symbol.strip().upper()
        snap = reconciler.snap_for(wanted)
        points = make_series(snap.price, seed_key=wanted)
        return {"symbol": wanted, "points": [{"time": p.time, "value": p.value} for p in points]}

    @router.get("/stream/snaps", tags=["streaming"])
    async def stream_snaps(request: Request) -> StreamingResponse:
        """SSE endpoint for reconciled snaps.

        Sends the full snapshot whenever the snap store changes. The client
        connects with EventSource and receives events in the format:

            data: {"NVDA": {"price": 150.25, "today": 1.2, ..., "live": true}, ...}
        """
        return StreamingResponse(
            _generate_events(reconciler, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    reconciler: PriceReconciler,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted snapshot events.

    Checks for changes every ``interval`` seconds. Stops when the client
    disconnects (detected via request.is_disconnected()).
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = reconciler.version
            if current_version != last_version:
                last_version = current_version
                payload = snapshot_payload(reconciler)
                if payload:
                    yield f"data: {json.dumps(payload)}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)

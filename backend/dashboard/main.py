"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_api_router
from .config import DashboardConfig
from .market.factory import create_quote_provider, create_stream_client
from .market.fetcher import QuoteFetcher
from .market.reconciler import PriceReconciler
from .market.stream_client import StreamingPriceClient
from .news.client import NewsClient
from .news.feed import NewsFeed
from .portfolio.store import PortfolioStore

logger = logging.getLogger(__name__)


def create_app(
    config: DashboardConfig | None = None,
    *,
    fetcher: QuoteFetcher | None = None,
    stream: StreamingPriceClient | None = None,
    news_client: NewsClient | None = None,
    portfolio: PortfolioStore | None = None,
) -> FastAPI:
    """Wire the dashboard components and return the app.

    Components default to what ``config`` describes; pass them in to
    substitute fakes. The lifespan mounts the reconciler on startup and
    unmounts it (cancelling polls, closing the stream) on shutdown.
    """
    config = config or DashboardConfig.from_env()
    portfolio = portfolio or PortfolioStore(config.portfolio_path)
    fetcher = fetcher or QuoteFetcher(create_quote_provider(config))
    stream = stream or create_stream_client(config)
    if news_client is None:
        if not config.news_enabled:
            logger.info("News disabled: no FINNHUB_API_KEY")
        news_client = NewsClient(api_key=config.finnhub_api_key)
    news_feed = NewsFeed(news_client)
    reconciler = PriceReconciler(fetcher, stream, poll_interval=config.poll_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        portfolio.load()
        await reconciler.start(portfolio.symbols())
        if news_client.configured:
            news_feed.schedule(portfolio.symbols())
        try:
            yield
        finally:
            await reconciler.stop()
            await news_feed.aclose()
            await fetcher.aclose()
            await news_client.aclose()

    app = FastAPI(title="Portfolio Dashboard", lifespan=lifespan)
    app.state.config = config
    app.state.reconciler = reconciler
    app.state.portfolio = portfolio
    app.state.news_feed = news_feed
    app.include_router(
        create_api_router(reconciler, fetcher, news_client, news_feed, portfolio)
    )
    return app

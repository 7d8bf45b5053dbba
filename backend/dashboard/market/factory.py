"""Factories for the market data sources."""

from __future__ import annotations

import logging

from ..config import DashboardConfig
from .interface import QuoteProvider
from .stream_client import StreamingPriceClient

logger = logging.getLogger(__name__)


def create_quote_provider(config: DashboardConfig) -> QuoteProvider | None:
    """Pick the quote provider based on which credential is configured.

    - FINNHUB_API_KEY set → FinnhubQuoteProvider
    - MASSIVE_API_KEY set → MassiveQuoteProvider
    - Neither → None: polling is disabled and prices fall back to simulation
    """
    if config.finnhub_api_key:
        from .finnhub_client import FinnhubQuoteProvider

        logger.info("Quote source: Finnhub")
        return FinnhubQuoteProvider(api_key=config.finnhub_api_key)
    if config.massive_api_key:
        from .massive_client import MassiveQuoteProvider

        logger.info("Quote source: Massive API")
        return MassiveQuoteProvider(api_key=config.massive_api_key)

    logger.warning("Quote source disabled: no FINNHUB_API_KEY or MASSIVE_API_KEY")
    return None


def create_stream_client(config: DashboardConfig) -> StreamingPriceClient:
    """Create an unstarted streaming client. Disabled when no stream key is set."""
    if not config.streaming_enabled:
        logger.info("Trade stream disabled: no FINNHUB_STREAM_API_KEY")
    return StreamingPriceClient(
        api_key=config.stream_api_key,
        url=config.stream_url,
        reconnect_base_delay=config.reconnect_base_delay,
        reconnect_max_delay=config.reconnect_max_delay,
        max_reconnect_attempts=config.max_reconnect_attempts,
    )

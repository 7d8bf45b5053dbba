"""Abstract interface for quote providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import RawQuote


class QuoteProvider(ABC):
    """Contract for point-in-time quote providers (the "poll" source).

    Providers are stateless request/response wrappers around an upstream
    quote API. Downstream code never calls a provider directly; it goes
    through QuoteFetcher, which turns provider failures into per-symbol
    results.

    Lifecycle:
        provider = create_quote_provider(config)
        quote = await provider.get_quote("NVDA")
        # ... app shutting down ...
        await provider.aclose()
    """

    @abstractmethod
    async def get_quote(self, symbol: str) -> RawQuote | None:
        """Fetch the current quote for one symbol.

        Returns None when the upstream answered but had no current price
        (unknown symbol, market data not available). Raises QuoteError for
        transport failures, rate limits and non-success statuses.
        """

    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""

"""Error types shared by the market data sources."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A data source cannot run because a credential or setting is missing."""


class QuoteError(Exception):
    """A single quote request failed (network, rate limit, bad status).

    Always scoped to one symbol. Batch callers turn it into a per-symbol
    ``error`` value instead of letting it escape.
    """

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason

"""Live price aggregation for the portfolio dashboard.

Public API:
    Snap                  - Price plus day change and day high/low
    simulate / make_series - Deterministic fallback prices and history
    QuoteFetcher          - Single/batch quote polling with per-symbol errors
    StreamingPriceClient  - Websocket trade stream with backoff reconnect
    SnapStore             - Thread-safe per-symbol snap store
    PriceReconciler       - Merges simulated, polled and streamed prices
    create_quote_provider / create_stream_client - Factories driven by config
"""

from .cache import SnapSource, SnapStore
from .errors import ConfigurationError, QuoteError
from .factory import create_quote_provider, create_stream_client
from .fetcher import QuoteFetcher, snap_from_quote
from .interface import QuoteProvider
from .models import QuoteResult, RawQuote, SeriesPoint, Snap
from .reconciler import PriceReconciler, reconcile
from .simulator import make_series, simulate
from .stream_client import ConnectionState, StreamingPriceClient

__all__ = [
    "ConfigurationError",
    "ConnectionState",
    "PriceReconciler",
    "QuoteError",
    "QuoteFetcher",
    "QuoteProvider",
    "QuoteResult",
    "RawQuote",
    "SeriesPoint",
    "Snap",
    "SnapSource",
    "SnapStore",
    "StreamingPriceClient",
    "create_quote_provider",
    "create_stream_client",
    "make_series",
    "reconcile",
    "simulate",
    "snap_from_quote",
]

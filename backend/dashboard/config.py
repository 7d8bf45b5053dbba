"""Runtime configuration for the dashboard backend."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

FINNHUB_STREAM_URL = "wss://ws.finnhub.io"
DEFAULT_PORTFOLIO_PATH = "portfolio.v1.json"


def _text(environ: Mapping[str, str], name: str) -> str:
    return environ.get(name, "").strip()


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _text(environ, name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _optional_int(environ: Mapping[str, str], name: str) -> int | None:
    raw = _text(environ, name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    """Explicit configuration passed to every component at construction.

    Credentials are optional. A missing key disables the matching data source
    (quote poll, stream or news) and the reconciler falls back to simulated
    prices for anything it cannot observe.
    """

    finnhub_api_key: str = ""
    stream_api_key: str = ""
    massive_api_key: str = ""
    stream_url: str = FINNHUB_STREAM_URL
    poll_interval: float = 20.0
    reconnect_base_delay: float = 0.3
    reconnect_max_delay: float = 5.0
    max_reconnect_attempts: int | None = None  # None = retry while mounted
    portfolio_path: str = DEFAULT_PORTFOLIO_PATH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DashboardConfig:
        """Build a config from environment variables. Blank values count as unset."""
        env = os.environ if environ is None else environ
        finnhub_key = _text(env, "FINNHUB_API_KEY")
        return cls(
            finnhub_api_key=finnhub_key,
            stream_api_key=_text(env, "FINNHUB_STREAM_API_KEY") or finnhub_key,
            massive_api_key=_text(env, "MASSIVE_API_KEY"),
            stream_url=_text(env, "FINNHUB_STREAM_URL") or FINNHUB_STREAM_URL,
            poll_interval=_float(env, "PRICE_POLL_INTERVAL", 20.0),
            reconnect_base_delay=_float(env, "STREAM_RECONNECT_BASE", 0.3),
            reconnect_max_delay=_float(env, "STREAM_RECONNECT_MAX", 5.0),
            max_reconnect_attempts=_optional_int(env, "STREAM_MAX_RECONNECTS"),
            portfolio_path=_text(env, "PORTFOLIO_PATH") or DEFAULT_PORTFOLIO_PATH,
        )

    @property
    def streaming_enabled(self) -> bool:
        return bool(self.stream_api_key)

    @property
    def news_enabled(self) -> bool:
        return bool(self.finnhub_api_key)

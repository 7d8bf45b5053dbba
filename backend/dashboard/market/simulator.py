"""Deterministic price simulator.

Used as the source of truth when neither the quote poll nor the trade stream
has produced a price for a symbol. Output depends only on the symbol (and on
the base price table), so the same symbol always renders the same numbers
within one process.

Math:
    h     = FNV-1a(symbol)                  32-bit hash, seeds the RNG
    r()   = mulberry32(h)                   floats in [0, 1)
    pct   = (r() - 0.5) * 6                 today's move, -3%..+3%
    price = base * (1 + pct / 100)
    amp   = |r() - 0.5| * 0.10              intraday half-range, 0..5%
    max   = price * (1 + amp), min = price * (1 - amp)
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from .models import SeriesPoint, Snap
from .seed_prices import (
    BASE_PRICES,
    DEFAULT_BASE_PRICE,
    MAX_DAY_AMPLITUDE,
    MAX_TODAY_PCT,
    SERIES_DAYS,
    SERIES_MAX_DRIFT,
)

_MASK32 = 0xFFFFFFFF
FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
SECONDS_PER_DAY = 86400


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & _MASK32


def fnv1a_32(text: str) -> int:
    """FNV-1a hash of ``text``, one round per character code."""
    h = FNV_OFFSET_BASIS
    for ch in text:
        h ^= ord(ch)
        h = _imul(h, FNV_PRIME)
    return h


class Mulberry32:
    """Small, fast, seeded PRNG producing floats in [0, 1).

    Not suitable for anything but reproducible demo data.
    """

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def __call__(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296


def base_price(symbol: str) -> float:
    """Reference price for ``symbol``, or the default for unknown symbols."""
    return BASE_PRICES.get(symbol, DEFAULT_BASE_PRICE)


def simulate(symbol: str) -> Snap:
    """Deterministic synthetic snap for ``symbol``.

    Guarantees ``day_min <= price <= day_max``.
    """
    rng = Mulberry32(fnv1a_32(symbol))
    today_pct = (rng() - 0.5) * 2 * MAX_TODAY_PCT
    price = round(base_price(symbol) * (1 + today_pct / 100), 2)
    amp = abs((rng() - 0.5) * 2 * MAX_DAY_AMPLITUDE)
    return Snap(
        price=price,
        today_pct=round(today_pct, 2),
        day_max=round(price * (1 + amp), 2),
        day_min=round(price * (1 - amp), 2),
    )


def _midnight_utc(now: float) -> int:
    day = datetime.fromtimestamp(now, tz=timezone.utc).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return int(day.timestamp())


def make_series(
    price: float,
    seed_key: str = "default",
    now: float | None = None,
) -> list[SeriesPoint]:
    """Daily random walk of ``SERIES_DAYS + 1`` points ending today.

    The walk starts within +/-10% of ``price`` and drifts up to +/-0.5% per
    day, never dropping below 1. Seeded by ``seed_key`` and the price, so a
    chart only changes when the displayed price does.
    """
    rng = Mulberry32(fnv1a_32(f"{seed_key}|{price:.2f}"))
    today = _midnight_utc(time.time() if now is None else now)

    points: list[SeriesPoint] = []
    value = price * (0.9 + rng() * 0.2)
    for days_back in range(SERIES_DAYS, -1, -1):
        drift = (rng() - 0.5) * 2 * SERIES_MAX_DRIFT
        value = max(1.0, value * (1 + drift))
        points.append(
            SeriesPoint(time=today - days_back * SECONDS_PER_DAY, value=round(value, 2))
        )
    return points

"""Data models for market data."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Snap:
    """A symbol's current price plus day change and day high/low.

    Never persisted. Replaced wholesale by a poll, or patched price-only by
    a streamed trade (see ``with_price``).
    """

    price: float
    today_pct: float
    day_max: float
    day_min: float

    def with_price(self, price: float) -> Snap:
        """Copy with a new price, keeping the day stats untouched."""
        return Snap(
            price=price,
            today_pct=self.today_pct,
            day_max=self.day_max,
            day_min=self.day_min,
        )

    def to_dict(self) -> dict:
        """Serialize using the short field names the dashboard UI reads."""
        return {
            "price": self.price,
            "today": self.today_pct,
            "max": self.day_max,
            "min": self.day_min,
        }


@dataclass(frozen=True, slots=True)
class RawQuote:
    """Quote fields as returned by an upstream provider, before derivation."""

    current_price: float
    previous_close: float | None = None
    day_high: float | None = None
    day_low: float | None = None


@dataclass(frozen=True, slots=True)
class QuoteResult:
    """One row of a batch quote fetch: either a snap, an error, or neither (no data)."""

    symbol: str
    snap: Snap | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.snap is not None

    @property
    def no_data(self) -> bool:
        """Upstream answered without a price. Not an error; triggers fallback."""
        return self.snap is None and self.error is None

    def to_dict(self) -> dict:
        if self.snap is None:
            return {"symbol": self.symbol, "error": self.error or "No data"}
        return {"symbol": self.symbol, **self.snap.to_dict()}


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    """One daily point of a synthetic price history."""

    time: int  # Unix seconds
    value: float

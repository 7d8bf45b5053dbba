"""Position valuation and portfolio KPIs."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from ..market.models import Snap
from .models import Holding


@dataclass(frozen=True, slots=True)
class PositionRow:
    """A holding valued at its current snap."""

    holding: Holding
    snap: Snap

    @property
    def symbol(self) -> str:
        return self.holding.symbol

    @property
    def invested(self) -> float:
        return self.holding.quantity * self.holding.buy_price

    @property
    def value(self) -> float:
        return self.holding.quantity * self.snap.price

    @property
    def pnl(self) -> float:
        return self.value - self.invested

    def to_dict(self) -> dict:
        return {
            **self.holding.to_dict(),
            "snap": self.snap.to_dict(),
            "invested": round(self.invested, 2),
            "value": round(self.value, 2),
            "pnl": round(self.pnl, 2),
        }


@dataclass(frozen=True, slots=True)
class PortfolioSummary:
    invested: float
    value: float
    pnl: float
    pnl_pct: float
    top: PositionRow | None
    worst: PositionRow | None

    def to_dict(self) -> dict:
        return {
            "invested": round(self.invested, 2),
            "value": round(self.value, 2),
            "pnl": round(self.pnl, 2),
            "pnl_pct": round(self.pnl_pct, 2),
            "top": self.top.symbol if self.top else None,
            "worst": self.worst.symbol if self.worst else None,
        }


def value_positions(
    holdings: Iterable[Holding],
    snap_for: Callable[[str], Snap],
) -> list[PositionRow]:
    """Value every holding. ``snap_for`` must always resolve a price."""
    return [PositionRow(holding=h, snap=snap_for(h.symbol)) for h in holdings]


def summarize(rows: list[PositionRow]) -> PortfolioSummary:
    """Totals plus best and worst mover of the day.

    pnl_pct divides by invested, or by 1 for an empty or zero-cost
    portfolio, so it is always defined.
    """
    invested = sum(r.invested for r in rows)
    value = sum(r.value for r in rows)
    pnl = value - invested
    ranked = sorted(rows, key=lambda r: r.snap.today_pct, reverse=True)
    return PortfolioSummary(
        invested=invested,
        value=value,
        pnl=pnl,
        pnl_pct=pnl / (invested or 1) * 100,
        top=ranked[0] if ranked else None,
        worst=ranked[-1] if ranked else None,
    )

"""Holdings and their normalization."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

SYMBOL_RE = re.compile(r"^[A-Z0-9.\-]{1,10}$")


@dataclass(frozen=True, slots=True)
class Holding:
    """One position the user wants tracked. Identity is the symbol."""

    symbol: str
    quantity: float
    buy_price: float
    display_name: str | None = None

    def to_dict(self) -> dict:
        """Serialize in the persisted record format."""
        row: dict[str, Any] = {
            "symbol": self.symbol,
            "qty": self.quantity,
            "buyPrice": self.buy_price,
        }
        if self.display_name:
            row["name"] = self.display_name
        return row


def _coerce_amount(value: Any) -> float:
    """Numeric coercion for quantity/price: invalid or negative becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def _first(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def _coerce_row(row: Holding | Mapping[str, Any]) -> Holding:
    if isinstance(row, Holding):
        symbol, quantity, price, name = row.symbol, row.quantity, row.buy_price, row.display_name
    else:
        symbol = _first(row, "symbol")
        quantity = _first(row, "qty", "quantity")
        price = _first(row, "buyPrice", "buy_price")
        name = _first(row, "name", "display_name")

    symbol = str(symbol or "").strip().upper()
    name = str(name).strip() if name is not None else ""
    return Holding(
        symbol=symbol,
        quantity=_coerce_amount(quantity),
        buy_price=_coerce_amount(price),
        display_name=name or None,
    )


def normalize_holdings(rows: Iterable[Holding | Mapping[str, Any]]) -> list[Holding]:
    """Clean holdings on every load and save.

    Trims and uppercases symbols, coerces amounts, drops rows whose symbol
    is empty or not 1-10 of ``A-Z 0-9 . -``, and keeps only the first row
    for each symbol.
    """
    seen: set[str] = set()
    holdings: list[Holding] = []
    for raw in rows:
        if not isinstance(raw, (Holding, Mapping)):
            logger.warning("Skipping holding that is not a record: %r", raw)
            continue
        holding = _coerce_row(raw)
        if not SYMBOL_RE.match(holding.symbol):
            if holding.symbol:
                logger.warning("Skipping holding with invalid symbol %r", holding.symbol)
            continue
        if holding.symbol in seen:
            continue
        seen.add(holding.symbol)
        holdings.append(holding)
    return holdings


DEFAULT_HOLDINGS: list[Holding] = [
    Holding("NVDA", 5, 120, "NVIDIA"),
    Holding("AI", 20, 25, "C3.ai"),
    Holding("PLTR", 30, 14.5, "Palantir"),
    Holding("META", 4, 300, "Meta"),
    Holding("AMD", 10, 90, "AMD"),
    Holding("SMCI", 3, 650, "Super Micro"),
    Holding("TSLA", 6, 210, "Tesla"),
    Holding("PATH", 25, 16, "UiPath"),
    Holding("AMZN", 8, 130, "Amazon"),
    Holding("BBAI", 60, 3.2, "BigBear.ai"),
    Holding("INTC", 18, 34, "Intel"),
    Holding("ASTS", 22, 6.5, "AST SpaceMobile"),
]

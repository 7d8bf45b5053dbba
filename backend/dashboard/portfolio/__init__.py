"""User holdings, persistence and valuation.

Public API:
    Holding            - One tracked position (symbol, quantity, buy price)
    normalize_holdings - Trim/uppercase/coerce/dedupe holdings rows
    PortfolioStore     - JSON-file persistence of the holdings list
    value_positions / summarize - Valuation rows and portfolio KPIs
"""

from .models import DEFAULT_HOLDINGS, SYMBOL_RE, Holding, normalize_holdings
from .store import STORAGE_KEY, PortfolioStore
from .valuation import PortfolioSummary, PositionRow, summarize, value_positions

__all__ = [
    "DEFAULT_HOLDINGS",
    "Holding",
    "PortfolioStore",
    "PortfolioSummary",
    "PositionRow",
    "STORAGE_KEY",
    "SYMBOL_RE",
    "normalize_holdings",
    "summarize",
    "value_positions",
]

"""File-backed portfolio store."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .models import Holding, normalize_holdings

logger = logging.getLogger(__name__)

STORAGE_KEY = "portfolio.v1"


class PortfolioStore:
    """Single source of truth for which symbols to track.

    Persists the holdings list as JSON under ``STORAGE_KEY`` in one file.
    Rows are normalized on every load and save, so the file never holds
    duplicate or malformed symbols for long.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._holdings: list[Holding] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def holdings(self) -> list[Holding]:
        return list(self._holdings)

    def symbols(self) -> list[str]:
        return [h.symbol for h in self._holdings]

    def has_saved(self) -> bool:
        """Whether a portfolio was ever saved (drives onboarding)."""
        return self._read() is not None

    def load(self, default: Iterable[Holding] = ()) -> list[Holding]:
        """Load saved holdings, or ``default`` when nothing usable is stored."""
        rows = self._read()
        if rows is None:
            self._holdings = normalize_holdings(default)
        else:
            self._holdings = normalize_holdings(rows)
        return self.holdings

    def save(self, rows: Iterable[Holding | Mapping[str, Any]]) -> list[Holding]:
        """Normalize and persist ``rows``. Returns what was stored."""
        self._holdings = normalize_holdings(rows)
        payload = {STORAGE_KEY: [h.to_dict() for h in self._holdings]}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(self._path)
        logger.info("Saved portfolio with %d holdings to %s", len(self._holdings), self._path)
        return self.holdings

    def reset(self) -> None:
        """Forget the saved portfolio (start from scratch)."""
        self._holdings = []
        self._path.unlink(missing_ok=True)
        logger.info("Portfolio reset")

    def _read(self) -> list | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Portfolio file %s could not be read (%s); ignoring it", self._path, e)
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Portfolio file %s is not valid JSON; ignoring it", self._path)
            return None
        rows = data.get(STORAGE_KEY) if isinstance(data, dict) else None
        if not isinstance(rows, list):
            logger.warning("Portfolio file %s has no %s list; ignoring it", self._path, STORAGE_KEY)
            return None
        return rows

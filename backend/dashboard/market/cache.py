"""Thread-safe in-memory store of the reconciled snap per symbol."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from threading import Lock

from .models import Snap


class SnapSource(str, Enum):
    """Which input last wrote a symbol's snap."""

    SIMULATED = "simulated"
    POLL = "poll"
    STREAM = "stream"


class SnapStore:
    """Latest reconciled Snap for each tracked symbol.

    Writers: PriceReconciler only (poll results, stream batches, simulated
    seeds). Readers: valuation layer, SSE endpoint, HTTP handlers.

    Every write is a read-modify-write merge under the lock, so updates to
    different symbols never clobber each other, and a multi-symbol stream
    batch becomes visible all at once.
    """

    def __init__(self) -> None:
        self._snaps: dict[str, Snap] = {}
        self._sources: dict[str, SnapSource] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every write

    def put(self, symbol: str, snap: Snap, source: SnapSource) -> Snap:
        """Replace a symbol's snap wholesale (poll result or simulated seed)."""
        with self._lock:
            self._snaps[symbol] = snap
            self._sources[symbol] = source
            self._version += 1
            return snap

    def ensure(self, symbol: str, factory: Callable[[str], Snap]) -> Snap:
        """Return the existing snap, or store ``factory(symbol)`` as simulated."""
        with self._lock:
            snap = self._snaps.get(symbol)
            if snap is None:
                snap = factory(symbol)
                self._snaps[symbol] = snap
                self._sources[symbol] = SnapSource.SIMULATED
                self._version += 1
            return snap

    def patch_prices(
        self,
        prices: Mapping[str, float],
        fallback: Callable[[str], Snap],
    ) -> dict[str, Snap]:
        """Patch price-only for a batch of symbols, as one atomic write.

        Day stats are kept from the existing snap; symbols without one start
        from ``fallback(symbol)``. Returns the patched snaps.
        """
        with self._lock:
            patched: dict[str, Snap] = {}
            for symbol, price in prices.items():
                base = self._snaps.get(symbol) or fallback(symbol)
                patched[symbol] = base.with_price(price)
            if patched:
                self._snaps.update(patched)
                self._sources.update(dict.fromkeys(patched, SnapSource.STREAM))
                self._version += 1
            return patched

    def retain(self, symbols: Iterable[str]) -> list[str]:
        """Drop every symbol not in ``symbols``. Returns the dropped symbols."""
        keep = set(symbols)
        with self._lock:
            dropped = [s for s in self._snaps if s not in keep]
            for symbol in dropped:
                del self._snaps[symbol]
                self._sources.pop(symbol, None)
            if dropped:
                self._version += 1
            return dropped

    def get(self, symbol: str) -> Snap | None:
        """Latest snap for a symbol, or None if never written."""
        with self._lock:
            return self._snaps.get(symbol)

    def get_source(self, symbol: str) -> SnapSource | None:
        with self._lock:
            return self._sources.get(symbol)

    def get_all(self) -> dict[str, Snap]:
        """Snapshot of all current snaps. Returns a shallow copy."""
        with self._lock:
            return dict(self._snaps)

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._snaps)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._snaps

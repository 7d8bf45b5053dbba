"""Price reconciler: merges simulated, polled and streamed prices."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping

from .cache import SnapSource, SnapStore
from .fetcher import QuoteFetcher
from .models import Snap
from .simulator import simulate
from .stream_client import StreamingPriceClient

logger = logging.getLogger(__name__)


def _unique(symbols: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))


def reconcile(
    symbols: Iterable[str],
    stream_prices: Mapping[str, float],
    poll_snaps: Mapping[str, Snap],
    existing: Mapping[str, Snap] | None = None,
) -> dict[str, Snap]:
    """One snap per symbol from the three price sources.

    Precedence, highest first:
      1. streamed price, with day stats from the poll / existing / simulated snap
      2. poll snap, wholesale
      3. the snap already shown for the symbol
      4. simulate(symbol)
    """
    existing = existing or {}
    merged: dict[str, Snap] = {}
    for symbol in symbols:
        base = poll_snaps.get(symbol) or existing.get(symbol) or simulate(symbol)
        price = stream_prices.get(symbol)
        merged[symbol] = base if price is None else base.with_price(price)
    return merged


class PollJob:
    """Cancellation flag for one poll run.

    Checked after every await and before any result is applied, so a
    superseded run can never overwrite what a newer run produced.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.cancelled = False
        self.task: asyncio.Task | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def wait(self) -> None:
        if self.task is None:
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass


class PriceReconciler:
    """Owns the per-symbol snap store and keeps it fed.

    Inputs are the wanted symbol set (``set_symbols``) and the selected
    symbol (``select``). Output is ``snap_for`` / ``snapshot``, which always
    resolve to a price for a tracked symbol.

    Sources:
      - Simulator: seeds every new symbol so there is never "no price"
      - Poll: one sequential baseline pass over all symbols whenever the set
        changes, plus the selected symbol every ``poll_interval`` seconds.
        A poll result replaces the snap wholesale.
      - Stream: every trade batch patches price only, keeping day stats.

    Writes from different sources land in arrival order; the most recent
    observation wins.

    Lifecycle:
        reconciler = PriceReconciler(fetcher, stream)
        await reconciler.start(["NVDA", "AMD"])      # mount
        await reconciler.set_symbols(["NVDA", "TSLA"])
        await reconciler.select("TSLA")
        # ... app shutting down ...
        await reconciler.stop()                       # unmount
    """

    def __init__(
        self,
        fetcher: QuoteFetcher,
        stream: StreamingPriceClient,
        store: SnapStore | None = None,
        poll_interval: float = 20.0,
    ) -> None:
        self._fetcher = fetcher
        self._stream = stream
        self._store = store if store is not None else SnapStore()
        self._interval = poll_interval
        self._symbols: list[str] = []
        self._selected: str | None = None
        self._baseline: PollJob | None = None
        self._selection: PollJob | None = None
        self._running = False
        stream.add_listener(self.apply_stream)

    # --- Lifecycle ---

    async def start(self, symbols: Iterable[str]) -> None:
        """Mount: seed snaps, connect the stream, run the baseline poll."""
        self._running = True
        self._track(symbols)
        await self._stream.start(self._symbols)
        self._restart_baseline()
        await self.select(self._symbols[0] if self._symbols else None)
        logger.info("Price reconciler started with %d symbols", len(self._symbols))

    async def stop(self) -> None:
        """Unmount: cancel every poll and tear the stream down. Idempotent."""
        self._running = False
        for job in (self._baseline, self._selection):
            if job is not None:
                job.cancel()
                await job.wait()
        self._baseline = None
        self._selection = None
        await self._stream.stop()
        logger.info("Price reconciler stopped")

    # --- Inputs ---

    async def set_symbols(self, symbols: Iterable[str]) -> None:
        """Track a new symbol set (holdings changed).

        Seeds simulated snaps for new symbols, drops untracked ones,
        resubscribes the stream and re-runs the baseline poll. The selection
        moves to the first symbol if the selected one is gone.
        """
        previous = self._symbols
        wanted = _unique(symbols)
        if self._selected not in wanted:
            await self.select(wanted[0] if wanted else None)
        self._track(wanted)
        if not self._running:
            return
        await self._stream.set_symbols(self._symbols)
        if self._symbols != previous:
            self._restart_baseline()

    async def select(self, symbol: str | None) -> None:
        """Poll ``symbol`` now and every ``poll_interval`` until deselected."""
        if symbol == self._selected and self._selection is not None:
            return
        if self._selection is not None:
            self._selection.cancel()
            await self._selection.wait()
            self._selection = None
        self._selected = symbol
        if symbol is None or not self._running or not self._fetcher.configured:
            return
        job = PollJob(f"poll-{symbol}")
        job.task = asyncio.create_task(self._poll_selected(job, symbol), name=job.name)
        self._selection = job

    def apply_poll(self, symbol: str, snap: Snap) -> Snap:
        """A poll result replaces the symbol's snap wholesale."""
        return self._store.put(symbol, snap, SnapSource.POLL)

    def apply_stream(self, prices: Mapping[str, float]) -> dict[str, Snap]:
        """Patch streamed prices into the store, keeping each symbol's day stats.

        Trades for symbols no longer tracked (in flight during an
        unsubscribe) are ignored.
        """
        tracked = set(self._symbols)
        if self._selected:
            tracked.add(self._selected)
        wanted = {s: p for s, p in prices.items() if s in tracked}
        if not wanted:
            return {}
        return self._store.patch_prices(wanted, simulate)

    # --- Outputs ---

    @property
    def store(self) -> SnapStore:
        return self._store

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def selected(self) -> str | None:
        return self._selected

    @property
    def version(self) -> int:
        return self._store.version

    def snap_for(self, symbol: str) -> Snap:
        """The snap to display for ``symbol``. Never None."""
        return self.snapshot([symbol])[symbol]

    def snapshot(self, symbols: Iterable[str] | None = None) -> dict[str, Snap]:
        """Current snap for ``symbols``, every tracked symbol by default.

        Streamed and polled observations are already folded into the store,
        so they reach ``reconcile`` as the existing snaps.
        """
        wanted = self._symbols if symbols is None else list(symbols)
        return reconcile(wanted, {}, {}, self._store.get_all())

    def source_of(self, symbol: str) -> SnapSource:
        return self._store.get_source(symbol) or SnapSource.SIMULATED

    def is_live(self, symbol: str) -> bool:
        """Whether a streamed trade is currently backing the symbol's price."""
        return self._stream.is_live(symbol)

    # --- Internal ---

    def _track(self, symbols: Iterable[str]) -> None:
        self._symbols = _unique(symbols)
        keep = set(self._symbols)
        if self._selected:
            keep.add(self._selected)
        self._store.retain(keep)
        for symbol in self._symbols:
            self._store.ensure(symbol, simulate)

    def _restart_baseline(self) -> None:
        if self._baseline is not None:
            self._baseline.cancel()
        if not self._symbols or not self._fetcher.configured:
            self._baseline = None
            return
        job = PollJob("baseline-poll")
        job.task = asyncio.create_task(
            self._baseline_poll(job, list(self._symbols)), name=job.name
        )
        self._baseline = job

    async def _baseline_poll(self, job: PollJob, symbols: list[str]) -> None:
        """Poll each symbol once, one at a time, to avoid a request burst."""
        applied = 0
        for symbol in symbols:
            snap = await self._fetcher.fetch_quote(symbol)
            if job.cancelled:
                return
            if snap is not None:
                self.apply_poll(symbol, snap)
                applied += 1
        logger.info("Baseline poll: %d/%d symbols priced", applied, len(symbols))

    async def _poll_selected(self, job: PollJob, symbol: str) -> None:
        while not job.cancelled:
            try:
                snap = await self._fetcher.fetch_quote(symbol)
                if job.cancelled:
                    return
                if snap is not None:
                    self.apply_poll(symbol, snap)
            except Exception:
                logger.exception("Selected-symbol poll failed for %s", symbol)
            await asyncio.sleep(self._interval)

"""Tests for the price reconciler."""

import asyncio
import json

import pytest

from dashboard.market.cache import SnapSource
from dashboard.market.errors import QuoteError
from dashboard.market.fetcher import QuoteFetcher
from dashboard.market.models import RawQuote, Snap
from dashboard.market.reconciler import PollJob, PriceReconciler, reconcile
from dashboard.market.simulator import simulate
from dashboard.market.stream_client import StreamingPriceClient


def _trade(symbol: str, price: float) -> str:
    return json.dumps({"type": "trade", "data": [{"s": symbol, "p": price}]})


def _reconciler(provider=None, poll_interval: float = 60.0) -> PriceReconciler:
    stream = StreamingPriceClient(api_key="")  # Disabled; trades are injected
    return PriceReconciler(QuoteFetcher(provider), stream, poll_interval=poll_interval)


class TestReconcile:
    """Unit tests for the pure reconcile() function."""

    def test_simulated_when_nothing_observed(self):
        """Test that a symbol with no observations gets the simulated snap."""
        assert reconcile(["NVDA"], {}, {}) == {"NVDA": simulate("NVDA")}

    def test_poll_wins_over_existing(self):
        """Test that a poll snap replaces the existing one wholesale."""
        polled = Snap(price=140.0, today_pct=1.0, day_max=141.0, day_min=139.0)
        existing = {"NVDA": Snap(price=1.0, today_pct=0.0, day_max=1.0, day_min=1.0)}
        assert reconcile(["NVDA"], {}, {"NVDA": polled}, existing)["NVDA"] == polled

    def test_existing_kept_without_new_data(self):
        """Test that the shown snap survives when no source reports."""
        existing = {"NVDA": Snap(price=1.0, today_pct=0.5, day_max=2.0, day_min=0.5)}
        assert reconcile(["NVDA"], {}, {}, existing)["NVDA"] == existing["NVDA"]

    def test_stream_price_keeps_poll_stats(self):
        """Test that a streamed price patches the poll snap's price only."""
        polled = Snap(price=140.0, today_pct=1.45, day_max=141.0, day_min=137.0)
        merged = reconcile(["NVDA"], {"NVDA": 150.25}, {"NVDA": polled})
        assert merged["NVDA"] == Snap(price=150.25, today_pct=1.45, day_max=141.0, day_min=137.0)

    def test_stream_price_over_simulated_stats(self):
        """Test that a streamed price without a poll keeps simulated stats."""
        sim = simulate("AMD")
        merged = reconcile(["AMD"], {"AMD": 99.0}, {})
        assert merged["AMD"] == Snap(price=99.0, today_pct=sim.today_pct, day_max=sim.day_max, day_min=sim.day_min)

    def test_only_requested_symbols(self):
        """Test that extra observations for untracked symbols are ignored."""
        assert list(reconcile(["A"], {"B": 1.0}, {"C": simulate("C")})) == ["A"]


@pytest.mark.asyncio
class TestPriceReconciler:
    """Behavior tests for the stateful reconciler."""

    async def test_no_credentials_falls_back_to_simulation(self):
        """Test the all-offline case: every symbol shows its simulated snap."""
        reconciler = _reconciler()
        await reconciler.start(["NVDA"])

        assert reconciler.snap_for("NVDA") == simulate("NVDA")
        assert reconciler.source_of("NVDA") is SnapSource.SIMULATED
        assert reconciler.selected == "NVDA"
        assert reconciler._selection is None  # Nothing to poll
        await reconciler.stop()

    async def test_poll_then_stream(self, make_provider, eventually):
        """Test that a streamed trade after a poll keeps the poll's day stats."""
        provider = make_provider({"NVDA": RawQuote(140.0, 138.0, 141.0, 137.0)})
        reconciler = _reconciler(provider)
        await reconciler.start(["NVDA"])

        await eventually(lambda: reconciler.source_of("NVDA") is SnapSource.POLL)
        assert reconciler.snap_for("NVDA") == Snap(price=140.0, today_pct=1.45, day_max=141.0, day_min=137.0)

        reconciler._stream._handle_message(_trade("NVDA", 150.25))

        assert reconciler.snap_for("NVDA") == Snap(price=150.25, today_pct=1.45, day_max=141.0, day_min=137.0)
        assert reconciler.source_of("NVDA") is SnapSource.STREAM
        assert reconciler.is_live("NVDA")
        await reconciler.stop()

    async def test_stream_ignores_untracked_symbols(self):
        """Test that late trades for dropped symbols are discarded."""
        reconciler = _reconciler()
        await reconciler.start(["NVDA"])
        reconciler._stream._handle_message(_trade("GME", 20.0))
        assert "GME" not in reconciler.store
        await reconciler.stop()

    async def test_stream_batch_bumps_version_once(self):
        """Test that a multi-symbol batch lands as one store write."""
        reconciler = _reconciler()
        await reconciler.start(["NVDA", "AMD"])
        before = reconciler.version
        reconciler.apply_stream({"NVDA": 1.0, "AMD": 2.0})
        assert reconciler.version == before + 1
        await reconciler.stop()

    async def test_baseline_poll_is_sequential(self, make_provider):
        """Test that the baseline pass issues one request at a time."""
        provider = make_provider({s: RawQuote(10.0) for s in "ABC"}, delay=0.01)
        reconciler = _reconciler(provider)

        await reconciler._baseline_poll(PollJob("baseline-poll"), ["A", "B", "C"])

        assert provider.calls == ["A", "B", "C"]
        assert provider.max_in_flight == 1
        assert all(reconciler.source_of(s) is SnapSource.POLL for s in "ABC")

    async def test_baseline_keeps_simulated_on_failure(self, make_provider, eventually):
        """Test that a failed or empty poll leaves the simulated snap."""
        provider = make_provider({"A": QuoteError("A", "boom"), "B": None, "C": RawQuote(5.0)})
        reconciler = _reconciler(provider)
        await reconciler.start(["A", "B", "C"])

        await eventually(lambda: reconciler.source_of("C") is SnapSource.POLL)
        assert reconciler.snap_for("A") == simulate("A")
        assert reconciler.snap_for("B") == simulate("B")
        await reconciler.stop()

    async def test_selected_symbol_polled_on_interval(self, make_provider, eventually):
        """Test that the selection keeps getting polled."""
        provider = make_provider({"NVDA": RawQuote(140.0)})
        reconciler = _reconciler(provider, poll_interval=0.01)
        await reconciler.start(["NVDA"])

        await eventually(lambda: provider.calls.count("NVDA") >= 4)
        await reconciler.stop()

    async def test_cancelled_job_discards_result(self, make_provider):
        """Test that a result arriving after cancellation is not applied."""
        provider = make_provider({"A": RawQuote(10.0)}, delay=0.02)
        reconciler = _reconciler(provider)
        job = PollJob("poll-A")
        job.task = asyncio.create_task(reconciler._poll_selected(job, "A"))

        await asyncio.sleep(0.005)
        job.cancelled = True  # Flag only; the request still completes
        await job.wait()

        assert provider.calls == ["A"]
        assert reconciler.store.get("A") is None

    async def test_select_replaces_previous_job(self, make_provider):
        """Test that selecting another symbol cancels the old poll loop."""
        provider = make_provider({"A": RawQuote(1.0), "B": RawQuote(2.0)})
        reconciler = _reconciler(provider)
        await reconciler.start(["A", "B"])
        first = reconciler._selection

        await reconciler.select("B")

        assert first.cancelled
        assert first.task.done()
        assert reconciler.selected == "B"
        assert reconciler._selection.name == "poll-B"
        await reconciler.stop()

    async def test_select_same_symbol_keeps_job(self, make_provider):
        """Test that re-selecting the current symbol is a no-op."""
        reconciler = _reconciler(make_provider({"A": RawQuote(1.0)}))
        await reconciler.start(["A"])
        job = reconciler._selection
        await reconciler.select("A")
        assert reconciler._selection is job
        await reconciler.stop()

    async def test_set_symbols_seeds_and_drops(self):
        """Test that new symbols are seeded and removed ones dropped."""
        reconciler = _reconciler()
        await reconciler.start(["A", "B"])

        await reconciler.set_symbols(["B", "C"])

        assert reconciler.symbols == ["B", "C"]
        assert set(reconciler.snapshot()) == {"B", "C"}
        assert "A" not in reconciler.store
        assert reconciler.snap_for("C") == simulate("C")
        await reconciler.stop()

    async def test_selection_moves_when_symbol_removed(self):
        """Test that removing the selected symbol selects the first remaining."""
        reconciler = _reconciler()
        await reconciler.start(["A", "B"])
        assert reconciler.selected == "A"

        await reconciler.set_symbols(["B", "C"])
        assert reconciler.selected == "B"

        await reconciler.set_symbols([])
        assert reconciler.selected is None
        assert reconciler.snapshot() == {}
        await reconciler.stop()

    async def test_set_symbols_restarts_baseline(self, make_provider, eventually):
        """Test that a new symbol gets polled once the set changes."""
        provider = make_provider({"A": RawQuote(1.0), "B": RawQuote(2.0)})
        reconciler = _reconciler(provider)
        await reconciler.start(["A"])

        await reconciler.set_symbols(["A", "B"])

        await eventually(lambda: reconciler.source_of("B") is SnapSource.POLL)
        await reconciler.stop()

    async def test_set_symbols_resyncs_stream(self):
        """Test that the stream's wanted set follows the holdings."""
        reconciler = _reconciler()
        await reconciler.start(["A"])
        await reconciler.set_symbols(["a", "B", "B"])
        assert reconciler._stream.get_symbols() == ["A", "B"]
        await reconciler.stop()

    async def test_stop_cancels_polls(self, make_provider):
        """Test that unmount leaves no poll task running."""
        provider = make_provider({"A": RawQuote(1.0)}, delay=0.05)
        reconciler = _reconciler(provider, poll_interval=0.01)
        await reconciler.start(["A"])
        baseline, selection = reconciler._baseline, reconciler._selection

        await reconciler.stop()

        assert baseline.task.done()
        assert selection.task.done()
        calls = len(provider.calls)
        await asyncio.sleep(0.05)
        assert len(provider.calls) == calls
        assert reconciler.store.get("A") == simulate("A")

    async def test_snapshot_matches_reconcile(self):
        """Test that snapshot() resolves through the precedence rules."""
        reconciler = _reconciler()
        await reconciler.start(["NVDA", "AMD"])
        reconciler.apply_stream({"NVDA": 150.25})

        snapshot = reconciler.snapshot()

        assert snapshot == reconcile(["NVDA", "AMD"], {}, {}, reconciler.store.get_all())
        assert snapshot["NVDA"].price == 150.25
        assert reconciler.snapshot(["GME"]) == {"GME": simulate("GME")}  # Untracked
        assert reconciler.snap_for("GME") == simulate("GME")
        await reconciler.stop()

"""Streaming trade client: live prices pushed over a websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import FINNHUB_STREAM_URL

logger = logging.getLogger(__name__)

PriceListener = Callable[[dict[str, float]], None]


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    TORN_DOWN = "torn_down"


def _unique(symbols: Iterable[str]) -> list[str]:
    """Distinct non-blank symbols, first appearance wins."""
    return list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))


def _trade_price(trade: Any) -> tuple[str, float] | None:
    """Extract (symbol, price) from one entry of a trade message."""
    if not isinstance(trade, dict):
        return None
    symbol = trade.get("s", trade.get("symbol"))
    price = trade.get("p", trade.get("price"))
    if not isinstance(symbol, str) or not symbol:
        return None
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    return symbol, float(price)


class StreamingPriceClient:
    """Keeps one websocket subscribed to the wanted symbols and records the
    latest trade price for each.

    State machine:
        IDLE → CONNECTING → OPEN → CLOSED ─(backoff)→ CONNECTING → ...
        any state ─stop()→ TORN_DOWN

    Transitions and side effects:
        open           retry_count = 0, subscribe every wanted symbol
        trade message  merge the whole batch into the price map at once
        close          unless torn down: sleep min(max, base * (retry+1)),
                       retry_count += 1, reconnect
        error          the connection is dropped and close handling applies
        no symbols     drop the connection and idle until some are wanted

    Prices are never deleted: after a disconnect they simply go stale until
    the next trade arrives. Readers get a copy of the map, and a batch is
    published by swapping in a new dict, so a reader sees either all of a
    message's trades or none of them.

    Lifecycle:
        client = StreamingPriceClient(api_key, url)
        await client.start(["NVDA", "AMD"])
        await client.set_symbols(["NVDA", "TSLA"])
        # ... app shutting down ...
        await client.stop()
    """

    def __init__(
        self,
        api_key: str,
        url: str = FINNHUB_STREAM_URL,
        reconnect_base_delay: float = 0.3,
        reconnect_max_delay: float = 5.0,
        max_reconnect_attempts: int | None = None,
        connect: Callable[[str], Any] | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._max_attempts = max_reconnect_attempts
        self._connect = connect or websockets.connect

        self._symbols: list[str] = []
        self._subscribed: set[str] = set()
        self._prices: dict[str, float] = {}
        self._version: int = 0  # Bumped once per applied trade batch
        self._listeners: list[PriceListener] = []

        self._state = ConnectionState.IDLE
        self._retry_count = 0
        self._closed = False
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._has_symbols = asyncio.Event()
        self._subscription_lock = asyncio.Lock()  # Guards _subscribed

    # --- Public API ---

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def version(self) -> int:
        return self._version

    async def start(self, symbols: Iterable[str]) -> None:
        """Begin streaming trades for ``symbols``.

        Does nothing when streaming is disabled (no credential); that is
        inactivity, not an error.
        """
        self._symbols = _unique(symbols)
        if not self.enabled:
            logger.info("Trade stream disabled (no API key); not connecting")
            return
        if self._closed or self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        if self._symbols:
            self._has_symbols.set()
        self._task = asyncio.create_task(self._run(), name="trade-stream")
        logger.info("Trade stream started with %d symbols", len(self._symbols))

    async def stop(self) -> None:
        """Tear the client down for good. Safe to call multiple times."""
        self._closed = True
        self._abort()
        if self._task and not self._task.done():
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._ws = None
        if self._state is not ConnectionState.TORN_DOWN:
            self._state = ConnectionState.TORN_DOWN
            logger.info("Trade stream stopped")

    def request_stop(self) -> None:
        """Signal disposal from any thread. Pending reconnects become no-ops.

        Follow with ``await stop()`` on the client's own loop to wait for the
        connection task to finish.
        """
        self._closed = True
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._abort)

    async def set_symbols(self, symbols: Iterable[str]) -> None:
        """Change the wanted symbol set.

        While connected this unsubscribes dropped symbols and subscribes new
        ones in place. Otherwise the next successful open subscribes the
        full set. An empty set drops the connection.
        """
        wanted = _unique(symbols)
        self._symbols = wanted

        if not wanted:
            self._has_symbols.clear()
            ws = self._ws
            if ws is not None:
                logger.info("Trade stream: no symbols wanted, closing connection")
                await ws.close()
            return

        self._has_symbols.set()
        async with self._subscription_lock:
            ws = self._ws
            if ws is None or self._state is not ConnectionState.OPEN:
                return
            try:
                await self._resubscribe(ws)
            except (ConnectionClosed, OSError) as e:
                # The run loop reconnects and subscribes the full set on open
                logger.warning("Trade stream resubscribe interrupted: %s", e)

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    def get_prices(self) -> dict[str, float]:
        """Snapshot of the latest trade price per symbol. Returns a copy."""
        return dict(self._prices)

    def get_price(self, symbol: str) -> float | None:
        return self._prices.get(symbol)

    def is_live(self, symbol: str) -> bool:
        """Whether a streamed trade is backing this symbol's price."""
        return symbol in self._prices

    def add_listener(self, listener: PriceListener) -> None:
        """Call ``listener(batch)`` after each trade batch is applied."""
        self._listeners.append(listener)

    def backoff_delay(self, retry_count: int) -> float:
        """Seconds to wait before reconnect number ``retry_count + 1``."""
        return min(self._max_delay, self._base_delay * (retry_count + 1))

    # --- Event handlers ---

    async def _handle_open(self, ws: Any) -> None:
        async with self._subscription_lock:
            self._state = ConnectionState.OPEN
            self._retry_count = 0
            self._subscribed.clear()
            await self._resubscribe(ws)
        logger.info("Trade stream open, subscribed %d symbols", len(self._subscribed))

    def _handle_message(self, raw: str | bytes) -> dict[str, float]:
        """Apply one inbound message. Returns the applied batch (may be empty)."""
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Trade stream: dropping non-JSON message")
            return {}
        if not isinstance(msg, dict) or msg.get("type") != "trade":
            return {}
        data = msg.get("data")
        if not isinstance(data, list):
            return {}

        batch: dict[str, float] = {}
        for trade in data:
            parsed = _trade_price(trade)
            if parsed is not None:
                symbol, price = parsed
                batch[symbol] = price  # Last trade per symbol in the message wins
        if batch:
            self._apply(batch)
        return batch

    def _handle_close(self) -> float | None:
        """Record an unexpected close. Returns the reconnect delay, or None
        when no reconnect should happen."""
        if self._closed:
            return None
        self._state = ConnectionState.CLOSED
        if self._max_attempts is not None and self._retry_count >= self._max_attempts:
            logger.error(
                "Trade stream giving up after %d reconnect attempts", self._retry_count
            )
            return None
        delay = self.backoff_delay(self._retry_count)
        self._retry_count += 1
        logger.info(
            "Trade stream closed; reconnect #%d in %.1fs", self._retry_count, delay
        )
        return delay

    def _handle_error(self, error: Exception) -> None:
        logger.warning("Trade stream error: %s", error)

    # --- Internal ---

    def _apply(self, batch: dict[str, float]) -> None:
        self._prices = {**self._prices, **batch}
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(dict(batch))
            except Exception:
                logger.exception("Trade stream listener failed")

    def _abort(self) -> None:
        self._has_symbols.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _resubscribe(self, ws: Any) -> None:
        """Bring the server-side subscriptions in line with the wanted set.

        Caller holds the subscription lock. The wanted set is re-read after
        every pass, so changes made while messages were in flight are
        picked up before returning.
        """
        removed_total = added_total = 0
        while True:
            wanted = list(self._symbols)
            removed = sorted(self._subscribed.difference(wanted))
            added = [s for s in wanted if s not in self._subscribed]
            if not removed and not added:
                break
            for symbol in removed:
                await self._send(ws, "unsubscribe", symbol)
                self._subscribed.discard(symbol)
            for symbol in added:
                await self._send(ws, "subscribe", symbol)
                self._subscribed.add(symbol)
            removed_total += len(removed)
            added_total += len(added)
        if removed_total or added_total:
            logger.debug(
                "Trade stream subscriptions: +%d -%d symbols", added_total, removed_total
            )

    async def _send(self, ws: Any, kind: str, symbol: str) -> None:
        await ws.send(json.dumps({"type": kind, "symbol": symbol}))

    async def _run(self) -> None:
        """Connect loop. Runs until stop() or the reconnect limit."""
        while not self._closed:
            if not self._symbols:
                self._state = ConnectionState.IDLE
                self._has_symbols.clear()
                await self._has_symbols.wait()
                continue

            await self._connect_once()
            if self._closed:
                break
            if not self._symbols:
                continue  # Dropped on purpose, not a failure

            delay = self._handle_close()
            if delay is None:
                break
            await asyncio.sleep(delay)

    async def _connect_once(self) -> None:
        self._state = ConnectionState.CONNECTING
        try:
            async with self._connect(f"{self._url}?token={self._api_key}") as ws:
                self._ws = ws
                await self._handle_open(ws)
                async for raw in ws:
                    self._handle_message(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Network errors, handshake failures, abnormal closes
            self._handle_error(e)
        finally:
            self._ws = None
            self._subscribed.clear()

"""Pytest configuration and fixtures.

Provides in-memory stand-ins for the network edges: a quote provider with
scripted answers and websocket connections with scripted inbound messages.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from dashboard.market.interface import QuoteProvider
from dashboard.market.models import RawQuote


class FakeQuoteProvider(QuoteProvider):
    """Answers from a dict: RawQuote, None (no data) or an exception to raise."""

    def __init__(self, quotes: dict | None = None, delay: float = 0.0) -> None:
        self.quotes = dict(quotes or {})
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def get_quote(self, symbol: str) -> RawQuote | None:
        self.calls.append(symbol)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.quotes.get(symbol)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


class FakeWebSocket:
    """Async-iterable connection. ``None`` in the inbox ends the iteration
    (server close); an exception instance is raised (transport error)."""

    def __init__(self, messages=(), hold_open: bool = True) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.push(message)
        if not hold_open:
            self._inbox.put_nowait(None)

    def push(self, message) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> bool:
        await self.close()
        return False


class FailingConnection:
    """Connection attempt that fails during the handshake."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or OSError("connection refused")

    async def __aenter__(self):
        raise self.error

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeConnector:
    """Stands in for ``websockets.connect``; hands out scripted connections.

    Once the script runs out, every attempt gets a fresh held-open socket.
    """

    def __init__(self, *connections) -> None:
        self._script = list(connections)
        self.urls: list[str] = []
        self.opened: list[FakeWebSocket] = []

    def __call__(self, url: str):
        self.urls.append(url)
        conn = self._script.pop(0) if self._script else FakeWebSocket()
        if isinstance(conn, FakeWebSocket):
            self.opened.append(conn)
        return conn


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Spin the loop until ``predicate()`` holds or fail after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def make_provider():
    return FakeQuoteProvider


@pytest.fixture
def make_ws():
    return FakeWebSocket


@pytest.fixture
def make_connector():
    return FakeConnector


@pytest.fixture
def failing_connection():
    return FailingConnection


@pytest.fixture
def eventually():
    return wait_until

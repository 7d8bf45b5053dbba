"""News feed state with latest-request-wins refreshes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .client import DEFAULT_DAYS, NewsClient
from .models import NewsResult

logger = logging.getLogger(__name__)


class NewsFeed:
    """Holds the news shown for the current symbol set.

    Each refresh aborts the one still in flight. A superseded request is
    discarded silently: it never replaces the result or the error of a
    newer one.
    """

    def __init__(self, client: NewsClient) -> None:
        self._client = client
        self._result = NewsResult()
        self._error: str | None = None
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def result(self) -> NewsResult:
        return self._result

    @property
    def error(self) -> str | None:
        """Inline message for the last failed refresh, until dismissed."""
        return self._error

    def dismiss_error(self) -> None:
        self._error = None

    async def refresh(
        self, symbols: str | Iterable[str], days: int = DEFAULT_DAYS
    ) -> NewsResult | None:
        """Fetch news for ``symbols``. Returns None if a newer refresh won."""
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()

        task = asyncio.create_task(self._client.fetch_news(symbols, days))
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("News refresh superseded")
                return None
            raise
        except Exception as e:
            if generation == self._generation:
                self._error = f"could not load news: {e}"
                logger.warning("News refresh failed: %s", e)
            return None

        if generation != self._generation:
            return None
        self._result = result
        self._error = None
        return result

    def schedule(
        self, symbols: str | Iterable[str], days: int = DEFAULT_DAYS
    ) -> asyncio.Task:
        """Start a refresh in the background. Returns its task."""
        task = asyncio.create_task(self.refresh(symbols, days), name="news-refresh")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def aclose(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        for task in list(self._background):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

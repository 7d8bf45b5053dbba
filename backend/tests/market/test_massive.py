"""Tests for MassiveQuoteProvider (mocked)."""

from unittest.mock import MagicMock, patch

import pytest

from dashboard.market.errors import QuoteError
from dashboard.market.massive_client import MassiveQuoteProvider
from dashboard.market.models import RawQuote


def _make_snapshot(price, prev_close=None, high=None, low=None) -> MagicMock:
    """Create a mock Massive ticker snapshot object."""
    snap = MagicMock()
    snap.last_trade.price = price
    snap.prev_day.close = prev_close
    snap.day.high = high
    snap.day.low = low
    return snap


@pytest.mark.asyncio
class TestMassiveQuoteProvider:
    """Unit tests for MassiveQuoteProvider with mocked API."""

    async def test_snapshot_mapped(self):
        """Test that the snapshot fields map onto RawQuote."""
        provider = MassiveQuoteProvider(api_key="test-key")
        snap = _make_snapshot(190.5, prev_close=189.0, high=191.0, low=188.0)

        with patch.object(provider, "_fetch_snapshot", return_value=snap) as mock_fetch:
            quote = await provider.get_quote("AAPL")

        mock_fetch.assert_called_once_with("AAPL")
        assert quote == RawQuote(current_price=190.5, previous_close=189.0, day_high=191.0, day_low=188.0)

    async def test_missing_last_trade_is_no_data(self):
        """Test that a snapshot without a last trade means no data."""
        provider = MassiveQuoteProvider(api_key="test-key")
        snap = MagicMock()
        snap.last_trade = None  # Will cause the price lookup to miss

        with patch.object(provider, "_fetch_snapshot", return_value=snap):
            assert await provider.get_quote("BAD") is None

    async def test_partial_snapshot(self):
        """Test that missing day/prev_day fields become None."""
        provider = MassiveQuoteProvider(api_key="test-key")
        snap = _make_snapshot(10.0)
        snap.day = None

        with patch.object(provider, "_fetch_snapshot", return_value=snap):
            quote = await provider.get_quote("AI")

        assert quote == RawQuote(current_price=10.0)

    async def test_api_error_raises_quote_error(self):
        """Test that API errors surface as QuoteError for that symbol."""
        provider = MassiveQuoteProvider(api_key="test-key")

        with patch.object(provider, "_fetch_snapshot", side_effect=Exception("network error")):
            with pytest.raises(QuoteError) as exc_info:
                await provider.get_quote("AAPL")

        assert exc_info.value.symbol == "AAPL"
        assert exc_info.value.reason == "network error"

    async def test_client_created_lazily_once(self):
        """Test that the REST client is built on first use and reused."""
        provider = MassiveQuoteProvider(api_key="test-key")
        assert provider._client is None

        with patch("massive.RESTClient") as mock_client_cls:
            mock_client_cls.return_value.get_snapshot_ticker.return_value = _make_snapshot(5.0)
            await provider.get_quote("AAPL")
            await provider.get_quote("MSFT")

        mock_client_cls.assert_called_once_with(api_key="test-key")
        assert mock_client_cls.return_value.get_snapshot_ticker.call_count == 2

    async def test_aclose_is_idempotent(self):
        """Test that aclose() can be called multiple times."""
        provider = MassiveQuoteProvider(api_key="test-key")
        await provider.aclose()
        await provider.aclose()  # Should not raise
        assert provider._client is None

"""Company news for the tracked symbols.

Public API:
    NewsClient  - Parallel per-symbol fetch, merged and deduplicated
    NewsFeed    - Latest-request-wins refresh with a dismissible error
    parse_symbols / clamp_days / merge_news - Request and response shaping
"""

from .client import NewsClient, clamp_days, merge_news, parse_symbols
from .feed import NewsFeed
from .models import NewsItem, NewsResult

__all__ = [
    "NewsClient",
    "NewsFeed",
    "NewsItem",
    "NewsResult",
    "clamp_days",
    "merge_news",
    "parse_symbols",
]

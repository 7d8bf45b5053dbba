"""News data models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class NewsItem:
    symbol: str
    timestamp: int  # Unix seconds
    headline: str
    source: str
    url: str
    image: str | None = None
    summary: str | None = None

    def to_dict(self) -> dict:
        row = {
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "headline": self.headline,
            "source": self.source,
            "url": self.url,
        }
        if self.image:
            row["image"] = self.image
        if self.summary:
            row["summary"] = self.summary
        return row


@dataclass(frozen=True, slots=True)
class NewsResult:
    """Merged news for a request, plus anything worth telling the user."""

    items: list[NewsItem] = field(default_factory=list)
    warning: str | None = None
    errors: dict[str, str] = field(default_factory=dict)  # symbol -> reason

    def to_dict(self) -> dict:
        payload: dict = {"items": [item.to_dict() for item in self.items]}
        if self.warning:
            payload["warning"] = self.warning
        if self.errors:
            payload["errors"] = dict(self.errors)
        return payload

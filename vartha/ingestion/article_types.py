"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from vartha.dates.resolver import to_iso


@dataclass
class HeadlineItem:
    """One extracted headline.

    ``published_raw`` holds an un-normalized date value (feed entries) until the
    aggregator resolves it into ``published_at``.
    """

    title: str
    link: str
    source: str
    discovered_at: datetime
    published_at: Optional[datetime] = None
    summary: str = ""
    published_raw: str = field(default="", repr=False)

    def fill_published_at(self, value: Optional[datetime]) -> bool:
        """Set the publish date if still unknown; never overwrites."""
        if self.published_at is not None or value is None:
            return False
        self.published_at = value
        return True

    def effective_time(self) -> datetime:
        return self.published_at or self.discovered_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "source": self.source,
            "publishedAt": to_iso(self.published_at),
            "summary": self.summary,
            "discoveredAt": int(self.discovered_at.timestamp() * 1000),
        }


@dataclass(frozen=True)
class SourceFetchResult:
    source_name: str
    status: str  # "ok" | "error"
    items: List[HeadlineItem] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "source": self.source_name,
            "status": self.status,
            "count": len(self.items),
        }
        if self.error_message:
            out["error"] = self.error_message
        return out


@dataclass(frozen=True)
class CacheEntry:
    fetched_at: float  # epoch seconds, set when the pass completed
    items: List[HeadlineItem]
    stats: List[SourceFetchResult]

    @property
    def updated_at_ms(self) -> int:
        return int(self.fetched_at * 1000)

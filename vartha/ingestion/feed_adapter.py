"""RSS/Atom documents → HeadlineItems (feedparser)."""

from __future__ import annotations

import io
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser

from vartha.config.sources import SourceConfig
from vartha.dates.resolver import parse_date_from_url, to_iso
from vartha.errors import ParseError
from vartha.ingestion.article_types import HeadlineItem
from vartha.text.heuristics import (
    contains_target_script,
    first_sentence,
    is_specific_headline,
    strip_html,
    to_absolute_url,
)

# Warnings feedparser raises for documents it still parsed completely.
_BENIGN_BOZO = (feedparser.CharacterEncodingOverride, feedparser.NonXMLContentType)


@dataclass(frozen=True)
class FeedEntry:
    title: str
    link: str
    published: str
    summary: str


def _struct_to_iso(value: Optional[time.struct_time]) -> str:
    if not value:
        return ""
    try:
        return to_iso(datetime(*value[:6], tzinfo=timezone.utc))
    except (TypeError, ValueError):
        return ""


def _entry_summary(entry: Any) -> str:
    content = entry.get("content")
    if isinstance(content, list) and content:
        value = content[0].get("value") if isinstance(content[0], dict) else None
        if value:
            return str(value)
    return str(entry.get("summary") or entry.get("description") or "")


def parse_feed(text: str) -> List[FeedEntry]:
    """Parse a syndication document; a malformed document fails as a whole."""
    if not (text or "").strip():
        raise ParseError("empty feed document")
    # A stream keeps feedparser from treating the body as a URL or filename.
    parsed = feedparser.parse(
        io.BytesIO(text.encode("utf-8")),
        response_headers={"content-type": "application/xml; charset=utf-8"},
    )
    if parsed.get("bozo") and not isinstance(parsed.get("bozo_exception"), _BENIGN_BOZO):
        raise ParseError(f"malformed feed: {parsed.get('bozo_exception')}")
    if not parsed.get("version") and not parsed.entries:
        raise ParseError("document is not a recognised feed")
    out: List[FeedEntry] = []
    for entry in parsed.entries:
        published = (
            _struct_to_iso(entry.get("published_parsed"))
            or _struct_to_iso(entry.get("updated_parsed"))
            or str(entry.get("published") or entry.get("updated") or "")
        )
        out.append(
            FeedEntry(
                title=str(entry.get("title") or "").strip(),
                link=str(entry.get("link") or "").strip(),
                published=published,
                summary=_entry_summary(entry),
            )
        )
    return out


def feed_entries_to_items(
    source: SourceConfig, entries: List[FeedEntry], discovered_at: datetime
) -> List[HeadlineItem]:
    items: List[HeadlineItem] = []
    for entry in entries:
        if not entry.title or not contains_target_script(entry.title) or not is_specific_headline(entry.title):
            continue
        raw_date = entry.published or to_iso(parse_date_from_url(entry.link))
        items.append(
            HeadlineItem(
                title=entry.title,
                link=to_absolute_url(entry.link, source.url) if entry.link else "",
                source=source.name,
                discovered_at=discovered_at,
                summary=first_sentence(strip_html(entry.summary)),
                published_raw=raw_date,
            )
        )
    return items

"""Headline candidates from listing pages that have no feed.

Every anchor is run through ``STAGES`` in order. A stage either rejects the
candidate (returns False) or fills in more of it (title, summary, date). The
page is scanned in document order until the source's ``max_items`` cap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Set

from bs4 import BeautifulSoup
from bs4.element import Tag

from vartha.config.sources import SourceConfig
from vartha.dates.resolver import (
    parse_date_from_free_text,
    parse_date_from_url,
    parse_date_value,
)
from vartha.ingestion.article_types import HeadlineItem
from vartha.text.heuristics import (
    contains_target_script,
    first_sentence,
    is_specific_headline,
    matches_any_pattern,
    normalize_whitespace,
    to_absolute_url,
)

TITLE_MIN_CHARS = 15
TITLE_MAX_CHARS = 180
SUMMARY_MIN_CHARS = 10
CONTAINER_TAGS = ["article", "li", "div"]


@dataclass
class _Scan:
    source: SourceConfig
    seen: Set[str] = field(default_factory=set)


@dataclass
class Candidate:
    anchor: Tag
    url: str = ""
    title: str = ""
    summary: str = ""
    container: Optional[Tag] = None
    published_at: Optional[datetime] = None


Stage = Callable[[Candidate, _Scan], bool]


def resolve_link(c: Candidate, scan: _Scan) -> bool:
    c.url = to_absolute_url(c.anchor.get("href"), scan.source.url)
    return bool(c.url)


def url_patterns(c: Candidate, scan: _Scan) -> bool:
    src = scan.source
    if src.include_patterns and not matches_any_pattern(c.url, src.include_patterns):
        return False
    return not matches_any_pattern(c.url, src.exclude_patterns)


def unseen_url(c: Candidate, scan: _Scan) -> bool:
    return c.url not in scan.seen


def derive_title(c: Candidate, scan: _Scan) -> bool:
    img = c.anchor.find("img", alt=True)
    for value in (
        c.anchor.get_text(),
        c.anchor.get("title"),
        c.anchor.get("aria-label"),
        img.get("alt") if img is not None else None,
    ):
        title = normalize_whitespace(value if isinstance(value, str) else "")
        if title:
            c.title = title
            return True
    return False


def title_shape(c: Candidate, scan: _Scan) -> bool:
    if not TITLE_MIN_CHARS <= len(c.title) <= TITLE_MAX_CHARS:
        return False
    return contains_target_script(c.title) and is_specific_headline(c.title)


def title_keywords(c: Candidate, scan: _Scan) -> bool:
    lowered = c.title.lower()
    return not any(kw.lower() in lowered for kw in scan.source.title_exclude_keywords)


def derive_summary(c: Candidate, scan: _Scan) -> bool:
    c.container = c.anchor.find_parent(CONTAINER_TAGS)
    para = c.container.find("p") if c.container is not None else None
    summary = normalize_whitespace(para.get_text()) if para is not None else ""
    if len(summary) < SUMMARY_MIN_CHARS or summary == c.title:
        summary = ""
    c.summary = first_sentence(summary)
    return True


def _time_element_value(container: Optional[Tag]) -> str:
    time_el = container.find("time") if container is not None else None
    if time_el is None:
        return ""
    return time_el.get("datetime") or normalize_whitespace(time_el.get_text())


def derive_published_at(c: Candidate, scan: _Scan) -> bool:
    # Container text is scanned only when there is no <time> value at all.
    time_value = _time_element_value(c.container)
    if time_value:
        found = parse_date_value(time_value)
    elif c.container is not None:
        found = parse_date_from_free_text(c.container.get_text(" "))
    else:
        found = None
    c.published_at = found or parse_date_from_url(c.url)
    return True


STAGES: List[Stage] = [
    resolve_link,
    url_patterns,
    unseen_url,
    derive_title,
    title_shape,
    title_keywords,
    derive_summary,
    derive_published_at,
]


def extract_headlines(
    source: SourceConfig,
    html: str,
    discovered_at: datetime,
    stages: Optional[List[Stage]] = None,
) -> List[HeadlineItem]:
    soup = BeautifulSoup(html or "", "html.parser")
    scan = _Scan(source=source)
    items: List[HeadlineItem] = []
    for anchor in soup.find_all("a", href=True):
        if len(items) >= source.max_items:
            break
        c = Candidate(anchor=anchor)
        if not all(stage(c, scan) for stage in (stages or STAGES)):
            continue
        scan.seen.add(c.url)
        items.append(
            HeadlineItem(
                title=c.title,
                link=c.url,
                source=source.name,
                discovered_at=discovered_at,
                published_at=c.published_at,
                summary=c.summary,
            )
        )
    return items

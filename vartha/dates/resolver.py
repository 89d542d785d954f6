"""Publish-date resolution.

Each resolver turns one kind of date evidence (attribute value, free text,
URL path, article page metadata) into an aware UTC datetime, or None.
Resolvers never raise; callers compose them with ``first_resolved`` and treat
None as "order by discovery time".
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, Iterator, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from vartha.text.heuristics import normalize_whitespace

logger = logging.getLogger(__name__)

_MONTH = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?"
    r"|Aug(?:ust)?|Sep(?:tember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)

FREE_TEXT_PATTERNS = [
    re.compile(_MONTH + r"\s+\d{1,2},?\s+\d{4}", re.IGNORECASE),
    re.compile(r"\d{1,2}\s+" + _MONTH + r"\s+\d{4}", re.IGNORECASE),
    re.compile(r"\b\d{4}[-/]\d{2}[-/]\d{2}\b"),
]

_URL_DATE_RE = re.compile(r"(\d{4})[/-](\d{2})[/-](\d{2})")

PUBLISHED_META_SELECTORS = [
    'meta[property="article:published_time"]',
    'meta[property="og:published_time"]',
    'meta[name="pubdate"]',
    'meta[name="publish-date"]',
    'meta[name="publish_date"]',
    'meta[name="date"]',
    'meta[itemprop="datePublished"]',
]

JSONLD_DATE_KEYS = ("datePublished", "dateCreated")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: Optional[datetime]) -> str:
    """Canonical wire form: 2024-03-07T00:00:00.000Z ("" when unknown)."""
    if dt is None:
        return ""
    dt = _as_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a machine-readable timestamp (ISO-8601 or RFC 2822)."""
    if isinstance(value, datetime):
        return _as_utc(value)
    s = str(value or "").strip()
    if not s:
        return None
    try:
        return _as_utc(date_parser.isoparse(s))
    except (ValueError, OverflowError):
        pass
    try:
        return _as_utc(parsedate_to_datetime(s))
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def parse_date_from_free_text(text: Optional[str]) -> Optional[datetime]:
    cleaned = normalize_whitespace(text)
    if not cleaned:
        return None
    for pattern in FREE_TEXT_PATTERNS:
        m = pattern.search(cleaned)
        if not m:
            continue
        try:
            return _as_utc(date_parser.parse(m.group(0)))
        except (ValueError, OverflowError):
            continue
    return None


def parse_date_from_url(url: Optional[str]) -> Optional[datetime]:
    m = _URL_DATE_RE.search(url or "")
    if not m:
        return None
    y, mo, d = (int(g) for g in m.groups())
    try:
        return datetime(y, mo, d, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_date_value(value: Any) -> Optional[datetime]:
    """Direct parse first, then free-text scan of the same value."""
    if not isinstance(value, str):
        return None
    return parse_timestamp(value) or parse_date_from_free_text(value)


def first_resolved(*resolvers: Callable[[], Optional[datetime]]) -> Optional[datetime]:
    for resolve in resolvers:
        found = resolve()
        if found is not None:
            return found
    return None


def _jsonld_nodes(data: Any) -> Iterator[dict]:
    nodes = data if isinstance(data, list) else [data]
    for node in nodes:
        if not isinstance(node, dict):
            continue
        yield node
        graph = node.get("@graph")
        if isinstance(graph, list):
            for sub in graph:
                if isinstance(sub, dict):
                    yield sub


def _jsonld_date_values(node: dict) -> Iterable[Any]:
    for key in JSONLD_DATE_KEYS:
        if node.get(key):
            yield node[key]
    main = node.get("mainEntity")
    if isinstance(main, dict) and main.get("datePublished"):
        yield main["datePublished"]


def _from_meta(soup: BeautifulSoup) -> Optional[datetime]:
    for selector in PUBLISHED_META_SELECTORS:
        tag = soup.select_one(selector)
        content = tag.get("content") if tag else None
        if content:
            found = parse_date_value(content)
            if found:
                return found
    return None


def _from_time_element(soup: BeautifulSoup) -> Optional[datetime]:
    tag = soup.select_one("time[datetime]")
    if tag is None:
        return None
    return parse_date_value(tag.get("datetime") or "")


def _from_jsonld(soup: BeautifulSoup) -> Optional[datetime]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.debug(f"Skipping unparseable JSON-LD block: {e}")
            continue
        for node in _jsonld_nodes(data):
            for value in _jsonld_date_values(node):
                found = parse_date_value(value)
                if found:
                    return found
    return None


def extract_published_time_from_page(html: Optional[str]) -> Optional[datetime]:
    """Publish date from an article page's metadata, time element or JSON-LD."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    return first_resolved(
        lambda: _from_meta(soup),
        lambda: _from_time_element(soup),
        lambda: _from_jsonld(soup),
    )

"""String heuristics used by the feed and HTML extractors.

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Tuple
from urllib.parse import urljoin, urlsplit


# Malayalam Unicode block
TARGET_SCRIPT_RANGE: Tuple[str, str] = ("\u0d00", "\u0d7f")

MIN_HEADLINE_CHARS = 12
MIN_HEADLINE_WORDS = 3
SUMMARY_MAX_CHARS = 200

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")
_SENTENCE_RE = re.compile(r"(.+?[.!?])\s")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def normalize_whitespace(text: Optional[str]) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def strip_html(html: Optional[str]) -> str:
    return normalize_whitespace(_TAG_RE.sub(" ", html or ""))


def contains_target_script(text: Optional[str], script_range: Tuple[str, str] = TARGET_SCRIPT_RANGE) -> bool:
    lo, hi = script_range
    return any(lo <= ch <= hi for ch in (text or ""))


def is_specific_headline(text: Optional[str]) -> bool:
    """Reject navigation labels and short teasers ("More", "Kerala news")."""
    cleaned = normalize_whitespace(text)
    if len(cleaned) < MIN_HEADLINE_CHARS:
        return False
    words = [w for w in cleaned.split(" ") if w]
    return len(words) >= MIN_HEADLINE_WORDS


def first_sentence(text: Optional[str]) -> str:
    cleaned = normalize_whitespace(text)
    if not cleaned:
        return ""
    m = _SENTENCE_RE.match(cleaned)
    if m:
        return m.group(1).strip()
    if len(cleaned) <= SUMMARY_MAX_CHARS:
        return cleaned
    return cleaned[:SUMMARY_MAX_CHARS].strip() + "..."


def _looks_malformed(href: str) -> bool:
    # A colon before the first "/", "?" or "#" must introduce a valid scheme.
    head = re.split(r"[/?#]", href, maxsplit=1)[0]
    return ":" in head and not _SCHEME_RE.match(href)


def to_absolute_url(href: Optional[str], base_url: Optional[str]) -> str:
    """Resolve ``href`` against ``base_url``.

    Returns "" for anything that does not resolve to an http(s) URL with a host.
    """
    ref = (href or "").strip()
    if not ref or _looks_malformed(ref):
        return ""
    try:
        resolved = urljoin(base_url or "", ref)
        parts = urlsplit(resolved)
        host = parts.hostname
    except ValueError:
        return ""
    if parts.scheme.lower() not in ("http", "https") or not host:
        return ""
    return resolved


@lru_cache(maxsize=256)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


def matches_any_pattern(value: str, patterns: Iterable[str]) -> bool:
    return any(_compile(p).search(value or "") for p in patterns or ())

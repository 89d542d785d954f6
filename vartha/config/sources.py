"""Source descriptors.

The descriptor file is JSON shaped like::

    {"sources": [
        {"name": "Mathrubhumi", "type": "rss", "url": "https://...", "enabled": true},
        {"name": "Manorama", "type": "html", "url": "https://...", "enabled": true,
         "maxItems": 12, "includePatterns": ["/news/"], "excludePatterns": ["/video/"],
         "titleExcludeKeywords": ["live"]}
    ]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from vartha.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 12

KIND_FEED = "feed"
KIND_HTML = "html"
_KIND_ALIASES = {"rss": KIND_FEED, "atom": KIND_FEED, "feed": KIND_FEED, "html": KIND_HTML}


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(v) for v in value if str(v).strip())


def _to_bool(v: Any, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v or "").strip().lower()
    if not s:
        return default
    return s in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class SourceConfig:
    name: str
    url: str
    kind: str
    enabled: bool = True
    max_items: int = DEFAULT_MAX_ITEMS
    include_patterns: Tuple[str, ...] = ()
    exclude_patterns: Tuple[str, ...] = ()
    title_exclude_keywords: Tuple[str, ...] = ()

    @property
    def participates(self) -> bool:
        return self.enabled and bool(self.url)

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "SourceConfig":
        raw_kind = str(row.get("kind") or row.get("type") or "").strip().lower()
        try:
            max_items = int(row.get("maxItems") or DEFAULT_MAX_ITEMS)
        except (TypeError, ValueError):
            max_items = DEFAULT_MAX_ITEMS
        url = str(row.get("url") or "").strip()
        return cls(
            name=str(row.get("name") or url).strip(),
            url=url,
            kind=_KIND_ALIASES.get(raw_kind, raw_kind),
            enabled=_to_bool(row.get("enabled"), default=False),
            max_items=max(1, max_items),
            include_patterns=_str_tuple(row.get("includePatterns")),
            exclude_patterns=_str_tuple(row.get("excludePatterns")),
            title_exclude_keywords=_str_tuple(row.get("titleExcludeKeywords")),
        )


def parse_sources(doc: Any) -> List[SourceConfig]:
    """Participating sources from a decoded descriptor document."""
    if not isinstance(doc, dict) or not isinstance(doc.get("sources"), list):
        raise ConfigError("source descriptor must be an object with a 'sources' list")
    out: List[SourceConfig] = []
    for idx, row in enumerate(doc["sources"]):
        if not isinstance(row, dict):
            raise ConfigError(f"sources[{idx}] must be an object")
        source = SourceConfig.from_dict(row)
        if source.participates:
            out.append(source)
    return out


def load_sources(path: Path) -> List[SourceConfig]:
    try:
        doc = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"source descriptor not found: {path}") from e
    except (OSError, ValueError) as e:
        raise ConfigError(f"source descriptor unreadable: {path}: {e}") from e
    return parse_sources(doc)


class SourceRegistry:
    """Holds the descriptor list; re-read once per aggregation pass.

    The initial load is strict (raises ConfigError). Later reloads that fail keep
    the last good list.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._sources: List[SourceConfig] = load_sources(self.path)
        logger.info(f"Loaded {len(self._sources)} enabled sources from {self.path}")

    @property
    def sources(self) -> List[SourceConfig]:
        return list(self._sources)

    def reload(self) -> List[SourceConfig]:
        try:
            self._sources = load_sources(self.path)
        except ConfigError as e:
            logger.warning(f"Keeping previous source list: {e}")
        return self.sources


def static_sources(rows: List[Dict[str, Any]]) -> "StaticSources":
    return StaticSources(parse_sources({"sources": rows}))


class StaticSources:
    """In-memory source list with the same interface as SourceRegistry."""

    def __init__(self, sources: List[SourceConfig], path: Optional[Path] = None):
        self._sources = list(sources)
        self.path = path

    @property
    def sources(self) -> List[SourceConfig]:
        return list(self._sources)

    def reload(self) -> List[SourceConfig]:
        return self.sources

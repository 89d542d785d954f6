"""Process-wide holder of the last aggregation result.

Single writer: only a completed pass replaces the entry, with one assignment,
so readers see either the previous entry or the new one. Concurrent forced
refreshes each run their own pass.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from vartha.ingestion.article_types import CacheEntry, HeadlineItem, SourceFetchResult

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[Tuple[List[HeadlineItem], List[SourceFetchResult]]]]


class CacheGate:
    def __init__(self, refresh_fn: RefreshFn, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.time):
        self._refresh_fn = refresh_fn
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    def read(self) -> Optional[CacheEntry]:
        return self._entry

    def _is_fresh(self, entry: Optional[CacheEntry]) -> bool:
        return entry is not None and (self._clock() - entry.fetched_at) < self.ttl_seconds

    async def refresh(self, force: bool = False) -> Tuple[CacheEntry, bool]:
        """Return ``(entry, cached)``; runs a pass unless a fresh entry exists."""
        entry = self._entry
        if not force and self._is_fresh(entry):
            return entry, True
        items, stats = await self._refresh_fn()
        entry = CacheEntry(fetched_at=self._clock(), items=items, stats=stats)
        self._entry = entry
        logger.info(f"Headline cache replaced ({len(items)} items, force={force})")
        return entry, False

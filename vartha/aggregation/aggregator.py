"""One aggregation pass across every enabled source.

Per source: pending -> fetched -> extracted | failed. Sources run concurrently
and are joined with return_exceptions=True, so one source's failure never
aborts or delays another; it only shows up as an "error" stats entry.

After the join: merge -> normalize dates -> article-page enrichment ->
URL-date fallback -> sort -> recency window -> sort again.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from vartha.config.settings import Settings
from vartha.config.sources import KIND_FEED, KIND_HTML, SourceConfig
from vartha.dates.resolver import parse_date_from_url, parse_date_value
from vartha.enrichment.article_dates import enrich_article_dates
from vartha.errors import FetchError, ParseError
from vartha.ingestion.article_types import HeadlineItem, SourceFetchResult
from vartha.ingestion.feed_adapter import feed_entries_to_items, parse_feed
from vartha.ingestion.fetcher import SourceFetcher
from vartha.ingestion.html_extractor import extract_headlines

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_key(item: HeadlineItem) -> Tuple[int, float]:
    """Dated items first (newest first), then dateless by discovery (newest first)."""
    if item.published_at is not None:
        return (0, -item.published_at.timestamp())
    return (1, -item.discovered_at.timestamp())


def sort_headlines(items: Sequence[HeadlineItem]) -> List[HeadlineItem]:
    return sorted(items, key=sort_key)


def within_window(items: Sequence[HeadlineItem], now: datetime, window: timedelta) -> List[HeadlineItem]:
    cutoff = now - window
    return [it for it in items if it.effective_time() >= cutoff]


class HeadlineAggregator:
    def __init__(
        self,
        sources,
        fetcher_factory: Callable[[], SourceFetcher],
        *,
        source_timeout: float = 12.0,
        recency_window: timedelta = timedelta(hours=24),
        enrich_max_fetch: int = 50,
        enrich_concurrency: int = 6,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.sources = sources
        self.fetcher_factory = fetcher_factory
        self.source_timeout = source_timeout
        self.recency_window = recency_window
        self.enrich_max_fetch = enrich_max_fetch
        self.enrich_concurrency = enrich_concurrency
        self.clock = clock or _utcnow

    @classmethod
    def from_settings(cls, settings: Settings, sources) -> "HeadlineAggregator":
        def fetcher_factory() -> SourceFetcher:
            return SourceFetcher(
                timeout=settings.fetch_timeout_seconds,
                user_agent=settings.user_agent,
                max_bytes=settings.fetch_max_bytes,
            )

        return cls(
            sources,
            fetcher_factory,
            source_timeout=settings.source_timeout_seconds,
            recency_window=timedelta(hours=settings.recency_window_hours),
            enrich_max_fetch=settings.enrich_max_fetch,
            enrich_concurrency=settings.enrich_concurrency,
        )

    async def _collect_source(self, source: SourceConfig, fetcher, discovered_at: datetime) -> List[HeadlineItem]:
        if source.kind == KIND_FEED:
            text = await fetcher.fetch_feed(source.url)
            return feed_entries_to_items(source, parse_feed(text), discovered_at)
        if source.kind == KIND_HTML:
            html = await fetcher.fetch_html(source.url)
            return extract_headlines(source, html, discovered_at)
        raise ParseError(f"unsupported source type {source.kind!r}")

    async def _run_source(self, source: SourceConfig, fetcher, discovered_at: datetime) -> List[HeadlineItem]:
        try:
            return await asyncio.wait_for(
                self._collect_source(source, fetcher, discovered_at),
                timeout=self.source_timeout,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(source.url, f"source timed out after {self.source_timeout:g}s") from e

    async def fetch_all(
        self, sources: Sequence[SourceConfig], fetcher, discovered_at: datetime
    ) -> List[SourceFetchResult]:
        outcomes = await asyncio.gather(
            *(self._run_source(s, fetcher, discovered_at) for s in sources),
            return_exceptions=True,
        )
        results: List[SourceFetchResult] = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Source {source.name} failed: {outcome}")
                results.append(
                    SourceFetchResult(source.name, "error", error_message=str(outcome) or type(outcome).__name__)
                )
            else:
                results.append(SourceFetchResult(source.name, "ok", items=list(outcome)))
        return results

    @staticmethod
    def normalize_dates(items: Sequence[HeadlineItem]) -> None:
        for item in items:
            if item.published_at is not None:
                continue
            if item.published_raw:
                item.fill_published_at(parse_date_value(item.published_raw))
            else:
                item.fill_published_at(parse_date_from_url(item.link))

    async def run(self) -> Tuple[List[HeadlineItem], List[SourceFetchResult]]:
        sources = self.sources.reload()
        discovered_at = self.clock()
        logger.info(f"Aggregation pass started for {len(sources)} sources")

        async with self.fetcher_factory() as fetcher:
            results = await self.fetch_all(sources, fetcher, discovered_at)
            items = [it for r in results if r.ok for it in r.items if it.title]
            self.normalize_dates(items)
            await enrich_article_dates(
                items,
                fetcher,
                max_fetch=self.enrich_max_fetch,
                concurrency=self.enrich_concurrency,
            )

        for item in items:
            if item.published_at is None and item.link:
                item.fill_published_at(parse_date_from_url(item.link))

        ordered = sort_headlines(items)
        recent = sort_headlines(within_window(ordered, self.clock(), self.recency_window))
        failed = sum(1 for r in results if not r.ok)
        logger.info(
            f"Aggregation pass finished: {len(recent)} items kept of {len(items)} "
            f"({len(results) - failed} sources ok, {failed} failed)"
        )
        return recent, results

"""Best-effort publish dates for items whose listing gave none.

Fetches each article page (bounded count, bounded concurrency) and reads its
metadata. A failed fetch or parse leaves that item dateless.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from vartha.concurrency.worker_pool import run_bounded
from vartha.dates.resolver import extract_published_time_from_page
from vartha.ingestion.article_types import HeadlineItem

logger = logging.getLogger(__name__)

MAX_ARTICLE_DATE_FETCH = 50
ARTICLE_DATE_CONCURRENCY = 6


def select_for_enrichment(items: Sequence[HeadlineItem], max_fetch: int) -> List[HeadlineItem]:
    missing = [it for it in items if it.published_at is None and it.link]
    return missing[: max(0, max_fetch)]


async def enrich_article_dates(
    items: Sequence[HeadlineItem],
    fetcher,
    *,
    max_fetch: int = MAX_ARTICLE_DATE_FETCH,
    concurrency: int = ARTICLE_DATE_CONCURRENCY,
) -> int:
    """Fill ``published_at`` in place; returns how many items got a date."""
    todo = select_for_enrichment(items, max_fetch)
    if not todo:
        return 0
    filled = 0

    async def handle(item: HeadlineItem) -> None:
        nonlocal filled
        try:
            html = await fetcher.fetch_html(item.link)
            found = extract_published_time_from_page(html)
        except Exception as e:
            logger.debug(f"date enrichment skipped for {item.link}: {e}")
            return
        if item.fill_published_at(found):
            filled += 1

    await run_bounded(todo, concurrency, handle)
    logger.info(f"Article date enrichment: {filled}/{len(todo)} resolved")
    return filled

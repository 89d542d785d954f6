import asyncio
import unittest
from datetime import datetime, timezone

from fakes import FakeFetcher
from vartha.concurrency.worker_pool import run_bounded
from vartha.enrichment.article_dates import enrich_article_dates, select_for_enrichment
from vartha.ingestion.article_types import HeadlineItem

UTC = timezone.utc
NOW = datetime(2024, 3, 7, 12, 0, tzinfo=UTC)


def _item(n, link=None, published_at=None):
    return HeadlineItem(
        title=f"വാർത്ത നമ്പർ {n} ഇവിടെ",
        link=link if link is not None else f"https://x.test/a/{n}.html",
        source="X",
        discovered_at=NOW,
        published_at=published_at,
    )


def _page(iso):
    return f'<html><head><meta property="article:published_time" content="{iso}"></head></html>'


class TestRunBounded(unittest.IsolatedAsyncioTestCase):
    async def test_concurrency_bound_and_coverage(self):
        in_flight = 0
        peak = 0
        seen = []

        async def handler(n):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            seen.append(n)
            in_flight -= 1

        await run_bounded(range(20), 3, handler)
        self.assertEqual(sorted(seen), list(range(20)))
        self.assertLessEqual(peak, 3)
        self.assertGreater(peak, 1)

    async def test_empty_input(self):
        async def handler(n):
            raise AssertionError("should not run")

        await run_bounded([], 4, handler)

    async def test_handler_errors_propagate(self):
        async def handler(n):
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            await run_bounded([1], 2, handler)


class TestArticleDateEnrichment(unittest.IsolatedAsyncioTestCase):
    async def test_fills_missing_dates_only(self):
        dated = _item(1, published_at=datetime(2024, 3, 1, tzinfo=UTC))
        missing = _item(2)
        no_link = _item(3, link="")
        fetcher = FakeFetcher({
            dated.link: _page("2024-03-07T01:00:00Z"),
            missing.link: _page("2024-03-07T02:00:00Z"),
        })
        filled = await enrich_article_dates([dated, missing, no_link], fetcher)
        self.assertEqual(filled, 1)
        self.assertEqual(fetcher.calls, [missing.link])
        self.assertEqual(dated.published_at, datetime(2024, 3, 1, tzinfo=UTC))
        self.assertEqual(missing.published_at, datetime(2024, 3, 7, 2, tzinfo=UTC))
        self.assertIsNone(no_link.published_at)

    async def test_failures_are_swallowed(self):
        broken = _item(1)
        timed_out = _item(2)
        no_meta = _item(3)
        ok = _item(4)
        fetcher = FakeFetcher(
            {no_meta.link: "<html><body>ഒന്നുമില്ല</body></html>", ok.link: _page("2024-03-07T03:00:00Z")},
            failures={timed_out.link: "timeout"},
        )
        filled = await enrich_article_dates([broken, timed_out, no_meta, ok], fetcher, concurrency=2)
        self.assertEqual(filled, 1)
        self.assertIsNone(broken.published_at)
        self.assertIsNone(timed_out.published_at)
        self.assertIsNone(no_meta.published_at)
        self.assertEqual(ok.published_at, datetime(2024, 3, 7, 3, tzinfo=UTC))

    async def test_total_fetch_cap_in_list_order(self):
        items = [_item(n) for n in range(10)]
        fetcher = FakeFetcher({it.link: _page("2024-03-07T00:00:00Z") for it in items})
        await enrich_article_dates(items, fetcher, max_fetch=4, concurrency=6)
        self.assertEqual(sorted(fetcher.calls), sorted(it.link for it in items[:4]))
        self.assertTrue(all(it.published_at is None for it in items[4:]))

    def test_select_for_enrichment(self):
        items = [_item(1, published_at=NOW), _item(2), _item(3, link=""), _item(4)]
        self.assertEqual([it.link for it in select_for_enrichment(items, 5)], [items[1].link, items[3].link])
        self.assertEqual(select_for_enrichment(items, 0), [])


if __name__ == "__main__":
    unittest.main()

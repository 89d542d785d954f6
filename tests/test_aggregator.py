import unittest
from datetime import datetime, timedelta, timezone

from fakes import FakeFetcher
from vartha.aggregation.aggregator import HeadlineAggregator, sort_headlines, within_window
from vartha.config.sources import static_sources
from vartha.ingestion.article_types import HeadlineItem

UTC = timezone.utc
NOW = datetime(2024, 3, 7, 12, 0, tzinfo=UTC)

FEED_URL = "https://feed.test/rss"
PAGE_URL = "https://page.test/"
DOWN_URL = "https://down.test/rss"

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>t</title><link>https://feed.test/</link>
<item>
  <title>സംസ്ഥാനത്ത് കനത്ത മഴ തുടരുന്നു</title>
  <link>https://feed.test/news/rain.html</link>
  <pubDate>Thu, 07 Mar 2024 10:00:00 GMT</pubDate>
</item>
<item>
  <title>മുഖ്യമന്ത്രി ഇന്ന് ഡൽഹിയിലേക്ക് യാത്ര തിരിക്കും</title>
  <link>https://feed.test/news/cm.html</link>
  <pubDate>Thu, 07 Mar 2024 11:00:00 GMT</pubDate>
</item>
<item>
  <title>പഴയ വാർത്ത ഇപ്പോഴും ഫീഡിൽ കാണാം</title>
  <link>https://feed.test/news/old.html</link>
  <pubDate>Mon, 04 Mar 2024 11:00:00 GMT</pubDate>
</item>
<item>
  <title>തീയതി തെറ്റായ വാർത്ത ഫീഡിൽ ഉണ്ട്</title>
  <link>https://feed.test/news/2024/03/07/bad-date.html</link>
  <pubDate>sometime soon</pubDate>
</item>
</channel></rss>
"""

PAGE = """
<ul>
  <li><a href="/news/assembly.html">നിയമസഭാ സമ്മേളനം നാളെ തുടങ്ങും</a></li>
  <li><a href="/news/gold.html">സ്വർണവില വീണ്ടും റെക്കോർഡ് ഉയരത്തിൽ</a></li>
</ul>
"""

ARTICLE_WITH_DATE = '<meta property="article:published_time" content="2024-03-07T09:30:00Z">'


def _sources(include_down=True, extra=None):
    rows = [
        {"name": "Feed", "type": "rss", "url": FEED_URL, "enabled": True},
        {"name": "Page", "type": "html", "url": PAGE_URL, "enabled": True, "includePatterns": ["/news/"]},
    ]
    if include_down:
        rows.append({"name": "Down", "type": "rss", "url": DOWN_URL, "enabled": True})
    rows.extend(extra or [])
    return static_sources(rows)


def _pages():
    return {
        FEED_URL: RSS,
        PAGE_URL: PAGE,
        "https://page.test/news/assembly.html": ARTICLE_WITH_DATE,
    }


def _aggregator(sources, fetcher, **kwargs):
    return HeadlineAggregator(sources, lambda: fetcher, clock=lambda: NOW, **kwargs)


class TestOrdering(unittest.TestCase):
    def test_dated_before_dateless(self):
        t1 = datetime(2024, 3, 7, 8, tzinfo=UTC)
        t2 = datetime(2024, 3, 7, 9, tzinfo=UTC)
        t3 = datetime(2024, 3, 7, 10, tzinfo=UTC)
        a = HeadlineItem("A", "https://x/a", "s", discovered_at=t1, published_at=t2)
        b = HeadlineItem("B", "https://x/b", "s", discovered_at=t3)
        c = HeadlineItem("C", "https://x/c", "s", discovered_at=t1, published_at=t1)
        self.assertEqual([it.title for it in sort_headlines([b, c, a])], ["A", "C", "B"])

    def test_dateless_by_discovery_desc(self):
        early = HeadlineItem("early", "", "s", discovered_at=NOW - timedelta(minutes=5))
        late = HeadlineItem("late", "", "s", discovered_at=NOW)
        self.assertEqual([it.title for it in sort_headlines([early, late])], ["late", "early"])

    def test_recency_window(self):
        stale = HeadlineItem("stale", "", "s", discovered_at=NOW, published_at=NOW - timedelta(hours=30))
        dateless = HeadlineItem("dateless", "", "s", discovered_at=NOW)
        fresh = HeadlineItem("fresh", "", "s", discovered_at=NOW, published_at=NOW - timedelta(hours=2))
        kept = within_window([stale, dateless, fresh], NOW, timedelta(hours=24))
        self.assertEqual([it.title for it in kept], ["dateless", "fresh"])

    def test_normalize_dates_accepts_free_text_raw_values(self):
        prose = HeadlineItem("prose", "https://x/p", "s", discovered_at=NOW, published_raw="7 March 2024")
        rfc = HeadlineItem("rfc", "https://x/r", "s", discovered_at=NOW, published_raw="Thu, 07 Mar 2024 10:00:00 GMT")
        junk = HeadlineItem("junk", "https://x/2024/03/05/j.html", "s", discovered_at=NOW, published_raw="soon")
        HeadlineAggregator.normalize_dates([prose, rfc, junk])
        self.assertEqual(prose.published_at, datetime(2024, 3, 7, tzinfo=UTC))
        self.assertEqual(rfc.published_at, datetime(2024, 3, 7, 10, tzinfo=UTC))
        self.assertIsNone(junk.published_at)


class TestAggregatorPass(unittest.IsolatedAsyncioTestCase):
    async def test_full_pass(self):
        fetcher = FakeFetcher(_pages(), failures={DOWN_URL: "HTTP 503"})
        items, stats = await _aggregator(_sources(), fetcher).run()

        self.assertEqual(
            [it.title for it in items],
            [
                "മുഖ്യമന്ത്രി ഇന്ന് ഡൽഹിയിലേക്ക് യാത്ര തിരിക്കും",  # 11:00
                "സംസ്ഥാനത്ത് കനത്ത മഴ തുടരുന്നു",  # 10:00
                "നിയമസഭാ സമ്മേളനം നാളെ തുടങ്ങും",  # 09:30 via article page
                "തീയതി തെറ്റായ വാർത്ത ഫീഡിൽ ഉണ്ട്",  # URL date, midnight
                "സ്വർണവില വീണ്ടും റെക്കോർഡ് ഉയരത്തിൽ",  # no date, discovery time
            ],
        )
        by_title = {it.title: it for it in items}
        self.assertEqual(
            by_title["നിയമസഭാ സമ്മേളനം നാളെ തുടങ്ങും"].published_at,
            datetime(2024, 3, 7, 9, 30, tzinfo=UTC),
        )
        self.assertEqual(
            by_title["തീയതി തെറ്റായ വാർത്ത ഫീഡിൽ ഉണ്ട്"].published_at,
            datetime(2024, 3, 7, tzinfo=UTC),
        )
        self.assertIsNone(by_title["സ്വർണവില വീണ്ടും റെക്കോർഡ് ഉയരത്തിൽ"].published_at)

        self.assertEqual([(s.source_name, s.status) for s in stats], [("Feed", "ok"), ("Page", "ok"), ("Down", "error")])
        self.assertEqual(len(stats[0].items), 4)
        self.assertIn("HTTP 503", stats[2].error_message)

    async def test_failing_source_does_not_change_others(self):
        healthy = await _aggregator(_sources(include_down=False), FakeFetcher(_pages())).run()
        degraded = await _aggregator(
            _sources(include_down=True), FakeFetcher(_pages(), failures={DOWN_URL: "HTTP 500"})
        ).run()
        self.assertEqual([it.to_dict() for it in healthy[0]], [it.to_dict() for it in degraded[0]])
        self.assertEqual(degraded[1][-1].status, "error")

    async def test_slow_source_times_out_alone(self):
        fetcher = FakeFetcher(_pages(), delays={PAGE_URL: 1.0})
        items, stats = await _aggregator(_sources(include_down=False), fetcher, source_timeout=0.05).run()
        self.assertEqual([s.status for s in stats], ["ok", "error"])
        self.assertIn("timed out", stats[1].error_message)
        self.assertTrue(all(it.source == "Feed" for it in items))

    async def test_unsupported_kind_is_a_source_error(self):
        extra = [{"name": "Weird", "type": "json", "url": "https://weird.test/", "enabled": True}]
        _, stats = await _aggregator(_sources(include_down=False, extra=extra), FakeFetcher(_pages())).run()
        self.assertEqual(stats[-1].status, "error")
        self.assertIn("unsupported", stats[-1].error_message)

    async def test_malformed_feed_only_drops_that_source(self):
        pages = _pages()
        pages[FEED_URL] = "<rss><channel><item><title>പാതി</title></channel>"
        items, stats = await _aggregator(_sources(include_down=False), FakeFetcher(pages)).run()
        self.assertEqual([s.status for s in stats], ["error", "ok"])
        self.assertEqual({it.source for it in items}, {"Page"})

    async def test_enrichment_respects_cap(self):
        fetcher = FakeFetcher(_pages())
        await _aggregator(_sources(include_down=False), fetcher, enrich_max_fetch=0).run()
        self.assertEqual(fetcher.calls.count("https://page.test/news/assembly.html"), 0)

    async def test_no_sources(self):
        items, stats = await _aggregator(static_sources([]), FakeFetcher({})).run()
        self.assertEqual(items, [])
        self.assertEqual(stats, [])


if __name__ == "__main__":
    unittest.main()

import json
import os
import tempfile
import unittest
from pathlib import Path

from vartha.config.settings import Settings
from vartha.config.sources import SourceConfig, SourceRegistry, load_sources, parse_sources
from vartha.errors import ConfigError


class TestSourceConfig(unittest.TestCase):
    def test_from_dict_maps_descriptor_keys(self):
        s = SourceConfig.from_dict({
            "name": "Manorama",
            "type": "html",
            "url": "https://www.manoramaonline.com/news.html",
            "enabled": True,
            "maxItems": 20,
            "includePatterns": ["/news/"],
            "excludePatterns": ["/video/"],
            "titleExcludeKeywords": ["LIVE"],
        })
        self.assertEqual(s.kind, "html")
        self.assertEqual(s.max_items, 20)
        self.assertEqual(s.include_patterns, ("/news/",))
        self.assertEqual(s.title_exclude_keywords, ("LIVE",))

    def test_rss_alias_and_defaults(self):
        s = SourceConfig.from_dict({"name": "Feed", "type": "rss", "url": "https://x.test/rss", "enabled": True})
        self.assertEqual(s.kind, "feed")
        self.assertEqual(s.max_items, 12)

    def test_only_enabled_sources_with_url_participate(self):
        sources = parse_sources({"sources": [
            {"name": "a", "type": "rss", "url": "https://a.test/rss", "enabled": True},
            {"name": "b", "type": "rss", "url": "https://b.test/rss", "enabled": False},
            {"name": "c", "type": "rss", "url": "", "enabled": True},
            {"name": "d", "type": "html", "url": "https://d.test/"},
        ]})
        self.assertEqual([s.name for s in sources], ["a"])

    def test_malformed_documents(self):
        with self.assertRaises(ConfigError):
            parse_sources([])
        with self.assertRaises(ConfigError):
            parse_sources({"sources": ["nope"]})


class TestSourceFiles(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "sources.json"

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, doc):
        self.path.write_text(json.dumps(doc), encoding="utf-8")

    def test_missing_file_is_config_error(self):
        with self.assertRaises(ConfigError):
            load_sources(self.path)

    def test_invalid_json_is_config_error(self):
        self.path.write_text("{oops", encoding="utf-8")
        with self.assertRaises(ConfigError):
            SourceRegistry(self.path)

    def test_reload_keeps_last_good_list(self):
        self._write({"sources": [{"name": "a", "type": "rss", "url": "https://a.test/rss", "enabled": True}]})
        registry = SourceRegistry(self.path)
        self.path.write_text("{broken", encoding="utf-8")
        self.assertEqual([s.name for s in registry.reload()], ["a"])

    def test_reload_picks_up_changes(self):
        self._write({"sources": []})
        registry = SourceRegistry(self.path)
        self._write({"sources": [{"name": "b", "type": "html", "url": "https://b.test/", "enabled": True}]})
        self.assertEqual([s.name for s in registry.reload()], ["b"])


class TestSettings(unittest.TestCase):
    def setUp(self):
        self._saved = dict(os.environ)

    def tearDown(self):
        os.environ.clear()
        os.environ.update(self._saved)

    def test_env_overrides_and_bad_values(self):
        os.environ["CACHE_TTL_SECONDS"] = "60"
        os.environ["RECENCY_WINDOW_HOURS"] = "12"
        os.environ["FETCH_TIMEOUT_SECONDS"] = "4"
        os.environ["ENRICH_MAX_FETCH"] = "not-a-number"
        os.environ.pop("SOURCE_TIMEOUT_SECONDS", None)
        settings = Settings.from_env(dotenv_path=os.devnull)
        self.assertEqual(settings.cache_ttl_seconds, 60.0)
        self.assertEqual(settings.recency_window_hours, 12.0)
        self.assertEqual(settings.source_timeout_seconds, 6.0)
        self.assertEqual(settings.enrich_max_fetch, 50)


if __name__ == "__main__":
    unittest.main()

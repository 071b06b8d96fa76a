"""Tests for the on-disk ResponseCache."""

import os
import tempfile
import unittest

from news_scraper.cache import ResponseCache


class TestResponseCache(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.cache = ResponseCache(os.path.join(self._tmp.name, "pages"))

    def test_missing_url_returns_none(self):
        self.assertIsNone(self.cache.get("https://example.com/"))

    def test_put_then_get(self):
        self.cache.put("https://example.com/", "<p>hello</p>")
        self.assertEqual(self.cache.get("https://example.com/"), "<p>hello</p>")

    def test_urls_are_kept_apart(self):
        """Each URL gets its own entry; query strings matter."""
        self.cache.put("https://example.com/?page=1", "one")
        self.cache.put("https://example.com/?page=2", "two")
        self.assertEqual(self.cache.get("https://example.com/?page=1"), "one")
        self.assertEqual(self.cache.get("https://example.com/?page=2"), "two")

    def test_overwrite_leaves_no_temp_files(self):
        self.cache.put("https://example.com/", "old")
        self.cache.put("https://example.com/", "new")
        self.assertEqual(self.cache.get("https://example.com/"), "new")
        names = os.listdir(os.path.join(self._tmp.name, "pages"))
        self.assertEqual(len(names), 1)
        self.assertTrue(names[0].endswith(".html"))


if __name__ == "__main__":
    unittest.main()

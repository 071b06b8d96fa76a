"""Tests for ScrapeConfig normalization."""

import unittest

from news_scraper.config import (
    DEFAULT_NEXT_PAGE_SELECTORS,
    DEFAULT_RATE_LIMIT,
    DEFAULT_TIMEOUT_SECS,
    DEFAULT_USER_AGENT,
    DEFAULT_WORKERS,
    ScrapeConfig,
)


class TestScrapeConfig(unittest.TestCase):
    """Verify that bad values fall back to defaults instead of raising."""

    def test_valid_config_is_unchanged(self):
        config = ScrapeConfig(workers=3, timeout_secs=5, rate_limit_per_second=2, user_agent="Bot/2")
        self.assertIs(config.normalized(), config)

    def test_non_positive_values_use_defaults(self):
        config = ScrapeConfig(
            workers=0,
            timeout_secs=-1,
            rate_limit_per_second=0,
            user_agent="   ",
            max_pages=0,
            next_page_selectors=(),
        ).normalized()
        self.assertEqual(config.workers, DEFAULT_WORKERS)
        self.assertEqual(config.timeout_secs, DEFAULT_TIMEOUT_SECS)
        self.assertEqual(config.rate_limit_per_second, DEFAULT_RATE_LIMIT)
        self.assertEqual(config.user_agent, DEFAULT_USER_AGENT)
        self.assertEqual(config.max_pages, 1)
        self.assertEqual(config.next_page_selectors, DEFAULT_NEXT_PAGE_SELECTORS)

    def test_only_invalid_fields_replaced(self):
        config = ScrapeConfig(workers=-3, rate_limit_per_second=7, cache_dir="/tmp/cache").normalized()
        self.assertEqual(config.workers, DEFAULT_WORKERS)
        self.assertEqual(config.rate_limit_per_second, 7)
        self.assertEqual(config.cache_dir, "/tmp/cache")


if __name__ == "__main__":
    unittest.main()

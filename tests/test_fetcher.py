"""Tests for PageFetcher: HTTP handling, pagination, domain confinement and caching."""

import tempfile
import unittest
from unittest import mock

import requests

from news_scraper.cache import ResponseCache
from news_scraper.cancellation import CancellationToken
from news_scraper.errors import (
    DomainViolation,
    FetchError,
    FetchTimeout,
    ScrapeCancelled,
    UnexpectedStatus,
)
from news_scraper.fetcher import PageFetcher, extract_domain
from news_scraper.rate_limiter import RateLimiter


def _response(text: str = "<html></html>", status_code: int = 200, url: str = "") -> mock.Mock:
    """Helper to build a requests-like response object."""
    resp = mock.Mock()
    resp.status_code = status_code
    resp.text = text
    resp.url = url
    return resp


def _page(body: str, next_href: str = "") -> str:
    link = f'<a rel="next" href="{next_href}">Next</a>' if next_href else ""
    return f"<html><body>{body}{link}</body></html>"


class TestExtractDomain(unittest.TestCase):
    """Verify host extraction used for domain confinement."""

    def test_strips_scheme_path_and_port(self):
        self.assertEqual(extract_domain("https://TechCrunch.com:8443/news?x=1"), "techcrunch.com")

    def test_empty_for_relative(self):
        self.assertEqual(extract_domain("/just/a/path"), "")


class TestPageFetcherFetch(unittest.TestCase):
    """Verify single-page fetch behaviour."""

    def setUp(self):
        self.limiter = mock.Mock(spec=RateLimiter)
        self.fetcher = PageFetcher(self.limiter, user_agent="TestBot/1.0", timeout=5.0)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_sends_user_agent_and_timeout(self, mock_get):
        """The GET carries the identifying header and the per-request timeout."""
        mock_get.return_value = _response("<h1>Hi</h1>", url="https://example.com/")
        page = self.fetcher.fetch("https://example.com/")
        mock_get.assert_called_once_with(
            "https://example.com/", headers={"User-Agent": "TestBot/1.0"}, timeout=5.0
        )
        self.assertEqual(page.status_code, 200)
        self.assertEqual(page.document.h1.get_text(), "Hi")
        self.limiter.acquire.assert_called_once()

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_non_success_status_raises(self, mock_get):
        """Any non-2xx status is a fetch failure carrying the code."""
        mock_get.return_value = _response(status_code=503, url="https://example.com/")
        with self.assertRaises(UnexpectedStatus) as ctx:
            self.fetcher.fetch("https://example.com/")
        self.assertEqual(ctx.exception.status_code, 503)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_timeout_is_wrapped(self, mock_get):
        """A requests timeout surfaces as FetchTimeout."""
        mock_get.side_effect = requests.Timeout("slow")
        with self.assertRaises(FetchTimeout):
            self.fetcher.fetch("https://example.com/")

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_connection_error_is_wrapped(self, mock_get):
        """Transport failures surface as FetchError."""
        mock_get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(FetchError) as ctx:
            self.fetcher.fetch("https://example.com/")
        self.assertNotIsInstance(ctx.exception, FetchTimeout)
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_off_domain_request_is_rejected(self, mock_get):
        """Asking for a URL outside the allowed domain never hits the network."""
        with self.assertRaises(DomainViolation):
            self.fetcher.fetch("https://evil.test/page", allowed_domain="example.com")
        mock_get.assert_not_called()
        self.limiter.acquire.assert_not_called()

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_off_domain_redirect_is_rejected(self, mock_get):
        """A redirect that lands on another domain is a domain violation."""
        mock_get.return_value = _response(url="https://elsewhere.test/landing")
        with self.assertRaises(DomainViolation):
            self.fetcher.fetch("https://example.com/")

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_cancelled_run_skips_request(self, mock_get):
        """With a real limiter, a cancelled token stops the fetch before the GET."""
        cancel = CancellationToken()
        cancel.cancel()
        with RateLimiter(qps=10.0) as limiter:
            fetcher = PageFetcher(limiter, user_agent="TestBot/1.0")
            with self.assertRaises(ScrapeCancelled):
                fetcher.fetch("https://example.com/", cancel)
        mock_get.assert_not_called()

    @mock.patch("news_scraper.fetcher.time")
    @mock.patch("news_scraper.fetcher.requests.get")
    def test_slow_response_exceeds_overall_timeout(self, mock_get, mock_time):
        """A body that trickles in past the limit is a timeout even without a read timeout."""
        mock_get.return_value = _response(url="https://example.com/")
        mock_time.monotonic.side_effect = [100.0, 107.5]
        with self.assertRaises(FetchTimeout):
            self.fetcher.fetch("https://example.com/")

    @mock.patch("news_scraper.fetcher.requests.get")
    @mock.patch("news_scraper.fetcher.curl_requests.get")
    def test_impersonation_uses_curl_cffi(self, mock_curl_get, mock_get):
        """An impersonation profile routes the request through curl_cffi."""
        mock_curl_get.return_value = _response(url="https://example.com/")
        fetcher = PageFetcher(self.limiter, user_agent="TestBot/1.0", timeout=7.0, impersonate="chrome120")
        fetcher.fetch("https://example.com/")
        mock_curl_get.assert_called_once_with(
            "https://example.com/",
            headers={"User-Agent": "TestBot/1.0"},
            timeout=7.0,
            impersonate="chrome120",
        )
        mock_get.assert_not_called()


class TestPageFetcherPagination(unittest.TestCase):
    """Verify the next-page loop."""

    def setUp(self):
        self.limiter = mock.Mock(spec=RateLimiter)
        self.pages = {
            "https://example.com/": _page("<p>1</p>", "/page/2"),
            "https://example.com/page/2": _page("<p>2</p>", "/page/3"),
            "https://example.com/page/3": _page("<p>3</p>"),
        }

    def _get(self, url, headers=None, timeout=None):
        if url not in self.pages:
            return _response(status_code=404, url=url)
        return _response(self.pages[url], url=url)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_single_page_by_default(self, mock_get):
        """Without a page budget only the base page is fetched."""
        mock_get.side_effect = self._get
        pages = PageFetcher(self.limiter, "TestBot/1.0").fetch_pages("https://example.com/")
        self.assertEqual([p.url for p in pages], ["https://example.com/"])

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_budget_limits_pages(self, mock_get):
        """Pagination stops once the page budget is spent."""
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=2)
        pages = fetcher.fetch_pages("https://example.com/")
        self.assertEqual([p.url for p in pages], ["https://example.com/", "https://example.com/page/2"])
        self.assertEqual(self.limiter.acquire.call_count, 2)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_stops_when_no_next_link(self, mock_get):
        """A page without a next link ends pagination early."""
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=10)
        pages = fetcher.fetch_pages("https://example.com/")
        self.assertEqual(len(pages), 3)
        self.assertEqual(self.limiter.acquire.call_count, 3)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_cross_domain_next_link_not_followed(self, mock_get):
        """A next link to another domain is rejected, earlier pages are kept."""
        self.pages["https://example.com/"] = _page("<p>1</p>", "https://other.test/page/2")
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=5)
        pages = fetcher.fetch_pages("https://example.com/")
        self.assertEqual([p.url for p in pages], ["https://example.com/"])
        self.assertEqual(mock_get.call_count, 1)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_self_link_does_not_loop(self, mock_get):
        """A next link back to a visited page ends pagination."""
        self.pages["https://example.com/"] = _page("<p>1</p>", "/")
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=5)
        self.assertEqual(len(fetcher.fetch_pages("https://example.com/")), 1)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_custom_next_page_selector(self, mock_get):
        """Sites with their own pager markup can supply a selector."""
        self.pages["https://example.com/"] = (
            '<html><body><nav class="pager"><a href="/page/2">older</a></nav></body></html>'
        )
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=2, next_page_selectors=["nav.pager a"])
        pages = fetcher.fetch_pages("https://example.com/")
        self.assertEqual(pages[-1].url, "https://example.com/page/2")

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_failing_later_page_raises(self, mock_get):
        """An error on any page propagates; no partial page list is returned."""
        del self.pages["https://example.com/page/2"]
        mock_get.side_effect = self._get
        fetcher = PageFetcher(self.limiter, "TestBot/1.0", max_pages=3)
        with self.assertRaises(UnexpectedStatus):
            fetcher.fetch_pages("https://example.com/")


class TestPageFetcherCache(unittest.TestCase):
    """Verify the optional on-disk response cache."""

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_cache_hit_skips_network_and_token(self, mock_get):
        """A cached page is served without a request or a rate-limit token."""
        mock_get.return_value = _response("<h1>Cached</h1>", url="https://example.com/")
        limiter = mock.Mock(spec=RateLimiter)
        with tempfile.TemporaryDirectory() as tmp:
            fetcher = PageFetcher(limiter, "TestBot/1.0", cache=ResponseCache(tmp))
            first = fetcher.fetch("https://example.com/")
            second = fetcher.fetch("https://example.com/")
        self.assertFalse(first.from_cache)
        self.assertTrue(second.from_cache)
        self.assertEqual(second.document.h1.get_text(), "Cached")
        self.assertEqual(mock_get.call_count, 1)
        self.assertEqual(limiter.acquire.call_count, 1)

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_cache_hit_respects_cancellation(self, mock_get):
        """A cancelled token stops the fetch even when the page is cached."""
        with tempfile.TemporaryDirectory() as tmp:
            cache = ResponseCache(tmp)
            cache.put("https://example.com/", "<h1>Cached</h1>")
            fetcher = PageFetcher(mock.Mock(spec=RateLimiter), "TestBot/1.0", cache=cache)
            cancel = CancellationToken()
            cancel.cancel()
            with self.assertRaises(ScrapeCancelled):
                fetcher.fetch("https://example.com/", cancel)
        mock_get.assert_not_called()

    @mock.patch("news_scraper.fetcher.requests.get")
    def test_failed_response_not_cached(self, mock_get):
        """Error responses are not written to the cache."""
        mock_get.return_value = _response(status_code=500, url="https://example.com/")
        with tempfile.TemporaryDirectory() as tmp:
            cache = ResponseCache(tmp)
            fetcher = PageFetcher(mock.Mock(spec=RateLimiter), "TestBot/1.0", cache=cache)
            with self.assertRaises(UnexpectedStatus):
                fetcher.fetch("https://example.com/")
            self.assertIsNone(cache.get("https://example.com/"))


if __name__ == "__main__":
    unittest.main()

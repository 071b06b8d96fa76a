from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

import requests
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests
from curl_cffi.requests import exceptions as curl_exceptions

from .cache import ResponseCache
from .cancellation import CancellationToken
from .config import DEFAULT_NEXT_PAGE_SELECTORS
from .errors import DocumentParseError, DomainViolation, FetchError, FetchTimeout, UnexpectedStatus
from .extractor import resolve_url
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def extract_domain(url: str) -> str:
    """Host part of ``url``, lower-cased and without port ("" if there is none)."""
    return (urlsplit(url).hostname or "").lower()


@dataclass(frozen=True)
class FetchedPage:
    url: str
    final_url: str
    status_code: int
    latency_ms: int
    document: BeautifulSoup
    from_cache: bool = False


class PageFetcher:
    """Fetches and parses source pages, one rate-limited GET at a time.

    Every network request first takes a token from the shared RateLimiter.
    Requests are confined to the domain of the page they start from; the
    optional ResponseCache short-circuits both the token and the request.
    When ``impersonate`` is set (e.g. "chrome120") requests go through
    curl_cffi with that browser fingerprint instead of plain requests.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        user_agent: str,
        timeout: float = 30.0,
        max_pages: int = 1,
        next_page_selectors: Iterable[str] = DEFAULT_NEXT_PAGE_SELECTORS,
        cache: Optional[ResponseCache] = None,
        impersonate: Optional[str] = None,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_pages = max(1, max_pages)
        self._next_page_selectors = tuple(next_page_selectors)
        self._cache = cache
        self._impersonate = impersonate

    def fetch(
        self,
        url: str,
        cancel: Optional[CancellationToken] = None,
        allowed_domain: Optional[str] = None,
    ) -> FetchedPage:
        """Fetch a single page and parse it into a document tree."""
        allowed = allowed_domain if allowed_domain is not None else extract_domain(url)
        if not allowed:
            raise FetchError(f"cannot derive a domain from {url!r}", url=url)
        self._check_domain(url, allowed)
        if cancel is not None:
            cancel.raise_if_cancelled()

        if self._cache is not None:
            body = self._cache.get(url)
            if body is not None:
                logger.debug("cache hit for %s", url)
                return FetchedPage(
                    url=url,
                    final_url=url,
                    status_code=200,
                    latency_ms=0,
                    document=self._parse(body, url),
                    from_cache=True,
                )

        self._rate_limiter.acquire(cancel)
        logger.info("visiting %s", url)
        start = time.monotonic()
        response = self._get(url)
        elapsed = time.monotonic() - start
        latency_ms = int(elapsed * 1000)
        # requests bounds each connect and read, not the whole exchange.
        if self._timeout and elapsed > self._timeout:
            raise FetchTimeout(f"took {elapsed:.1f}s fetching {url}, limit is {self._timeout}s", url=url)

        final_url = str(getattr(response, "url", None) or url)
        self._check_domain(final_url, allowed)

        status_code = int(response.status_code)
        if not 200 <= status_code < 300:
            raise UnexpectedStatus(status_code, url=url)

        body = response.text
        logger.debug("response from %s: %d bytes in %d ms", url, len(body), latency_ms)
        document = self._parse(body, url)
        if self._cache is not None:
            self._cache.put(url, body)
        return FetchedPage(
            url=url,
            final_url=final_url,
            status_code=status_code,
            latency_ms=latency_ms,
            document=document,
        )

    def fetch_pages(self, base_url: str, cancel: Optional[CancellationToken] = None) -> List[FetchedPage]:
        """Fetch ``base_url`` and follow next-page links up to the page budget.

        Any failing page raises; callers get either every page or an error.
        A next-page link to another domain is not followed.
        """
        allowed = extract_domain(base_url)
        pages: List[FetchedPage] = []
        visited = set()
        url: Optional[str] = base_url

        while url is not None:
            page = self.fetch(url, cancel, allowed_domain=allowed)
            pages.append(page)
            visited.add(url)
            if len(pages) >= self._max_pages:
                break

            next_url = self._next_page_url(page)
            if next_url is None or next_url in visited:
                break
            if extract_domain(next_url) != allowed:
                logger.warning("not following %s: outside %s", next_url, allowed)
                break
            logger.info("following to page %d: %s", len(pages) + 1, next_url)
            url = next_url

        return pages

    def _get(self, url: str) -> Any:
        headers = {"User-Agent": self._user_agent}
        try:
            if self._impersonate:
                return curl_requests.get(
                    url,
                    headers=headers,
                    timeout=self._timeout,
                    impersonate=self._impersonate,
                )
            return requests.get(url, headers=headers, timeout=self._timeout)
        except (requests.Timeout, curl_exceptions.Timeout) as exc:
            raise FetchTimeout(f"timed out after {self._timeout}s fetching {url}", url=url) from exc
        except (requests.RequestException, curl_exceptions.RequestException) as exc:
            raise FetchError(f"failed to fetch {url}: {exc}", url=url) from exc

    def _next_page_url(self, page: FetchedPage) -> Optional[str]:
        for selector in self._next_page_selectors:
            for link in page.document.select(selector):
                href = link.get("href")
                if href:
                    return resolve_url(page.final_url, href)
        return None

    @staticmethod
    def _check_domain(url: str, allowed: str) -> None:
        if extract_domain(url) != allowed:
            raise DomainViolation(url, allowed)

    @staticmethod
    def _parse(body: str, url: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(body, "html.parser")
        except Exception as exc:  # noqa: BLE001
            raise DocumentParseError(f"could not parse {url}: {exc}", url=url) from exc

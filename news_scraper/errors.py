from __future__ import annotations

from typing import Optional


class ScraperError(Exception):
    """Base class for all errors raised by the scraping engine."""


class SourceListUnavailable(ScraperError):
    """The source registry could not provide the list of active sources.

    This is the only error that aborts a whole run.
    """


class ScrapeCancelled(ScraperError):
    """The run's cancellation token fired before the operation could start."""


class FetchError(ScraperError):
    """A page could not be fetched or parsed; fatal to one source only."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class FetchTimeout(FetchError):
    pass


class UnexpectedStatus(FetchError):
    def __init__(self, status_code: int, url: Optional[str] = None) -> None:
        super().__init__(f"unexpected HTTP status {status_code} for {url}", url=url)
        self.status_code = status_code


class DocumentParseError(FetchError):
    pass


class DomainViolation(FetchError):
    def __init__(self, url: str, allowed_domain: str) -> None:
        super().__init__(f"{url} is outside allowed domain {allowed_domain!r}", url=url)
        self.allowed_domain = allowed_domain


class StorageError(ScraperError):
    """A persistence call failed; fatal to one article only."""

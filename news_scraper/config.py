from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 5
DEFAULT_TIMEOUT_SECS = 30.0
DEFAULT_RATE_LIMIT = 10.0
DEFAULT_USER_AGENT = "NewsScraperBot/1.0 (+https://github.com/news-scraper)"
DEFAULT_MAX_PAGES = 1
DEFAULT_NEXT_PAGE_SELECTORS: Tuple[str, ...] = (
    "a[rel='next']",
    "a.next",
    "a.pagination-next",
    ".next-page a",
)


@dataclass(frozen=True)
class ScrapeConfig:
    """Knobs for one scrape run.

    Values come from outside (CLI flags, a scheduler, an HTTP handler) and are
    only validated loosely: normalized() swaps anything non-positive or empty
    for the default instead of raising.
    """

    workers: int = DEFAULT_WORKERS
    timeout_secs: float = DEFAULT_TIMEOUT_SECS
    rate_limit_per_second: float = DEFAULT_RATE_LIMIT
    user_agent: str = DEFAULT_USER_AGENT
    max_pages: int = DEFAULT_MAX_PAGES
    next_page_selectors: Tuple[str, ...] = DEFAULT_NEXT_PAGE_SELECTORS
    cache_dir: Optional[str] = None
    impersonate: Optional[str] = None

    def normalized(self) -> "ScrapeConfig":
        fixed = {}
        if not self.workers or self.workers <= 0:
            fixed["workers"] = DEFAULT_WORKERS
        if not self.timeout_secs or self.timeout_secs <= 0:
            fixed["timeout_secs"] = DEFAULT_TIMEOUT_SECS
        if not self.rate_limit_per_second or self.rate_limit_per_second <= 0:
            fixed["rate_limit_per_second"] = DEFAULT_RATE_LIMIT
        if not self.user_agent or not self.user_agent.strip():
            fixed["user_agent"] = DEFAULT_USER_AGENT
        if not self.max_pages or self.max_pages <= 0:
            fixed["max_pages"] = DEFAULT_MAX_PAGES
        if not self.next_page_selectors:
            fixed["next_page_selectors"] = DEFAULT_NEXT_PAGE_SELECTORS
        if not fixed:
            return self
        logger.warning("invalid scrape settings replaced with defaults: %s", fixed)
        return replace(self, **fixed)

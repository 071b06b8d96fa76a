"""Concurrent news scraping engine.

Fetches listing pages for a set of configured news sources, extracts
article records with per-source CSS selectors, tags each one with a topical
category and upserts it into an article store keyed by URL.

Key modules:
    orchestrator -- ScrapeOrchestrator worker pool and run_all() entry point
    fetcher      -- PageFetcher for rate-limited, domain-confined page fetches
    extractor    -- ArticleExtractor and URL resolution
    classifier   -- ordered keyword rules for article categories
    rate_limiter -- RateLimiter token bucket shared by a run's workers
    cache        -- ResponseCache on-disk page cache
    storage      -- SourceRegistry / ArticleSink interfaces, SqliteRepository
    metrics      -- MetricsCollector for per-source run statistics
    config       -- ScrapeConfig and its defaults
    models       -- Source, ScrapedArticle, ScrapeOutcome and friends
    errors       -- ScraperError hierarchy
"""
from __future__ import annotations

from .cancellation import CancellationToken
from .config import ScrapeConfig
from .models import CategorizedArticle, ScrapedArticle, ScrapeOutcome, Source, SourceResult
from .orchestrator import ScrapeOrchestrator, run_all

__all__ = [
    "CancellationToken",
    "CategorizedArticle",
    "ScrapeConfig",
    "ScrapeOrchestrator",
    "ScrapeOutcome",
    "ScrapedArticle",
    "Source",
    "SourceResult",
    "run_all",
]

from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from news_scraper.config import (
    DEFAULT_MAX_PAGES,
    DEFAULT_RATE_LIMIT,
    DEFAULT_TIMEOUT_SECS,
    DEFAULT_USER_AGENT,
    DEFAULT_WORKERS,
    ScrapeConfig,
)
from news_scraper.errors import SourceListUnavailable
from news_scraper.metrics import MetricsCollector
from news_scraper.orchestrator import ScrapeOrchestrator
from news_scraper.storage import SqliteRepository

DEFAULT_DB_PATH = "news.db"

logger = logging.getLogger("news_scraper.main")


def _load_sources(path: str) -> list[dict]:
    """Read source definitions from a JSON file (a list of objects)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of sources")
    sources: list[dict] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"source #{i} in {path} must be a JSON object")
        for key in ("name", "url", "selector_title"):
            if not item.get(key):
                raise ValueError(f"source #{i} in {path} is missing {key!r}")
        sources.append(item)
    return sources


def seed_sources(repo: SqliteRepository, path: str) -> int:
    """Add sources from ``path`` that the repository does not know yet (by URL)."""
    known = {s.base_url for s in repo.all_sources()}
    added = 0
    for item in _load_sources(path):
        if item["url"] in known:
            continue
        repo.add_source(
            name=item["name"],
            base_url=item["url"],
            title_selector=item["selector_title"],
            link_selector=item.get("selector_link", ""),
            summary_selector=item.get("selector_summary", ""),
            default_category=item.get("default_category", ""),
            active=bool(item.get("active", True)),
        )
        added += 1
    return added


def run_scrape(
    db_path: str,
    sources_path: Optional[str],
    config: ScrapeConfig,
    show: int,
    clear: bool,
) -> int:
    repo = SqliteRepository(db_path)
    try:
        if clear:
            repo.clear_articles()
        if sources_path:
            added = seed_sources(repo, sources_path)
            logger.info("seeded %d new sources from %s", added, sources_path)

        metrics = MetricsCollector()
        orchestrator = ScrapeOrchestrator(repo, repo, config=config, metrics=metrics)
        try:
            outcome = orchestrator.run_all()
        except SourceListUnavailable as exc:
            logger.error("scrape aborted: %s", exc)
            return 1

        for result in sorted(outcome.results.values(), key=lambda r: r.source_id):
            print(
                f"source={result.source_name} success={result.success} status={result.status_code} "
                f"pages={result.pages_fetched} found={result.articles_found} saved={result.articles_saved} "
                f"latency_ms={result.latency_ms} error={result.error_type}"
            )
        print(
            f"\nDONE: success={outcome.succeeded} fail={outcome.failed} "
            f"total={outcome.sources_attempted} articles_saved={outcome.articles_saved}"
        )
        snap = metrics.snapshot(window_secs=int(outcome.duration_secs) + 1)
        print(
            f"timeouts={snap.timeout_count} http_403={snap.http_403_count} http_429={snap.http_429_count} "
            f"avg_latency_ms={snap.avg_latency_ms:.0f}"
        )

        if show > 0:
            print()
            for article in repo.recent_articles(limit=show):
                print(f"[{article.category or '-'}] {article.title} <{article.url}> ({article.source_name})")
        return 0
    finally:
        repo.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Scrape news sources into a local SQLite database")

    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database path")
    parser.add_argument("--sources", default=None, help="JSON file with sources to add before scraping")

    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Number of concurrent workers")
    parser.add_argument("--qps", type=float, default=DEFAULT_RATE_LIMIT, help="Global requests-per-second limit")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECS, help="Per-request timeout in seconds")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header sent with requests")
    parser.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES, help="Pages to follow per source")
    parser.add_argument("--cache-dir", default=None, help="Directory for the on-disk response cache")
    parser.add_argument("--impersonate", default=None, help="curl_cffi browser profile, e.g. chrome120")

    parser.add_argument("--show", type=int, default=10, help="Print this many recent articles afterwards")
    parser.add_argument("--clear", action="store_true", help="Delete stored articles before scraping")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ScrapeConfig(
        workers=args.workers,
        timeout_secs=args.timeout,
        rate_limit_per_second=args.qps,
        user_agent=args.user_agent,
        max_pages=args.max_pages,
        cache_dir=args.cache_dir,
        impersonate=args.impersonate,
    )
    return run_scrape(args.db, args.sources, config, show=args.show, clear=args.clear)


if __name__ == "__main__":
    raise SystemExit(main())

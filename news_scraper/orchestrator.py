from __future__ import annotations

import enum
import json
import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional, Tuple

from .cache import ResponseCache
from .cancellation import CancellationToken
from .classifier import classify
from .config import ScrapeConfig
from .errors import ScrapeCancelled, SourceListUnavailable, UnexpectedStatus
from .extractor import ArticleExtractor
from .fetcher import PageFetcher
from .metrics import MetricsCollector
from .models import CategorizedArticle, ScrapedArticle, ScrapeOutcome, Source, SourceResult
from .rate_limiter import RateLimiter
from .storage import ArticleSink, SourceRegistry

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    FETCHING_SOURCES = "fetching_sources"
    DISPATCHING = "dispatching"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class ScrapeOrchestrator:
    """Runs one scrape across all active sources with a fixed pool of workers.

    Each run asks the registry for sources, puts them on a job queue and
    starts exactly ``config.workers`` threads. A worker takes one source at a
    time and runs rate-limit -> fetch -> extract -> classify -> save for it.
    Failures stay local: a fetch error costs one source, a save error costs
    one article, and the run itself only fails when the source list cannot
    be loaded.

    Every call to run_all() is an independent run with its own rate limiter;
    nothing stops two runs from overlapping.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        sink: ArticleSink,
        config: Optional[ScrapeConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        extractor: Optional[ArticleExtractor] = None,
    ) -> None:
        self._registry = registry
        self._sink = sink
        self._config = (config or ScrapeConfig()).normalized()
        self._metrics = metrics
        self._extractor = extractor or ArticleExtractor()
        self._cache = ResponseCache(self._config.cache_dir) if self._config.cache_dir else None
        self._state = RunState.IDLE
        self._state_lock = threading.Lock()

    @property
    def config(self) -> ScrapeConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    def run_all(self, cancel: Optional[CancellationToken] = None) -> ScrapeOutcome:
        cancel = cancel or CancellationToken()
        outcome = ScrapeOutcome(started_at=time.time())

        self._set_state(RunState.FETCHING_SOURCES)
        try:
            sources = self._registry.active_sources(cancel)
        except Exception as exc:  # noqa: BLE001
            self._set_state(RunState.DONE)
            raise SourceListUnavailable(f"failed to get sources: {exc}") from exc

        outcome.sources_attempted = len(sources)
        workers = self._config.workers
        logger.info("starting scrape of %d sources with %d workers", len(sources), workers)

        self._set_state(RunState.DISPATCHING)
        # Room for every source plus one stop marker per worker, so the
        # dispatch loop never blocks.
        jobs: "queue.Queue[Optional[Source]]" = queue.Queue(maxsize=len(sources) + workers)
        results: "queue.Queue[Tuple[Source, SourceResult, Optional[Exception]]]" = queue.Queue(
            maxsize=len(sources)
        )

        with RateLimiter(self._config.rate_limit_per_second) as rate_limiter:
            fetcher = PageFetcher(
                rate_limiter=rate_limiter,
                user_agent=self._config.user_agent,
                timeout=self._config.timeout_secs,
                max_pages=self._config.max_pages,
                next_page_selectors=self._config.next_page_selectors,
                cache=self._cache,
                impersonate=self._config.impersonate,
            )
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrape-worker") as executor:
                futures = [
                    executor.submit(self._worker, worker_id, jobs, results, fetcher, cancel)
                    for worker_id in range(workers)
                ]
                self._set_state(RunState.RUNNING)
                for source in sources:
                    jobs.put(source)
                for _ in range(workers):
                    jobs.put(None)
                wait(futures)
                for future in futures:
                    exc = future.exception()
                    if exc is not None:
                        logger.error("scrape worker stopped: %s", exc)

        self._set_state(RunState.DRAINING)
        while True:
            try:
                source, result, error = results.get_nowait()
            except queue.Empty:
                break
            outcome.results[source.id] = result
            if error is not None:
                outcome.errors[source.id] = error

        outcome.finished_at = time.time()
        self._set_state(RunState.DONE)
        self._log_summary(outcome)
        return outcome

    def run_in_background(self, cancel: Optional[CancellationToken] = None) -> "Future[ScrapeOutcome]":
        """Start run_all() on a daemon thread and return a Future for its outcome.

        The run does not share the caller's lifetime: it keeps going after the
        caller returns unless ``cancel`` is fired.
        """
        future: "Future[ScrapeOutcome]" = Future()

        def _target() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.run_all(cancel))
            except Exception as exc:  # noqa: BLE001
                logger.error("background scrape failed: %s", exc)
                future.set_exception(exc)

        threading.Thread(target=_target, name="scrape-run", daemon=True).start()
        return future

    def _worker(
        self,
        worker_id: int,
        jobs: "queue.Queue[Optional[Source]]",
        results: "queue.Queue[Tuple[Source, SourceResult, Optional[Exception]]]",
        fetcher: PageFetcher,
        cancel: CancellationToken,
    ) -> None:
        while True:
            source = jobs.get()
            if source is None:
                return
            logger.info("worker %d: scraping %s", worker_id, source.name)
            start_ms = self._now_ms()
            try:
                result = self._scrape_source(source, fetcher, cancel)
                error = None
            except Exception as exc:  # noqa: BLE001
                logger.warning("worker %d: error scraping %s: %s", worker_id, source.name, exc)
                error = exc
                result = SourceResult(
                    source_id=source.id,
                    source_name=source.name,
                    success=False,
                    status_code=exc.status_code if isinstance(exc, UnexpectedStatus) else None,
                    latency_ms=self._now_ms() - start_ms,
                    error_type=type(exc).__name__,
                )
            results.put((source, result, error))
            if self._metrics:
                try:
                    self._metrics.record_result(result)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("worker %d: could not record metrics for %s: %s", worker_id, source.name, exc)

    def _scrape_source(self, source: Source, fetcher: PageFetcher, cancel: CancellationToken) -> SourceResult:
        """Fetch every page of one source, then classify and save what was found.

        All pages are fetched before anything is saved, so a failing fetch
        leaves no partial article set behind.
        """
        start_ms = self._now_ms()
        pages = fetcher.fetch_pages(source.base_url, cancel)

        scraped: List[ScrapedArticle] = []
        for page in pages:
            scraped.extend(
                self._extractor.extract(
                    page.document,
                    page.final_url,
                    source.title_selector,
                    source.link_selector,
                    source.summary_selector,
                )
            )
        logger.info("found %d articles from %s", len(scraped), source.name)

        saved = 0
        for article in scraped:
            categorized = CategorizedArticle.from_scraped(
                article,
                classify(article.title, article.summary, article.url, source.default_category),
            )
            try:
                self._sink.save(categorized, source, cancel)
            except ScrapeCancelled:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("failed to save article %s: %s", article.url, exc)
                continue
            saved += 1

        return SourceResult(
            source_id=source.id,
            source_name=source.name,
            success=True,
            status_code=pages[0].status_code if pages else None,
            latency_ms=self._now_ms() - start_ms,
            pages_fetched=len(pages),
            articles_found=len(scraped),
            articles_saved=saved,
        )

    def _set_state(self, state: RunState) -> None:
        with self._state_lock:
            old, self._state = self._state, state
        logger.debug("scrape run state %s -> %s", old.value, state.value)

    @staticmethod
    def _log_summary(outcome: ScrapeOutcome) -> None:
        log = {
            "timestamp": outcome.finished_at,
            "event": "scrape_completed",
            "sources_attempted": outcome.sources_attempted,
            "succeeded": outcome.succeeded,
            "failed": outcome.failed,
            "articles_saved": outcome.articles_saved,
            "duration_secs": round(outcome.duration_secs, 3),
            "errors": {str(sid): f"{type(e).__name__}: {e}" for sid, e in outcome.errors.items()},
        }
        if outcome.errors:
            logger.warning(json.dumps(log, ensure_ascii=False))
        else:
            logger.info(json.dumps(log, ensure_ascii=False))

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)


def run_all(
    registry: SourceRegistry,
    sink: ArticleSink,
    pool_size: int,
    rate_limit_per_second: float,
    per_request_timeout: float,
    user_agent: str,
    cancel: Optional[CancellationToken] = None,
    metrics: Optional[MetricsCollector] = None,
) -> ScrapeOutcome:
    """Run one scrape with the given settings; non-positive values use defaults."""
    config = ScrapeConfig(
        workers=pool_size,
        timeout_secs=per_request_timeout,
        rate_limit_per_second=rate_limit_per_second,
        user_agent=user_agent,
    )
    return ScrapeOrchestrator(registry, sink, config=config, metrics=metrics).run_all(cancel)

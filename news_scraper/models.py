from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class Source:
    id: int
    name: str
    base_url: str
    title_selector: str
    link_selector: str = ""
    summary_selector: str = ""
    default_category: str = ""
    active: bool = True


@dataclass(frozen=True)
class ScrapedArticle:
    title: str
    url: str
    summary: str = ""


@dataclass(frozen=True)
class CategorizedArticle:
    title: str
    url: str
    summary: str
    category: str

    @classmethod
    def from_scraped(cls, article: ScrapedArticle, category: str) -> "CategorizedArticle":
        return cls(title=article.title, url=article.url, summary=article.summary, category=category)


@dataclass(frozen=True)
class PersistedArticle:
    id: int
    source_id: int
    source_name: str
    title: str
    url: str
    summary: str
    category: str
    scraped_at: str
    created_at: str


@dataclass(frozen=True)
class SourceResult:
    source_id: int
    source_name: str
    success: bool
    status_code: Optional[int]
    latency_ms: int
    pages_fetched: int = 0
    articles_found: int = 0
    articles_saved: int = 0
    error_type: Optional[str] = None


@dataclass
class ScrapeOutcome:
    """Aggregated result of one scrape run.

    There is no overall success flag: a run is finished once every worker
    has exited, and individual source failures are listed in ``errors``.
    """

    sources_attempted: int = 0
    errors: Dict[int, Exception] = field(default_factory=dict)
    results: Dict[int, SourceResult] = field(default_factory=dict)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results.values() if r.success)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def articles_saved(self) -> int:
        return sum(r.articles_saved for r in self.results.values())

    @property
    def duration_secs(self) -> float:
        return max(0.0, self.finished_at - self.started_at)


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_sources: int
    success_count: int
    timeout_count: int
    cancelled_count: int
    http_429_count: int
    http_403_count: int
    articles_found: int
    articles_saved: int
    avg_latency_ms: float
    timestamp: float

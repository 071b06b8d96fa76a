from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from .cancellation import CancellationToken
from .errors import StorageError
from .models import CategorizedArticle, PersistedArticle, Source

logger = logging.getLogger(__name__)


class SourceRegistry(ABC):
    """Supplies the sources a scrape run should visit."""

    @abstractmethod
    def active_sources(self, cancel: Optional[CancellationToken] = None) -> List[Source]:
        """Return only sources flagged active. Order carries no meaning."""


class ArticleSink(ABC):
    """Abstract base class for article persistence backends.

    save() must be an upsert keyed by article URL: calling it again for a URL
    already stored updates that record instead of adding a second one, and
    this has to hold when two workers save the same URL at the same time.
    """

    @abstractmethod
    def save(
        self,
        article: CategorizedArticle,
        source: Source,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Insert or update one article."""

    def close(self) -> None:
        """Flush pending writes and release resources."""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    selector_title TEXT NOT NULL,
    selector_link TEXT NOT NULL DEFAULT '',
    selector_summary TEXT NOT NULL DEFAULT '',
    default_category TEXT NOT NULL DEFAULT '',
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    source_name TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    summary TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT '',
    scraped_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_articles_scraped_at ON articles (scraped_at);
CREATE INDEX IF NOT EXISTS idx_articles_source_id ON articles (source_id);
"""

# Columns older article tables were created without.
_LEGACY_ARTICLE_COLUMNS = (
    ("category", "TEXT NOT NULL DEFAULT ''"),
    ("source_name", "TEXT NOT NULL DEFAULT ''"),
)

_UPSERT_ARTICLE = """
INSERT INTO articles (source_id, source_name, title, url, summary, category, scraped_at, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(url) DO UPDATE SET
    source_id = excluded.source_id,
    source_name = excluded.source_name,
    title = excluded.title,
    summary = excluded.summary,
    category = excluded.category,
    scraped_at = excluded.scraped_at
"""

_SOURCE_COLUMNS = (
    "id, name, url, selector_title, selector_link, selector_summary, default_category, active"
)
_ARTICLE_COLUMNS = (
    "id, source_id, source_name, title, url, summary, category, scraped_at, created_at"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class SqliteRepository(SourceRegistry, ArticleSink):
    """SQLite-backed source registry and article sink.

    A single connection is shared between worker threads and serialised with
    a lock. Uniqueness of article URLs is enforced by the table itself, so
    concurrent saves of one URL collapse into a single row.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        with self._lock, self._conn:
            self._conn.executescript(_SCHEMA)
            self._migrate_legacy_articles()
            self._conn.executescript(_INDEXES)

    def _migrate_legacy_articles(self) -> None:
        existing = {row["name"] for row in self._conn.execute("PRAGMA table_info(articles)")}
        for column, ddl in _LEGACY_ARTICLE_COLUMNS:
            if column not in existing:
                logger.info("adding missing column articles.%s", column)
                self._conn.execute(f"ALTER TABLE articles ADD COLUMN {column} {ddl}")

    # -- sources -----------------------------------------------------------

    def add_source(
        self,
        name: str,
        base_url: str,
        title_selector: str,
        link_selector: str = "",
        summary_selector: str = "",
        default_category: str = "",
        active: bool = True,
    ) -> Source:
        now = _now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO sources (name, url, selector_title, selector_link, selector_summary, "
                "default_category, active, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (name, base_url, title_selector, link_selector, summary_selector,
                 default_category, int(active), now, now),
            )
            source_id = cur.lastrowid
        return Source(
            id=source_id,
            name=name,
            base_url=base_url,
            title_selector=title_selector,
            link_selector=link_selector,
            summary_selector=summary_selector,
            default_category=default_category,
            active=active,
        )

    def set_active(self, source_id: int, active: bool) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE sources SET active = ?, updated_at = ? WHERE id = ?",
                (int(active), _now(), source_id),
            )

    def get_source(self, source_id: int) -> Optional[Source]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
            ).fetchone()
        return self._to_source(row) if row is not None else None

    def all_sources(self) -> List[Source]:
        with self._lock:
            rows = self._conn.execute(f"SELECT {_SOURCE_COLUMNS} FROM sources ORDER BY id").fetchall()
        return [self._to_source(row) for row in rows]

    def active_sources(self, cancel: Optional[CancellationToken] = None) -> List[Source]:
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE active = 1 ORDER BY id"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"could not load sources: {exc}") from exc
        return [self._to_source(row) for row in rows]

    # -- articles ----------------------------------------------------------

    def save(
        self,
        article: CategorizedArticle,
        source: Source,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        now = _now()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    _UPSERT_ARTICLE,
                    (source.id, source.name, article.title, article.url,
                     article.summary, article.category, now, now),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"could not save {article.url}: {exc}") from exc

    def recent_articles(self, limit: int = 50) -> List[PersistedArticle]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles ORDER BY scraped_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._to_article(row) for row in rows]

    def articles_by_source(self, source_id: int, limit: int = 50) -> List[PersistedArticle]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE source_id = ? "
                "ORDER BY scraped_at DESC, id DESC LIMIT ?",
                (source_id, limit),
            ).fetchall()
        return [self._to_article(row) for row in rows]

    def clear_articles(self) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM articles")
        logger.info("cleared %d articles", cur.rowcount)
        return cur.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _to_source(row: sqlite3.Row) -> Source:
        return Source(
            id=row["id"],
            name=row["name"],
            base_url=row["url"],
            title_selector=row["selector_title"],
            link_selector=row["selector_link"],
            summary_selector=row["selector_summary"],
            default_category=row["default_category"],
            active=bool(row["active"]),
        )

    @staticmethod
    def _to_article(row: sqlite3.Row) -> PersistedArticle:
        return PersistedArticle(
            id=row["id"],
            source_id=row["source_id"],
            source_name=row["source_name"],
            title=row["title"],
            url=row["url"],
            summary=row["summary"],
            category=row["category"],
            scraped_at=row["scraped_at"],
            created_at=row["created_at"],
        )

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from .models import ScrapedArticle

logger = logging.getLogger(__name__)

_SUMMARY_CONTAINERS = ["article", "div"]


def resolve_url(base_url: str, href: str) -> str:
    """Resolve ``href`` against ``base_url`` (RFC 3986 reference resolution).

    Scheme-relative ("//host/x"), path-relative ("../x"), query-only ("?p=2")
    and fragment-only ("#top") references are all handled by urljoin. An
    already-absolute ``href`` comes back unchanged.
    """
    return urljoin(base_url, href.strip())


def is_absolute_http_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class ArticleExtractor:
    """Turns a parsed listing page into candidate articles using CSS selectors."""

    def extract(
        self,
        document: BeautifulSoup,
        base_url: str,
        title_selector: str,
        link_selector: str = "",
        summary_selector: str = "",
    ) -> List[ScrapedArticle]:
        articles: List[ScrapedArticle] = []
        for node in document.select(title_selector):
            title = node.get_text().strip()
            if not title:
                continue

            href = self._find_href(node, title_selector, link_selector)
            if href is None:
                continue

            url = resolve_url(base_url, href)
            if not is_absolute_http_url(url):
                logger.debug("dropping %r: %r did not resolve to an http(s) URL", title, href)
                continue

            summary = ""
            if summary_selector:
                summary = self._find_summary(node, summary_selector)

            articles.append(ScrapedArticle(title=title, url=url, summary=summary))
        return articles

    @staticmethod
    def _find_href(node: Tag, title_selector: str, link_selector: str) -> Optional[str]:
        href = node.get("href")
        if href:
            return href

        if link_selector and link_selector != title_selector:
            for link in node.select(link_selector):
                href = link.get("href")
                if href:
                    return href

        anchor = node.find("a", href=True)
        if anchor is not None and anchor["href"]:
            return anchor["href"]
        return None

    @staticmethod
    def _find_summary(node: Tag, summary_selector: str) -> str:
        # Nearest enclosing block, the title node itself included.
        container = node if node.name in _SUMMARY_CONTAINERS else node.find_parent(_SUMMARY_CONTAINERS)
        if container is None:
            return ""
        match = container.select_one(summary_selector)
        if match is None:
            return ""
        return match.get_text().strip()

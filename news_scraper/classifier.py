from __future__ import annotations

from typing import Tuple

TECHNOLOGY = "technology"
SPORTS = "sports"
POLITICS = "politics"
BUSINESS = "business"
ENTERTAINMENT = "entertainment"
HEALTH = "health"

# Evaluated top to bottom, first match wins. The order is part of the
# classification contract: "football software" must come out as technology.
CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (TECHNOLOGY, (
        "tech", "ai", "software", "app", "startup", "code", "programming",
        "computer", "gadget", "robot", "crypto", "blockchain",
    )),
    (SPORTS, (
        "sport", "football", "soccer", "basketball", "tennis", "cricket",
        "olympics", "championship", "match", "player", "team", "goal",
    )),
    (POLITICS, (
        "politic", "election", "government", "president", "minister",
        "parliament", "vote", "law", "senate", "congress",
    )),
    (BUSINESS, (
        "business", "market", "stock", "economy", "trade", "finance",
        "bank", "investor", "revenue", "profit",
    )),
    (ENTERTAINMENT, (
        "entertainment", "movie", "music", "celebrity", "film",
        "actor", "actress", "concert", "album", "show",
    )),
    (HEALTH, (
        "health", "medical", "doctor", "hospital", "disease", "vaccine",
        "treatment", "patient", "medicine",
    )),
)

CATEGORIES: Tuple[str, ...] = tuple(category for category, _ in CATEGORY_RULES)


def classify(title: str, summary: str, url: str, default_category: str = "") -> str:
    """Return the first category whose keywords occur in the article text.

    Matching is plain substring search over the lower-cased title, summary
    and URL. Falls back to ``default_category`` (possibly empty).
    """
    text = f"{title} {summary} {url}".lower()
    for category, keywords in CATEGORY_RULES:
        if any(kw in text for kw in keywords):
            return category
    return default_category

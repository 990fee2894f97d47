"""
Article deduplication across one or many sources.

Sources are processed in the order given (e.g. emails in the order the user
selected them), never re-sorted by date. The first time a normalized ID is
seen wins; later sources cannot overwrite its page count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Sequence

from .errors import InvalidInputError
from .models import ParsedArticle

logger = logging.getLogger(__name__)

NOT_AT_PORTAL = "Not at portal"
ARTICLE_NUMBER_KEY = "Article number"
COMPLETED_KEY = "Completed"


def normalize_article_id(article_id: str) -> str:
    return article_id.strip().upper()


def merge_sources(sources: Sequence[Iterable[ParsedArticle]]) -> List[ParsedArticle]:
    """Merge parsed articles from several sources into one unique, ordered list.

    Args:
        sources: One list of ParsedArticle per source, in processing order.

    Returns:
        Articles in first-seen order with first-seen page counts.
    """
    if isinstance(sources, (str, bytes)):
        raise InvalidInputError("sources must be a sequence of article lists.")

    merged: dict[str, ParsedArticle] = {}
    repeats = 0
    for source in sources:
        for article in source:
            key = normalize_article_id(article.article_id)
            if key in merged:
                repeats += 1
                continue
            merged[key] = article

    if repeats:
        logger.debug("Collapsed %d repeated article IDs across %d sources", repeats, len(sources))
    return list(merged.values())


def unique_article_ids(article_ids: Iterable[str]) -> List[str]:
    """Uppercase, trim and de-duplicate IDs, keeping first-seen order."""
    seen: set[str] = set()
    unique: List[str] = []
    for article_id in article_ids:
        normalized = normalize_article_id(article_id)
        if normalized and normalized not in seen:
            seen.add(normalized)
            unique.append(normalized)
    return unique


def handled_article_ids(rows: Iterable[Mapping[str, Any]]) -> set[str]:
    """IDs already present in the allocation history.

    Rows marked "Not at portal" were never really allocated and are ignored.
    """
    handled: set[str] = set()
    for row in rows:
        if row.get(COMPLETED_KEY) == NOT_AT_PORTAL:
            continue
        number = row.get(ARTICLE_NUMBER_KEY)
        if isinstance(number, str) and number.strip():
            handled.add(normalize_article_id(number))
    return handled


@dataclass
class FilteredArticles:
    parsed_articles: List[ParsedArticle] = field(default_factory=list)
    filtered_out_articles: List[str] = field(default_factory=list)

    @property
    def filtered_out_count(self) -> int:
        return len(self.filtered_out_articles)


def filter_already_allocated(
    articles: Iterable[ParsedArticle], handled_ids: Iterable[str]
) -> FilteredArticles:
    """Drop articles whose ID was already handled, reporting what was removed."""
    handled = {normalize_article_id(article_id) for article_id in handled_ids}
    result = FilteredArticles()
    for article in articles:
        if normalize_article_id(article.article_id) in handled:
            result.filtered_out_articles.append(article.article_id)
        else:
            result.parsed_articles.append(article)

    if result.filtered_out_count:
        logger.info(
            "Removed %d already allocated articles", result.filtered_out_count
        )
    return result


def count_already_allocated(article_ids: Iterable[str], handled_ids: Iterable[str]) -> int:
    handled = {normalize_article_id(article_id) for article_id in handled_ids}
    return sum(1 for article_id in article_ids if normalize_article_id(article_id) in handled)

"""Partition parsed articles into per-person, DDN and unallocated buckets.

DDN articles are pulled out first. The remaining pool is walked once with a
cursor: each priority field, in order, takes its requested number of articles
from the front of the pool. Under "allocate by pages" the pool is first sorted
by page count, largest first, with ties kept in input order. Whatever the
cursor has not reached is unallocated.

Capacity is not checked here; a field that asks for more than is left simply
gets what remains, possibly nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from .dedup import merge_sources
from .models import (
    DDN_NAME,
    UNALLOCATED_NAME,
    AllocatedArticle,
    AllocationMethod,
    AllocationRow,
    DisplayOverride,
    FinalAllocationResult,
    ParsedArticle,
    PersonAllocation,
    PreviewResult,
    PriorityField,
)
from .schema import validate_rows_payload
from .validation import parse_allocation_method

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def current_month_and_date(timezone: str = "UTC", now: Optional[datetime] = None) -> tuple[str, str]:
    """Month name and DD/MM/YYYY date used to stamp an allocation batch."""
    moment = now or datetime.now(ZoneInfo(timezone))
    return MONTH_NAMES[moment.month - 1], moment.strftime("%d/%m/%Y")


def _allocate(article: ParsedArticle, name: str, month: str, date: str) -> AllocatedArticle:
    return AllocatedArticle(
        name=name,
        article_id=article.article_id,
        pages=article.pages,
        month=month,
        date=date,
    )


def _sort_by_pages(articles: Iterable[ParsedArticle]) -> List[ParsedArticle]:
    # sorted() is stable with reverse=True, so equal page counts keep input order.
    return sorted(articles, key=lambda article: article.pages, reverse=True)


def distribute(
    priority_fields: Sequence[PriorityField],
    parsed_articles: Sequence[ParsedArticle],
    ddn_article_ids: Iterable[str],
    method: str | AllocationMethod | None,
    month: str,
    date: str,
) -> FinalAllocationResult:
    """Split ``parsed_articles`` into person, DDN and unallocated buckets.

    Raises:
        UnrecognizedMethodError: ``method`` is not one of the two methods.
    """
    allocation_method = parse_allocation_method(method)
    articles = merge_sources([parsed_articles])
    if len(articles) != len(parsed_articles):
        logger.warning(
            "Collapsed %d repeated articles before distribution",
            len(parsed_articles) - len(articles),
        )

    ddn_set = set(ddn_article_ids)
    ddn_articles = [
        _allocate(article, DDN_NAME, month, date)
        for article in articles
        if article.article_id in ddn_set
    ]
    pool = [article for article in articles if article.article_id not in ddn_set]
    if allocation_method is AllocationMethod.BY_PAGES:
        pool = _sort_by_pages(pool)

    by_person: Dict[str, List[AllocatedArticle]] = {}
    cursor = 0
    for field in priority_fields:
        requested = field.value or 0
        if requested <= 0:
            continue
        taken = pool[cursor:cursor + requested]
        cursor += len(taken)
        if taken:
            by_person.setdefault(field.label, []).extend(
                _allocate(article, field.label, month, date) for article in taken
            )

    unallocated = [_allocate(article, UNALLOCATED_NAME, month, date) for article in pool[cursor:]]

    logger.info(
        "Distributed %d articles (%s): %d to people, %d DDN, %d unallocated",
        len(articles),
        allocation_method.value,
        cursor,
        len(ddn_articles),
        len(unallocated),
    )
    return FinalAllocationResult(
        person_allocations=[
            PersonAllocation(person=person, articles=allocated)
            for person, allocated in by_person.items()
        ],
        ddn_articles=ddn_articles,
        unallocated_articles=unallocated,
    )


def preview(
    priority_fields: Sequence[PriorityField],
    parsed_articles: Sequence[ParsedArticle],
    ddn_article_ids: Iterable[str],
    method: str | AllocationMethod | None,
    month: str,
    date: str,
    overrides: Optional[Mapping[str, DisplayOverride]] = None,
) -> PreviewResult:
    """Distribution laid out for the preview table.

    ``allocated_articles`` lists DDN rows first and then people in field
    order. ``display_articles`` is allocated plus unallocated, with any
    per-article name/month/date overrides applied.
    """
    result = distribute(priority_fields, parsed_articles, ddn_article_ids, method, month, date)
    allocated = list(result.ddn_articles)
    for allocation in result.person_allocations:
        allocated.extend(allocation.articles)

    display: List[AllocatedArticle] = []
    for article in allocated + result.unallocated_articles:
        override = (overrides or {}).get(article.article_id)
        if override is not None:
            changes = override.model_dump(exclude_none=True)
            if changes:
                article = article.model_copy(update=changes)
        display.append(article)

    return PreviewResult(
        allocated_articles=allocated,
        unallocated_articles=list(result.unallocated_articles),
        display_articles=display,
    )


def to_rows(result: FinalAllocationResult) -> List[AllocationRow]:
    """Flatten a result into export rows: people, then DDN, then unallocated."""
    rows: List[AllocationRow] = []
    for allocation in result.person_allocations:
        rows.extend(_row(article, allocation.person) for article in allocation.articles)
    rows.extend(_row(article, DDN_NAME) for article in result.ddn_articles)
    rows.extend(_row(article, UNALLOCATED_NAME) for article in result.unallocated_articles)
    return rows


def _row(article: AllocatedArticle, done_by: str) -> AllocationRow:
    return AllocationRow(
        month=article.month,
        date=article.date,
        article_number=article.article_id,
        pages=article.pages,
        done_by=done_by,
    )


def rows_payload(result: FinalAllocationResult) -> List[dict]:
    """Export rows as JSON-ready dicts, checked against the row schema."""
    payload = [row.model_dump(by_alias=True) for row in to_rows(result)]
    return validate_rows_payload(payload)

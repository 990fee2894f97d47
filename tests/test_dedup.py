import pytest

from article_allocator.dedup import (
    NOT_AT_PORTAL,
    count_already_allocated,
    filter_already_allocated,
    handled_article_ids,
    merge_sources,
    unique_article_ids,
)
from article_allocator.errors import InvalidInputError
from article_allocator.models import ParsedArticle


def art(article_id: str, pages: int) -> ParsedArticle:
    return ParsedArticle(article_id=article_id, pages=pages)


def test_single_source_removes_repeats_case_insensitively():
    merged = merge_sources([[art("abc1", 3), art("XYZ2", 1), art(" ABC1 ", 9)]])

    assert merged == [art("ABC1", 3), art("XYZ2", 1)]


def test_later_sources_cannot_overwrite_page_counts():
    merged = merge_sources(
        [
            [art("ABC1", 3)],
            [art("XYZ2", 1), art("ABC1", 50)],
            [art("NEW3", 7)],
        ]
    )

    assert [(a.article_id, a.pages) for a in merged] == [("ABC1", 3), ("XYZ2", 1), ("NEW3", 7)]


def test_source_order_is_respected_not_resorted():
    first = merge_sources([[art("B2", 1)], [art("A1", 2)]])
    second = merge_sources([[art("A1", 2)], [art("B2", 1)]])

    assert [a.article_id for a in first] == ["B2", "A1"]
    assert [a.article_id for a in second] == ["A1", "B2"]


def test_merge_is_idempotent():
    sources = [[art("ABC1", 3), art("ABC1", 4)], [art("XYZ2", 1), art("abc1", 8)]]

    once = merge_sources(sources)

    assert merge_sources([once]) == once


def test_merge_empty_sources():
    assert merge_sources([]) == []
    assert merge_sources([[], []]) == []


def test_merge_rejects_text_input():
    with pytest.raises(InvalidInputError):
        merge_sources("ABC1")  # type: ignore[arg-type]


def test_unique_article_ids_normalizes_and_skips_blanks():
    assert unique_article_ids(["abc1", " ABC1", "", "  ", "xyz2"]) == ["ABC1", "XYZ2"]


def test_handled_ids_ignore_not_at_portal_rows():
    rows = [
        {"Article number": "abc1", "Completed": "Completed"},
        {"Article number": "XYZ2", "Completed": NOT_AT_PORTAL},
        {"Article number": "NEW3"},
        {"Completed": "Not started"},
    ]

    assert handled_article_ids(rows) == {"ABC1", "NEW3"}


def test_filter_already_allocated_reports_removed_ids():
    articles = [art("ABC1", 3), art("XYZ2", 1), art("NEW3", 7)]

    filtered = filter_already_allocated(articles, {"abc1", "NEW3"})

    assert filtered.parsed_articles == [art("XYZ2", 1)]
    assert filtered.filtered_out_articles == ["ABC1", "NEW3"]
    assert filtered.filtered_out_count == 2


def test_count_already_allocated():
    assert count_already_allocated(["abc1", "XYZ2", "Q9"], ["ABC1", "q9"]) == 2

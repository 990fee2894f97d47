import pytest

from article_allocator.errors import InvalidInputError
from article_allocator.extractor import (
    BlockState,
    clean_html,
    extract_articles,
    extract_from_sources,
    format_entries,
    parse_entries,
    parse_pasted,
)
from article_allocator.models import ParsedArticle


PORTAL_HTML = """
<table>
  <tr>
    <td>CDC101217</td> <td>TEX</td> <td>24</td> <td>12/02/2025</td> <td>10:41</td>
  </tr>
  <tr>
    <td>EA147928</td> <td>DOCX</td> <td>8</td> <td>12/02/2025</td> <td>11:02</td>
  </tr>
  <tr>
    <td>JMX20431</td> <td>-</td> <td>12/02/2025</td> <td>11:30</td>
  </tr>
</table>
"""


def _ids(result):
    return [article.article_id for article in result.articles]


def test_clean_html_turns_line_markup_into_newlines():
    html = "<p>CDC1 12</p><p>EA2&nbsp;3<br/>X</p>\r\n\r\n<ul><li>A</li></ul>"

    text = clean_html(html)

    assert "<" not in text
    assert "EA2 3" in text
    assert "\n\n" not in text
    assert text == text.strip()


def test_extract_reads_id_source_pages_date_time_block():
    result = extract_articles("ID1 TEX 12 01/02/2024 10:00")

    assert result.articles == [ParsedArticle(article_id="ID1", pages=12)]
    assert result.total_pages == 12
    assert result.has_articles is True
    assert result.sources == {"ID1": "TEX"}


def test_extract_portal_table_drops_rows_without_page_count():
    result = extract_articles(PORTAL_HTML)

    assert _ids(result) == ["CDC101217", "EA147928"]
    assert [a.pages for a in result.articles] == [24, 8]
    assert result.total_pages == 32
    assert result.dropped_ids == ["JMX20431"]


def test_hyphen_placeholder_yields_no_entry():
    result = extract_articles("ABC123 -")

    assert result.articles == []
    assert result.has_articles is False
    assert result.total_pages == 0
    assert result.dropped_ids == ["ABC123"]


def test_empty_emfc_column_hyphen_is_skipped():
    result = extract_articles("CDC101217 TEX - 24 12/02/2025 10:41")

    assert result.articles == [ParsedArticle(article_id="CDC101217", pages=24)]
    assert result.sources == {"CDC101217": "TEX"}
    assert result.dropped_ids == []


def test_hyphen_then_date_drops_article():
    result = extract_articles("CDC101217 TEX - 12/02/2025 10:41 EA147928 - 8")

    assert result.articles == [ParsedArticle(article_id="EA147928", pages=8)]
    assert result.dropped_ids == ["CDC101217"]


def test_explicit_zero_page_count_is_kept():
    result = extract_articles("ABC123 TEX 0 01/02/2024 10:00")

    assert result.articles == [ParsedArticle(article_id="ABC123", pages=0)]
    assert result.dropped_ids == []


def test_emfc_markers_are_skipped_before_page_count():
    result = extract_articles("ABC123 TEX eMFC 7 01/02/2024 10:00 XYZ9 eMFC-2 4")

    assert [(a.article_id, a.pages) for a in result.articles] == [("ABC123", 7), ("XYZ9", 4)]


def test_page_count_is_never_borrowed_from_later_in_the_row():
    # The date occupies the page column; 15 further along must not be used.
    result = extract_articles("ABC123 TEX 01/02/2024 10:00 15")

    assert result.articles == []
    assert result.dropped_ids == ["ABC123"]


def test_out_of_range_page_count_is_dropped():
    result = extract_articles("ABC123 TEX 10001")

    assert result.articles == []


def test_very_long_digit_run_is_dropped_not_raised():
    result = extract_articles("ABC123 " + "9" * 5000 + " XYZ456 2")

    assert result.articles == [ParsedArticle(article_id="XYZ456", pages=2)]
    assert result.dropped_ids == ["ABC123"]


def test_non_ascii_digits_are_not_page_counts():
    # Arabic-Indic digits for 12.
    result = extract_articles("ABC123 ١٢")

    assert result.articles == []
    assert result.dropped_ids == ["ABC123"]


def test_non_ascii_digits_do_not_form_ids_dates_or_times():
    result = extract_articles("AB١ 5 XYZ9 7 ٠١/02/2024 10:00 QRS1 3")

    assert [(a.article_id, a.pages) for a in result.articles] == [("XYZ9", 7), ("QRS1", 3)]


def test_upper_bound_page_count_is_kept():
    result = extract_articles("ABC123 10000")

    assert result.articles == [ParsedArticle(article_id="ABC123", pages=10000)]


def test_next_id_in_page_column_ends_block():
    result = extract_articles("ABC123 TEX XYZ456 9")

    assert result.dropped_ids == ["ABC123"]
    assert result.articles == [ParsedArticle(article_id="XYZ456", pages=9)]


def test_repeated_id_keeps_first_page_count():
    result = extract_articles("ABC123 5 01/02/2024 10:00 ABC123 9 01/02/2024 10:05")

    assert result.articles == [ParsedArticle(article_id="ABC123", pages=5)]


def test_dropped_id_stays_dropped_when_it_reappears():
    result = extract_articles("ABC123 - ABC123 9")

    assert result.articles == []
    assert result.dropped_ids == ["ABC123"]


def test_source_column_is_optional():
    result = extract_articles("ABC123 14 02/03/2025 09:15")

    assert result.articles == [ParsedArticle(article_id="ABC123", pages=14)]
    assert result.sources == {}


def test_unknown_source_code_is_skipped_but_not_recorded():
    result = extract_articles("ABC123 PDF 3")

    assert result.articles == [ParsedArticle(article_id="ABC123", pages=3)]
    assert result.sources == {}


def test_text_without_ids_has_no_articles():
    result = extract_articles("<p>Nothing to allocate today.</p>")

    assert result.articles == []
    assert result.has_articles is False


def test_extract_rejects_non_string_input():
    with pytest.raises(InvalidInputError):
        extract_articles(None)  # type: ignore[arg-type]


def test_block_states_are_ordered():
    assert [state.value for state in BlockState] == [
        "seeking_source",
        "seeking_page",
        "seeking_terminator",
    ]


def test_extract_from_sources_first_source_wins():
    first = "ABC123 TEX 5 01/02/2024 10:00"
    second = "ABC123 DOCX 9 02/02/2024 10:00 XYZ456 3 02/02/2024 10:05"

    result = extract_from_sources([first, second], labels=["first", "second"])

    assert result.articles == [
        ParsedArticle(article_id="ABC123", pages=5),
        ParsedArticle(article_id="XYZ456", pages=3),
    ]
    assert result.sources == {"ABC123": "TEX"}


def test_extract_from_sources_resolved_ids_are_not_reported_dropped():
    result = extract_from_sources(["ABC123 - XYZ9 -", "ABC123 4"])

    assert _ids(result) == ["ABC123"]
    assert result.dropped_ids == ["XYZ9"]


def test_parse_pasted_uses_number_before_date():
    text = "CDC101217 TEX 24 12/02/2025 10:41\nEA147928 3 x 11 13/02/2025"

    parsed = parse_pasted(text)

    assert [(a.article_id, a.pages) for a in parsed] == [("CDC101217", 24), ("EA147928", 11)]


def test_parse_pasted_falls_back_to_first_number_then_zero():
    parsed = parse_pasted("ABC123 foo 6\nXYZ456 nothing here")

    assert [(a.article_id, a.pages) for a in parsed] == [("ABC123", 6), ("XYZ456", 0)]


def test_parse_pasted_repeat_overwrites_value_keeps_position():
    parsed = parse_pasted("ABC123 4 XYZ456 2 ABC123 9")

    assert [(a.article_id, a.pages) for a in parsed] == [("ABC123", 9), ("XYZ456", 2)]


def test_parse_pasted_blank_text_is_empty():
    assert parse_pasted("   \n ") == []


def test_parse_entries_and_format_entries():
    parsed = parse_entries(["CDC101217 [24]", " ea147928 ", "", "JMX1 [0]"])

    assert [(a.article_id, a.pages) for a in parsed] == [
        ("CDC101217", 24),
        ("EA147928", 0),
        ("JMX1", 0),
    ]
    assert format_entries(parsed) == ["CDC101217 [24]", "EA147928 [0]", "JMX1 [0]"]


def test_parse_entries_rejects_non_strings():
    with pytest.raises(InvalidInputError):
        parse_entries(["ABC1 [2]", 5])  # type: ignore[list-item]


def test_parse_entries_rejects_out_of_range_page_counts():
    with pytest.raises(InvalidInputError, match="out of range"):
        parse_entries(["ABC1 [10001]"])
    with pytest.raises(InvalidInputError):
        parse_entries(["ABC1 [" + "9" * 5000 + "]"])


def test_parse_pasted_ignores_overlong_numbers():
    parsed = parse_pasted("ABC123 " + "9" * 5000 + " 4")

    assert [(a.article_id, a.pages) for a in parsed] == [("ABC123", 4)]

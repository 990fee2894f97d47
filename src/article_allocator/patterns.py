"""Regex patterns shared by the article extractor and the pasted-text parser."""

from __future__ import annotations

import re

# Two or more capitals, optional alphanumerics, ending in a digit: "CDC101217", "EA147928".
ARTICLE_ID_PATTERN = re.compile(r"^[A-Z]{2,}[A-Z0-9]*\d$", re.ASCII)

# "CDC101217 [24]" style entries.
ARTICLE_WITH_PAGES_PATTERN = re.compile(r"^([^\s\[\]]+)\s*\[(\d+)\]", re.ASCII)

# At most five ASCII digits; the value is range-checked after conversion.
PAGE_COUNT_PATTERN = re.compile(r"^\d{1,5}$", re.ASCII)
MAX_PAGE_COUNT = 10000

DATE_PATTERN_SLASH = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$", re.ASCII)
DATE_PATTERN_DASH = re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$", re.ASCII)
TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}$", re.ASCII)

EMFC_PATTERN = re.compile(r"^eMFC$", re.IGNORECASE | re.ASCII)
EMFC_WITH_NUMBER_PATTERN = re.compile(r"^eMFC[-:]\d+$", re.IGNORECASE | re.ASCII)

# Letters-only column that can follow an ID ("TEX", "DOCX").
SOURCE_CODE_PATTERN = re.compile(r"^[A-Z]+$", re.IGNORECASE | re.ASCII)
KNOWN_SOURCES = ("DOCX", "TEX")

HYPHEN_PLACEHOLDER = "-"

# Tokens inspected after an article ID before the block is abandoned.
BLOCK_WINDOW = 5


def is_article_id(token: str) -> bool:
    return bool(ARTICLE_ID_PATTERN.match(token))


def is_date(token: str) -> bool:
    return bool(DATE_PATTERN_SLASH.match(token) or DATE_PATTERN_DASH.match(token))


def is_time(token: str) -> bool:
    return bool(TIME_PATTERN.match(token))


def is_emfc_marker(token: str) -> bool:
    return bool(EMFC_PATTERN.match(token) or EMFC_WITH_NUMBER_PATTERN.match(token))


def bounded_page_count(token: str) -> int | None:
    """Return the integer value of ``token`` when it is a page count in range."""
    if not PAGE_COUNT_PATTERN.match(token):
        return None
    value = int(token)
    if 0 <= value <= MAX_PAGE_COUNT:
        return value
    return None

"""Article detection over semi-structured portal HTML and email text.

Markup is stripped with a handful of substitutions (no DOM parsing), the text
is split into whitespace tokens, and every article block is walked with a
small state machine:

    ID -> SEEKING_SOURCE -> SEEKING_PAGE -> SEEKING_TERMINATOR

A typical block looks like ``CDC101217 TEX 24 12/02/2025 10:41``. The source
column is optional. eMFC markers, or a bare ``-`` when the eMFC column is
empty, may sit in front of the page column and are skipped. The date/time
pair only marks where the block ends.

An article is kept only when its page count was read confidently. IDs without
one are listed in ``ExtractionResult.dropped_ids`` and otherwise ignored; a
stray number further along the row is never borrowed as a page count.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .dedup import merge_sources, unique_article_ids
from .errors import InvalidInputError
from .models import ParsedArticle
from .patterns import (
    ARTICLE_WITH_PAGES_PATTERN,
    HYPHEN_PLACEHOLDER,
    BLOCK_WINDOW,
    KNOWN_SOURCES,
    SOURCE_CODE_PATTERN,
    bounded_page_count,
    is_article_id,
    is_date,
    is_emfc_marker,
    is_time,
)

logger = logging.getLogger(__name__)

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_CLOSE_RE = re.compile(r"</p>", re.IGNORECASE)
_LI_OPEN_RE = re.compile(r"<li[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_NBSP_RE = re.compile(r"&nbsp;", re.IGNORECASE)
_MULTI_NEWLINE_RE = re.compile(r"\n{2,}")

# Pasted rows: how far to look for a date, and for a bare number without one.
_PASTED_DATE_LOOKAHEAD = 9
_PASTED_NUMBER_LOOKAHEAD = 5


class BlockState(Enum):
    SEEKING_SOURCE = "seeking_source"
    SEEKING_PAGE = "seeking_page"
    SEEKING_TERMINATOR = "seeking_terminator"


@dataclass
class ExtractionResult:
    articles: List[ParsedArticle] = field(default_factory=list)
    sources: Dict[str, str] = field(default_factory=dict)
    dropped_ids: List[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return sum(article.pages for article in self.articles)

    @property
    def total_articles(self) -> int:
        return len(self.articles)

    @property
    def has_articles(self) -> bool:
        return bool(self.articles)


@dataclass
class _Block:
    article_id: str
    end: int
    source: Optional[str] = None
    pages: Optional[int] = None


def clean_html(html: str) -> str:
    """Turn line-ish markup into newlines, drop the remaining tags, trim."""
    text = _BR_RE.sub("\n", html)
    text = _P_CLOSE_RE.sub("\n", text)
    text = _LI_OPEN_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = _NBSP_RE.sub(" ", text)
    text = text.replace("\r\n", "\n")
    text = _MULTI_NEWLINE_RE.sub("\n", text)
    return text.strip()


def tokenize(text: str) -> List[str]:
    return text.split()


def _scan_block(tokens: List[str], index: int) -> _Block:
    """Walk the tokens after the ID at ``index`` and resolve its page count.

    ``end`` is the index of the last token that belongs to the block; the
    caller resumes its ID scan right after it.
    """
    block = _Block(article_id=tokens[index].upper(), end=index)
    state = BlockState.SEEKING_SOURCE
    stop = min(len(tokens), index + 1 + BLOCK_WINDOW)

    for cursor in range(index + 1, stop):
        token = tokens[cursor]

        if state is BlockState.SEEKING_SOURCE:
            state = BlockState.SEEKING_PAGE
            if SOURCE_CODE_PATTERN.match(token):
                if token.upper() in KNOWN_SOURCES:
                    block.source = token.upper()
                block.end = cursor
                continue

        if state is BlockState.SEEKING_PAGE:
            if is_emfc_marker(token) or token == HYPHEN_PLACEHOLDER:
                block.end = cursor
                continue
            pages = bounded_page_count(token)
            if pages is None:
                # Date, next ID or stray word: page column is empty.
                return block
            block.pages = pages
            block.end = cursor
            state = BlockState.SEEKING_TERMINATOR
            continue

        # SEEKING_TERMINATOR
        if is_article_id(token):
            return block
        if is_date(token) and cursor + 1 < len(tokens) and is_time(tokens[cursor + 1]):
            block.end = cursor + 1
            return block

    return block


def extract_articles(raw_text: str, *, context: str | None = None) -> ExtractionResult:
    """Extract article IDs and page counts from raw HTML or plain text.

    Args:
        raw_text: Portal HTML, email HTML or pasted plain text.
        context: Optional label (email subject, file name) used in log lines.

    Returns:
        ExtractionResult with articles in first-seen order. Repeated IDs keep
        the first occurrence; an ID seen without a page count stays dropped
        even if it shows up again later in the same text.
    """
    if not isinstance(raw_text, str):
        raise InvalidInputError(
            f"raw_text must be a string, got {type(raw_text).__name__}."
        )

    label = context or "<text>"
    tokens = tokenize(clean_html(raw_text))
    result = ExtractionResult()
    seen: set[str] = set()

    index = 0
    while index < len(tokens):
        token = tokens[index]
        if not is_article_id(token):
            index += 1
            continue

        article_id = token.upper()
        if article_id in seen:
            logger.debug("%s: skipping repeated article %s", label, article_id)
            index += 1
            continue
        seen.add(article_id)

        block = _scan_block(tokens, index)
        if block.pages is None:
            logger.debug("%s: no confident page count for %s, dropped", label, article_id)
            result.dropped_ids.append(article_id)
        else:
            result.articles.append(ParsedArticle(article_id=article_id, pages=block.pages))
            if block.source:
                result.sources[article_id] = block.source
        index = block.end + 1

    logger.debug(
        "%s: %d tokens, %d articles kept, %d dropped, %d pages",
        label,
        len(tokens),
        result.total_articles,
        len(result.dropped_ids),
        result.total_pages,
    )
    return result


def parse_pasted(text: str) -> List[ParsedArticle]:
    """Parse rows copied out of a spreadsheet or the portal table.

    For each article ID the page count is the number immediately before the
    first date within the next few tokens; without a date, the first number
    after the ID; without either, 0. A repeated ID overwrites the earlier
    value but keeps its first position.
    """
    if not isinstance(text, str):
        raise InvalidInputError(f"text must be a string, got {type(text).__name__}.")
    if not text.strip():
        return []

    tokens = tokenize(text)
    entries: Dict[str, ParsedArticle] = {}

    for i, token in enumerate(tokens):
        if not is_article_id(token):
            continue

        pages: int | None = None
        for j in range(i + 1, min(len(tokens), i + 1 + _PASTED_DATE_LOOKAHEAD)):
            if is_date(tokens[j]):
                pages = bounded_page_count(tokens[j - 1])
                if pages is not None:
                    break

        if pages is None:
            for j in range(i + 1, min(len(tokens), i + 1 + _PASTED_NUMBER_LOOKAHEAD)):
                pages = bounded_page_count(tokens[j])
                if pages is not None:
                    break

        article_id = token.upper()
        entries[article_id] = ParsedArticle(article_id=article_id, pages=pages or 0)

    return list(entries.values())


def parse_entries(entries: Iterable[str] | None) -> List[ParsedArticle]:
    """Parse ``"ARTICLE_ID [PAGES]"`` strings; bare IDs get 0 pages."""
    parsed: List[ParsedArticle] = []
    for entry in entries or []:
        if not isinstance(entry, str):
            raise InvalidInputError(f"Article entries must be strings, got {entry!r}.")
        text = entry.strip()
        if not text:
            continue
        match = ARTICLE_WITH_PAGES_PATTERN.match(text)
        if match:
            pages = bounded_page_count(match.group(2))
            if pages is None:
                raise InvalidInputError(f"Page count out of range in entry {text!r}.")
            parsed.append(ParsedArticle(article_id=match.group(1), pages=pages))
        else:
            parsed.append(ParsedArticle(article_id=text, pages=0))
    return parsed


def format_entries(articles: Iterable[ParsedArticle]) -> List[str]:
    return [f"{article.article_id} [{article.pages}]" for article in articles]


def extract_from_sources(
    texts: Sequence[str], labels: Optional[Sequence[str]] = None
) -> ExtractionResult:
    """Extract each text in order and merge them into one unique batch.

    The first source to report an ID decides its page count and source
    marker. An ID dropped in one source but resolved in another is not
    reported as dropped.
    """
    results = [
        extract_articles(text, context=labels[index] if labels else f"source {index}")
        for index, text in enumerate(texts)
    ]
    merged = ExtractionResult(articles=merge_sources([r.articles for r in results]))
    kept_ids = {article.article_id for article in merged.articles}
    for result in results:
        for article_id, source in result.sources.items():
            merged.sources.setdefault(article_id, source)
    merged.dropped_ids = unique_article_ids(
        article_id
        for result in results
        for article_id in result.dropped_ids
        if article_id not in kept_ids
    )
    logger.info(
        "Merged %d sources into %d articles (%d pages)",
        len(results),
        merged.total_articles,
        merged.total_pages,
    )
    return merged

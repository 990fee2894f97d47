"""DDN list and capacity validation for the allocation form."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from .calculator import is_over_allocated, remaining, total_allocated
from .errors import InvalidInputError, UnrecognizedMethodError, ValidationCode
from .models import (
    AllocationMethod,
    AllocationValidationReport,
    DdnValidationResult,
    PriorityField,
)

logger = logging.getLogger(__name__)

DUPLICATE_DDN_MESSAGE = "DDN articles must be unique. Remove duplicate article IDs."
UNKNOWN_DDN_MESSAGE = "Some DDN articles are not present in the new allocation list."


def parse_allocation_method(method: str | AllocationMethod | None) -> AllocationMethod:
    """Map a method string to AllocationMethod; None or blank means by priority."""
    if isinstance(method, AllocationMethod):
        return method
    if method is None:
        return AllocationMethod.BY_PRIORITY
    if not isinstance(method, str):
        raise UnrecognizedMethodError(method)
    normalized = method.strip().lower()
    if not normalized:
        return AllocationMethod.BY_PRIORITY
    for candidate in AllocationMethod:
        if candidate.value == normalized:
            return candidate
    raise UnrecognizedMethodError(method)


def ddn_lines(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def validate_ddn(text: str, available_ids: Sequence[str]) -> DdnValidationResult:
    """Validate the DDN textarea: one article ID per line.

    Lines must be unique. When ``available_ids`` is empty the pool is not
    known yet and membership is not checked. IDs are returned verbatim.
    """
    if not isinstance(text, str):
        raise InvalidInputError(f"DDN text must be a string, got {type(text).__name__}.")

    lines = ddn_lines(text)
    if not lines:
        return DdnValidationResult(articles=[], error=None)

    if len(set(lines)) != len(lines):
        return DdnValidationResult(
            articles=[], error=DUPLICATE_DDN_MESSAGE, code=ValidationCode.DUPLICATE_DDN
        )

    if available_ids:
        available = set(available_ids)
        missing = [line for line in lines if line not in available]
        if missing:
            logger.debug("DDN IDs not in pool: %s", ", ".join(missing))
            return DdnValidationResult(
                articles=[], error=UNKNOWN_DDN_MESSAGE, code=ValidationCode.UNKNOWN_DDN
            )

    return DdnValidationResult(articles=lines, error=None)


def validate_allocation(
    fields: Iterable[PriorityField],
    total_articles: int,
    ddn_text: Optional[str] = None,
    available_ids: Sequence[str] = (),
) -> AllocationValidationReport:
    """Run the capacity and DDN checks and report every error found."""
    if total_articles < 0:
        raise InvalidInputError("total_articles must be >= 0.")

    fields = list(fields)
    allocated = total_allocated(fields)
    over = is_over_allocated(total_articles, allocated)

    errors: list[str] = []
    codes: list[ValidationCode] = []
    if over:
        errors.append(
            f"Over-allocated: {allocated} articles allocated but only {total_articles} available"
        )
        codes.append(ValidationCode.OVER_ALLOCATED)

    ddn_error: Optional[str] = None
    if ddn_text is not None:
        ddn = validate_ddn(ddn_text, available_ids)
        ddn_error = ddn.error
        if ddn.error:
            errors.append(ddn.error)
            codes.append(ddn.code)

    return AllocationValidationReport(
        allocated_article_count=allocated,
        remaining_articles=remaining(total_articles, allocated),
        is_over_allocated=over,
        ddn_validation_error=ddn_error,
        errors=errors,
        codes=codes,
    )


def resolve_ddn_ids(
    ddn_articles: Sequence[str],
    ddn_text: Optional[str],
    available_ids: Sequence[str],
) -> list[str]:
    """DDN IDs for a distribution run.

    ``ddn_text`` wins over ``ddn_articles`` when given; it is validated
    against the pool first and an invalid list is rejected outright.
    """
    if ddn_text is None:
        return list(ddn_articles)
    ddn = validate_ddn(ddn_text, available_ids)
    if ddn.error:
        raise InvalidInputError(ddn.error)
    return ddn.articles

"""Arithmetic over priority-field counts: totals, remaining capacity, redistribution."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Sequence

from .errors import InvalidInputError
from .models import PriorityField


def total_allocated(fields: Iterable[PriorityField]) -> int:
    return sum(field.value or 0 for field in fields)


def remaining(total: int, allocated: int) -> int:
    """Articles still free; negative when over-allocated."""
    return total - allocated


def is_over_allocated(total: int, allocated: int) -> bool:
    """A zero total means the pool is not known yet, never an over-allocation."""
    return allocated > total and total > 0


def recalculate_total(fields: Iterable[PriorityField], changed_field_id: str, new_value: int) -> int:
    """Total as if one field held ``new_value``; used while a field is being edited."""
    if new_value < 0:
        raise InvalidInputError("new_value must be >= 0.")
    return sum(
        new_value if field.id == changed_field_id else (field.value or 0)
        for field in fields
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def proportional_distribution(total_articles: int, fields: Sequence[PriorityField]) -> Dict[int, int]:
    """Spread ``total_articles`` over ``fields``; keys are field indexes.

    With no current requests the split is even, the first ``total % n``
    people getting one extra. Otherwise each field keeps its share of the
    current total, rounded half up, and the last field takes whatever is
    left so the values always sum to ``total_articles``.
    """
    if total_articles < 0:
        raise InvalidInputError("total_articles must be >= 0.")
    distribution: Dict[int, int] = {}
    if not fields or total_articles == 0:
        return distribution

    current_total = total_allocated(fields)
    count = len(fields)

    if current_total == 0:
        per_person, extra = divmod(total_articles, count)
        for index in range(count):
            distribution[index] = per_person + (1 if index < extra else 0)
        return distribution

    distributed = 0
    for index, field in enumerate(fields):
        if index == count - 1:
            share = total_articles - distributed
        else:
            share = _round_half_up(total_articles * (field.value or 0) / current_total)
        distribution[index] = share
        distributed += share
    return distribution


def over_allocation_message(over_by: int) -> str:
    return f"You are allocating {over_by} more article{'' if over_by == 1 else 's'} than available."


def filtered_articles_message(filtered_count: int, filtered_ids: Sequence[str]) -> str:
    """Toast text for articles removed because they were already allocated."""
    if filtered_count == 0 or not filtered_ids:
        return ""
    listed = ", ".join(filtered_ids[:3])
    more = f" and {len(filtered_ids) - 3} more" if len(filtered_ids) > 3 else ""
    plural = "" if filtered_count == 1 else "s"
    return f"{filtered_count} article{plural} already allocated and removed: {listed}{more}"


def reorder_priority_fields(fields: Sequence[PriorityField], saved_order: Iterable[str]) -> List[PriorityField]:
    """Apply a saved ID order; fields missing from it (new members) go last."""
    by_id = {field.id: field for field in fields}
    ordered: List[PriorityField] = []
    used: set[str] = set()
    for field_id in saved_order:
        field = by_id.get(field_id)
        if field is not None and field_id not in used:
            ordered.append(field)
            used.add(field_id)
    ordered.extend(field for field in fields if field.id not in used)
    return ordered


def priority_order(fields: Iterable[PriorityField]) -> List[str]:
    return [field.id for field in fields]

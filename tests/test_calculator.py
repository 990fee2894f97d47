import pytest

from article_allocator.calculator import (
    filtered_articles_message,
    is_over_allocated,
    over_allocation_message,
    priority_order,
    proportional_distribution,
    recalculate_total,
    remaining,
    reorder_priority_fields,
    total_allocated,
)
from article_allocator.errors import InvalidInputError
from article_allocator.models import PriorityField


def fields(*values):
    return [
        PriorityField(id=str(index), label=f"Person {index}", value=value)
        for index, value in enumerate(values, start=1)
    ]


def test_total_allocated_treats_missing_value_as_zero():
    assert total_allocated(fields(2, None, 5)) == 7
    assert total_allocated([]) == 0


def test_remaining_can_go_negative():
    assert remaining(10, 4) == 6
    assert remaining(3, 5) == -2


@pytest.mark.parametrize(
    "total, allocated, expected",
    [(10, 10, False), (10, 11, True), (0, 5, False), (5, 0, False)],
)
def test_over_allocation_boundary(total, allocated, expected):
    assert is_over_allocated(total, allocated) is expected


def test_recalculate_total_does_not_mutate_fields():
    current = fields(2, 3)

    assert recalculate_total(current, "2", 10) == 12
    assert [f.value for f in current] == [2, 3]


def test_recalculate_total_rejects_negative_values():
    with pytest.raises(InvalidInputError):
        recalculate_total(fields(1), "1", -1)


def test_even_split_when_nothing_requested_yet():
    assert proportional_distribution(7, fields(0, 0, 0)) == {0: 3, 1: 2, 2: 2}


def test_proportional_split_keeps_ratio():
    assert proportional_distribution(6, fields(2, 1)) == {0: 4, 1: 2}


def test_half_shares_round_up_and_last_field_absorbs_remainder():
    # Each share is 2.5: the first three round up to 3 and the last takes 1.
    assert proportional_distribution(10, fields(1, 1, 1, 1)) == {0: 3, 1: 3, 2: 3, 3: 1}


@pytest.mark.parametrize("total", [0, 1, 2, 5, 9, 17, 100, 333])
@pytest.mark.parametrize("values", [(0,), (1,), (3, 0, 4), (1, 1, 1), (7, 2, 2, 9, 1)])
def test_proportional_distribution_sums_to_total(total, values):
    assert sum(proportional_distribution(total, fields(*values)).values()) == total


def test_proportional_distribution_with_no_fields_is_empty():
    assert proportional_distribution(5, []) == {}


def test_proportional_distribution_rejects_negative_total():
    with pytest.raises(InvalidInputError):
        proportional_distribution(-1, fields(1, 2))


def test_over_allocation_message_pluralizes():
    assert over_allocation_message(1) == "You are allocating 1 more article than available."
    assert over_allocation_message(3) == "You are allocating 3 more articles than available."


def test_filtered_articles_message_lists_first_three():
    ids = ["A1", "B2", "C3", "D4", "E5"]

    assert filtered_articles_message(5, ids) == (
        "5 articles already allocated and removed: A1, B2, C3 and 2 more"
    )
    assert filtered_articles_message(1, ["A1"]) == "1 article already allocated and removed: A1"
    assert filtered_articles_message(0, []) == ""


def test_reorder_priority_fields_appends_new_members():
    current = fields(1, 2, 3)

    reordered = reorder_priority_fields(current, ["3", "missing", "1", "3"])

    assert priority_order(reordered) == ["3", "1", "2"]

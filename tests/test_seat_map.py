import pytest

from app.core.errors import InvalidConfiguration
from app.services.seat_map import generate_seat_map, group_by_row, validate_layout


def test_two_by_two_hall():
    assert generate_seat_map([("A", 2), ("B", 2)]) == ["A1", "A2", "B1", "B2"]


@pytest.mark.parametrize(
    "layout",
    [
        [("A", 1)],
        [(label, 18) for label in "ABCDEFG"],
        [("A", 10), ("B", 12), ("C", 14), ("D", 3)],
    ],
)
def test_seat_ids_are_unique_and_count_matches(layout):
    seats = generate_seat_map(layout)
    assert len(seats) == sum(count for _, count in layout)
    assert len(set(seats)) == len(seats)


def test_seats_are_ordered_row_by_row_from_one():
    seats = generate_seat_map([("B", 3), ("A", 2)])
    assert seats == ["B1", "B2", "B3", "A1", "A2"]


def test_labels_are_stripped():
    assert validate_layout([(" A ", 2)]) == [("A", 2)]


@pytest.mark.parametrize(
    "layout, message",
    [
        ([], "at least one row"),
        ([("A", 0)], "at least one seat"),
        ([("A", -2)], "at least one seat"),
        ([("A", 2), ("A", 3)], "Duplicate row label"),
        ([("", 2)], "blank"),
        ([("A", 11), ("A1", 1)], "A11"),
    ],
)
def test_invalid_layouts_are_rejected(layout, message):
    with pytest.raises(InvalidConfiguration) as exc:
        generate_seat_map(layout)
    assert message in exc.value.message
    assert exc.value.to_dict()["error"] == "invalid_configuration"


def test_group_by_row():
    assert group_by_row([("A", 2), ("B", 1)]) == [("A", ["A1", "A2"]), ("B", ["B1"])]


def test_labels_may_contain_punctuation():
    assert generate_seat_map([("A,B", 2), ("C-1", 1)]) == ["A,B1", "A,B2", "C-11"]

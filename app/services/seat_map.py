from typing import Iterable, List, Sequence, Tuple

from app.core.errors import InvalidConfiguration

Row = Tuple[str, int]


def seat_id(row_label: str, seat_number: int) -> str:
    return f"{row_label}{seat_number}"


def validate_layout(rows: Iterable[Row]) -> List[Row]:
    """
    Check a hall layout and return it normalised (stripped labels, int counts).

    Raises InvalidConfiguration for an empty layout, blank or repeated labels,
    rows without seats, or two rows producing the same seat id
    (row "A" seat 11 and row "A1" seat 1 are both "A11").
    """
    normalised: List[Row] = []
    seen_labels = set()
    for label, count in rows:
        label = (label or "").strip()
        if not label:
            raise InvalidConfiguration("Row labels must not be blank")
        if label in seen_labels:
            raise InvalidConfiguration(f"Duplicate row label '{label}'")
        if int(count) <= 0:
            raise InvalidConfiguration(f"Row '{label}' must have at least one seat")
        seen_labels.add(label)
        normalised.append((label, int(count)))

    if not normalised:
        raise InvalidConfiguration("A hall needs at least one row")

    seen_seats = set()
    for label, count in normalised:
        for n in range(1, count + 1):
            sid = seat_id(label, n)
            if sid in seen_seats:
                raise InvalidConfiguration(f"Seat id '{sid}' is generated by more than one row")
            seen_seats.add(sid)
    return normalised


def generate_seat_map(rows: Sequence[Row]) -> List[str]:
    """Ordered seat ids for a layout, row by row, seats numbered from 1."""
    return [
        seat_id(label, n)
        for label, count in validate_layout(rows)
        for n in range(1, count + 1)
    ]


def group_by_row(rows: Sequence[Row]) -> List[Tuple[str, List[str]]]:
    return [
        (label, [seat_id(label, n) for n in range(1, count + 1)])
        for label, count in validate_layout(rows)
    ]

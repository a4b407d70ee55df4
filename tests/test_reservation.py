import threading
import time
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import make_show, make_user
from app.core.errors import (
    HoldExpired,
    HoldNotFound,
    InvalidHoldRequest,
    InvalidTransition,
    SeatUnavailable,
    ShowNotBookable,
    ShowNotFound,
)
from app.db.types import utcnow
from app.models import HoldBatch, HoldBatchStatus, SeatHold
from app.services import ledger
from app.services.availability import get_occupied_seats, get_seat_states
from app.services.reservation import (
    confirm_hold,
    expire_holds,
    get_hold,
    place_provisional_hold,
    release_hold,
)


def test_two_holders_scenario(db, show, user, other_user):
    batch = place_provisional_hold(db, show.show_id, ["A1", "B2"], user.id, ttl_seconds=600)
    assert batch.status == HoldBatchStatus.provisional.value
    assert batch.seat_list == ["A1", "B2"]
    assert get_occupied_seats(db, show.show_id) == {"A1", "B2"}

    with pytest.raises(SeatUnavailable) as exc:
        place_provisional_hold(db, show.show_id, ["A1"], other_user.id, ttl_seconds=600)
    assert exc.value.seat_ids == ["A1"]

    booking = confirm_hold(db, batch.id)
    assert booking.seat_ids == ["A1", "B2"]
    assert booking.total_amount == 2 * show.price
    assert booking.payment_state == "pending"

    ledger.cancel_booking(db, booking.id)
    assert get_occupied_seats(db, show.show_id) == set()


def test_hold_is_all_or_nothing(db, show, user, other_user):
    place_provisional_hold(db, show.show_id, ["A2"], user.id)

    with pytest.raises(SeatUnavailable) as exc:
        place_provisional_hold(db, show.show_id, ["A1", "A2", "B1"], other_user.id)
    assert exc.value.seat_ids == ["A2"]
    assert get_occupied_seats(db, show.show_id) == {"A2"}
    assert db.query(HoldBatch).filter(HoldBatch.holder_id == other_user.id).count() == 0


@pytest.mark.parametrize(
    "seats",
    [
        [],
        ["A1", "A1"],
        ["Z9"],
        ["A1", " "],
    ],
)
def test_malformed_selections_are_rejected(db, show, user, seats):
    with pytest.raises(InvalidHoldRequest):
        place_provisional_hold(db, show.show_id, seats, user.id)
    db.rollback()
    assert get_occupied_seats(db, show.show_id) == set()


def test_selection_is_capped(db, session_factory, user):
    big = make_show(session_factory, layout=[("A", 10)])
    with pytest.raises(InvalidHoldRequest):
        place_provisional_hold(db, big.show_id, [f"A{n}" for n in range(1, 8)], user.id)


@pytest.mark.parametrize("ttl", [0, -5, 3600])
def test_ttl_must_be_within_bounds(db, show, user, ttl):
    with pytest.raises(InvalidHoldRequest):
        place_provisional_hold(db, show.show_id, ["A1"], user.id, ttl_seconds=ttl)


def test_unknown_show(db, user):
    with pytest.raises(ShowNotFound):
        place_provisional_hold(db, uuid.uuid4(), ["A1"], user.id)


def test_started_show_is_not_bookable(db, session_factory, user):
    past = make_show(session_factory, starts_in=timedelta(minutes=-5))
    with pytest.raises(ShowNotBookable):
        place_provisional_hold(db, past.show_id, ["A1"], user.id)


def test_release_is_idempotent(db, show, user):
    batch = place_provisional_hold(db, show.show_id, ["A1", "A2"], user.id)

    first = release_hold(db, batch.id, holder_id=user.id)
    assert first.status == HoldBatchStatus.released.value
    assert get_occupied_seats(db, show.show_id) == set()

    second = release_hold(db, batch.id, holder_id=user.id)
    assert second.status == HoldBatchStatus.released.value
    assert get_occupied_seats(db, show.show_id) == set()


def test_released_seats_can_be_held_again(db, show, user, other_user):
    batch = place_provisional_hold(db, show.show_id, ["B1"], user.id)
    release_hold(db, batch.id)
    again = place_provisional_hold(db, show.show_id, ["B1"], other_user.id)
    assert again.holder_id == other_user.id


def test_confirm_released_hold_fails(db, show, user):
    batch = place_provisional_hold(db, show.show_id, ["A1"], user.id)
    release_hold(db, batch.id)
    with pytest.raises(HoldNotFound):
        confirm_hold(db, batch.id)


def test_release_confirmed_hold_fails(db, show, user):
    batch = place_provisional_hold(db, show.show_id, ["A1"], user.id)
    confirm_hold(db, batch.id)
    with pytest.raises(InvalidTransition):
        release_hold(db, batch.id)


def test_holds_of_other_users_are_not_found(db, show, user, other_user):
    batch = place_provisional_hold(db, show.show_id, ["A1"], user.id)
    with pytest.raises(HoldNotFound):
        confirm_hold(db, batch.id, holder_id=other_user.id)
    db.rollback()
    with pytest.raises(HoldNotFound):
        release_hold(db, batch.id, holder_id=other_user.id)


def test_expired_hold_disappears(db, show, user, other_user):
    batch = place_provisional_hold(db, show.show_id, ["A1"], user.id, ttl_seconds=1)
    assert get_occupied_seats(db, show.show_id) == {"A1"}
    db.commit()

    time.sleep(1.2)

    # Read path ignores the stale row even before any sweep ran
    assert get_occupied_seats(db, show.show_id) == set()
    with pytest.raises(HoldExpired):
        confirm_hold(db, batch.id)
    assert get_hold(db, batch.id).status == HoldBatchStatus.expired.value

    # The seat is free for the next holder
    place_provisional_hold(db, show.show_id, ["A1"], other_user.id)
    assert get_occupied_seats(db, show.show_id) == {"A1"}


def test_stale_hold_is_replaced_lazily(db, show, user, other_user):
    stale = place_provisional_hold(db, show.show_id, ["A1"], user.id, ttl_seconds=1)
    db.commit()
    time.sleep(1.2)

    fresh = place_provisional_hold(db, show.show_id, ["A1"], other_user.id)
    assert fresh.status == HoldBatchStatus.provisional.value
    assert get_hold(db, stale.id).status == HoldBatchStatus.expired.value


def test_sweep_expires_provisional_batches_only(db, show, user):
    pending = place_provisional_hold(db, show.show_id, ["A1"], user.id, ttl_seconds=60)
    kept = place_provisional_hold(db, show.show_id, ["A2"], user.id, ttl_seconds=60)
    confirm_hold(db, kept.id)

    swept = expire_holds(db, now=utcnow() + timedelta(seconds=61))
    assert swept == 1
    assert db.get(HoldBatch, pending.id).status == HoldBatchStatus.expired.value
    assert db.get(HoldBatch, kept.id).status == HoldBatchStatus.confirmed.value
    assert [h.seat_id for h in db.query(SeatHold).all()] == ["A2"]


def test_confirm_round_trip(db, session_factory, user):
    hall = make_show(session_factory, layout=[("A", 6), ("B", 6)], price=Decimal("12.50"))
    seats = ["B3", "A1", "A2"]
    batch = place_provisional_hold(db, hall.show_id, seats, user.id)

    booking = confirm_hold(db, batch.id, holder_id=user.id, special_requests="Aisle please")
    assert booking.seat_ids == seats
    assert booking.quantity == 3
    assert booking.total_amount == Decimal("37.50")
    assert booking.user_id == user.id
    assert booking.special_requests == "Aisle please"
    assert booking.booking_number.startswith("CNX-")
    assert get_seat_states(db, hall.show_id) == {"B3": "booked", "A1": "booked", "A2": "booked"}


def test_confirm_twice_returns_same_booking(db, show, user):
    batch = place_provisional_hold(db, show.show_id, ["A1"], user.id)
    first = confirm_hold(db, batch.id)
    second = confirm_hold(db, batch.id)
    assert first.id == second.id


def test_confirm_keeps_seats_whose_label_has_a_comma(db, session_factory, user):
    odd = make_show(session_factory, layout=[("A,B", 2), ("C", 2)])
    batch = place_provisional_hold(db, odd.show_id, ["A,B1", "C2"], user.id)
    assert batch.seat_list == ["A,B1", "C2"]

    booking = confirm_hold(db, batch.id)
    assert booking.seat_ids == ["A,B1", "C2"]
    assert booking.total_amount == 2 * odd.price
    assert get_hold(db, batch.id).seat_list == ["A,B1", "C2"]


def test_seat_states_distinguish_own_selection(db, show, user, other_user):
    mine = place_provisional_hold(db, show.show_id, ["A1"], user.id)
    place_provisional_hold(db, show.show_id, ["A2"], other_user.id)
    booked = place_provisional_hold(db, show.show_id, ["B1"], other_user.id)
    confirm_hold(db, booked.id)

    assert get_seat_states(db, show.show_id, holder_id=user.id) == {
        "A1": "selected",
        "A2": "held",
        "B1": "booked",
    }
    assert mine.seat_list == ["A1"]


# ---------------------------------------------------------------------------
# Races: every caller has its own session, as concurrent requests would
# ---------------------------------------------------------------------------


def _race(session_factory, attempts):
    barrier = threading.Barrier(len(attempts))
    outcomes = {}

    def run(name, show_id, seats, holder_id):
        session = session_factory()
        try:
            barrier.wait()
            place_provisional_hold(session, show_id, seats, holder_id)
            outcomes[name] = "won"
        except SeatUnavailable:
            outcomes[name] = "lost"
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(name, *args)) for name, args in attempts.items()]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def test_concurrent_holds_on_one_seat_have_one_winner(session_factory, show):
    holders = [make_user(session_factory).id for _ in range(8)]
    outcomes = _race(
        session_factory,
        {f"h{i}": (show.show_id, ["A1"], holder) for i, holder in enumerate(holders)},
    )

    assert sorted(outcomes.values()) == ["lost"] * 7 + ["won"]
    with session_factory() as session:
        holds = session.query(SeatHold).filter(SeatHold.show_id == show.show_id).all()
        assert [h.seat_id for h in holds] == ["A1"]


def test_concurrent_overlapping_batches(session_factory, show):
    u1 = make_user(session_factory).id
    u2 = make_user(session_factory).id
    outcomes = _race(
        session_factory,
        {
            "left": (show.show_id, ["A1", "A2"], u1),
            "right": (show.show_id, ["A2", "B1"], u2),
        },
    )

    assert sorted(outcomes.values()) == ["lost", "won"]
    winner = "left" if outcomes["left"] == "won" else "right"
    expected = {"left": {"A1", "A2"}, "right": {"A2", "B1"}}[winner]
    with session_factory() as session:
        assert get_occupied_seats(session, show.show_id) == expected

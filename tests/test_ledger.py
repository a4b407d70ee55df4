import random
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import make_show, make_user
from app.core.errors import BookingNotFound, InvalidTransition, PaymentFailed, ScheduleConflict
from app.db.types import utcnow
from app.models import Booking, Hall, HoldBatch, HoldBatchStatus, Movie, Payment, PaymentStatus, Show
from app.services import ledger
from app.services.analytics import dashboard_stats
from app.services.availability import get_occupied_seats
from app.services.payments import PaymentGateway, SimulatedPaymentGateway, pay_booking
from app.services.reservation import confirm_hold, place_provisional_hold
from app.services.shows import cancel_show, complete_past_shows, schedule_show


class RecordingGateway(PaymentGateway):
    def __init__(self, approve=True):
        self.approve = approve
        self.charges = []

    def charge(self, booking_id, amount, idempotency_key):
        self.charges.append((booking_id, amount, idempotency_key))
        return self.approve


def _book(db, show_id, seats, holder_id):
    batch = place_provisional_hold(db, show_id, seats, holder_id)
    return confirm_hold(db, batch.id)


# ---------------------------------------------------------------------------
# Payment-state machine
# ---------------------------------------------------------------------------


def test_pending_to_paid_to_cancelled(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)

    paid = ledger.mark_paid(db, booking.id)
    assert paid.payment_state == "paid"
    assert paid.paid_at is not None
    assert get_occupied_seats(db, show.show_id) == {"A1"}

    refunded = ledger.cancel_booking(db, booking.id, reason="refund")
    assert refunded.payment_state == "cancelled"
    assert refunded.cancel_reason == "refund"
    assert get_occupied_seats(db, show.show_id) == set()
    assert db.get(HoldBatch, booking.hold_batch_id).status == HoldBatchStatus.released.value


def test_mark_paid_twice_is_a_no_op(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    first = ledger.mark_paid(db, booking.id)
    second = ledger.mark_paid(db, booking.id)
    assert first.paid_at == second.paid_at


def test_cancelled_is_terminal(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    ledger.cancel_booking(db, booking.id)

    with pytest.raises(InvalidTransition):
        ledger.mark_paid(db, booking.id)
    with pytest.raises(InvalidTransition):
        ledger.cancel_booking(db, booking.id)


def test_users_only_see_their_own_bookings(db, show, user, other_user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    with pytest.raises(BookingNotFound):
        ledger.cancel_booking(db, booking.id, user_id=other_user.id)

    mine, total = ledger.list_for_user(db, user.id)
    assert total == 1 and mine[0].id == booking.id
    assert ledger.list_for_user(db, other_user.id) == ([], 0)


def test_list_all_filters(db, session_factory, show, user, other_user):
    second = make_show(session_factory)
    a = _book(db, show.show_id, ["A1"], user.id)
    _book(db, second.show_id, ["B2"], other_user.id)
    ledger.mark_paid(db, a.id)

    _, total = ledger.list_all(db)
    assert total == 2
    paid, total = ledger.list_all(db, payment_state="paid")
    assert total == 1 and paid[0].id == a.id
    by_movie, total = ledger.list_all(db, movie_id=second.movie_id)
    assert total == 1 and by_movie[0].show_id == second.show_id


def test_unpaid_bookings_time_out(db, show, user):
    stale = _book(db, show.show_id, ["A1"], user.id)
    paid = _book(db, show.show_id, ["A2"], user.id)
    ledger.mark_paid(db, paid.id)

    assert ledger.cancel_unpaid_bookings(db, 900) == 0
    later = utcnow() + timedelta(seconds=901)
    assert ledger.cancel_unpaid_bookings(db, 900, now=later) == 1

    assert ledger.get_booking(db, stale.id).payment_state == "cancelled"
    assert ledger.get_booking(db, stale.id).cancel_reason == "payment_timeout"
    assert get_occupied_seats(db, show.show_id) == {"A2"}


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def test_payment_marks_booking_paid(db, show, user):
    booking = _book(db, show.show_id, ["A1", "A2"], user.id)
    gateway = RecordingGateway()

    paid = pay_booking(db, booking.id, gateway, user_id=user.id, idempotency_key="k-1")
    assert paid.payment_state == "paid"
    assert gateway.charges == [(booking.id, Decimal("24.00"), "k-1")]


def test_same_idempotency_key_charges_once(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    gateway = RecordingGateway()

    pay_booking(db, booking.id, gateway, idempotency_key="k-1")
    again = pay_booking(db, booking.id, gateway, idempotency_key="k-1")
    assert again.payment_state == "paid"
    assert len(gateway.charges) == 1
    assert db.query(Payment).count() == 1


def test_declined_payment_keeps_booking_pending(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)

    with pytest.raises(PaymentFailed):
        pay_booking(db, booking.id, RecordingGateway(approve=False), idempotency_key="k-1")
    assert ledger.get_booking(db, booking.id).payment_state == "pending"
    assert get_occupied_seats(db, show.show_id) == {"A1"}

    # Replaying the declined key reports the same outcome without charging
    gateway = RecordingGateway()
    with pytest.raises(PaymentFailed):
        pay_booking(db, booking.id, gateway, idempotency_key="k-1")
    assert gateway.charges == []

    # A new attempt goes through
    assert pay_booking(db, booking.id, gateway, idempotency_key="k-2").payment_state == "paid"


def test_cancelled_booking_cannot_be_paid(db, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    ledger.cancel_booking(db, booking.id)
    with pytest.raises(InvalidTransition):
        pay_booking(db, booking.id, RecordingGateway(), idempotency_key="k-1")


class CancellingGateway(RecordingGateway):
    """Approves the charge after another session cancelled the booking."""

    def __init__(self, session_factory):
        super().__init__()
        self.session_factory = session_factory

    def charge(self, booking_id, amount, idempotency_key):
        # A second writer must get the database while the charge is in flight
        with self.session_factory() as other:
            ledger.cancel_booking(other, booking_id, reason="payment_timeout")
        return super().charge(booking_id, amount, idempotency_key)


def test_approved_charge_on_cancelled_booking_is_kept_for_refund(db, session_factory, show, user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    gateway = CancellingGateway(session_factory)

    with pytest.raises(InvalidTransition):
        pay_booking(db, booking.id, gateway, idempotency_key="k-1")
    assert len(gateway.charges) == 1

    payment = db.query(Payment).filter(Payment.idempotency_key == "k-1").one()
    assert payment.status == PaymentStatus.refund_required.value
    assert payment.amount == Decimal("12.00")
    assert ledger.get_booking(db, booking.id).payment_state == "cancelled"

    # Replaying the key reports the same outcome without a second charge
    with pytest.raises(InvalidTransition):
        pay_booking(db, booking.id, gateway, idempotency_key="k-1")
    assert len(gateway.charges) == 1


def test_simulated_gateway_uses_success_rate():
    always = SimulatedPaymentGateway(success_rate=1.0)
    never = SimulatedPaymentGateway(success_rate=0.0)
    seeded = SimulatedPaymentGateway(success_rate=0.5, rng=random.Random(7))

    assert always.charge(None, Decimal("12.00"), "a") is True
    assert never.charge(None, Decimal("12.00"), "b") is False
    outcomes = {seeded.charge(None, Decimal("12.00"), str(i)) for i in range(50)}
    assert outcomes == {True, False}


# ---------------------------------------------------------------------------
# Shows
# ---------------------------------------------------------------------------


def test_cancel_show_cancels_bookings_and_releases_holds(db, show, user, other_user):
    booking = _book(db, show.show_id, ["A1"], user.id)
    ledger.mark_paid(db, booking.id)
    place_provisional_hold(db, show.show_id, ["B1"], other_user.id)

    cancelled = cancel_show(db, show.show_id)
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at is not None
    refreshed = ledger.get_booking(db, booking.id)
    assert refreshed.payment_state == "cancelled"
    assert refreshed.cancel_reason == "show_cancelled"
    assert get_occupied_seats(db, show.show_id) == set()

    with pytest.raises(InvalidTransition):
        cancel_show(db, show.show_id)


def test_schedule_show_rejects_overlaps(db, show):
    hall = db.get(Hall, show.hall_id)
    movie = db.get(Movie, show.movie_id)
    existing = db.get(Show, show.show_id)

    with pytest.raises(ScheduleConflict):
        schedule_show(db, movie, hall, existing.starts_at + timedelta(minutes=30), Decimal("12.00"))
    db.rollback()
    with pytest.raises(ScheduleConflict):
        schedule_show(db, movie, hall, utcnow() - timedelta(hours=1), Decimal("12.00"))

    later = existing.ends_at + timedelta(minutes=20)
    scheduled = schedule_show(db, movie, hall, later, Decimal("14.00"))
    assert scheduled.ends_at == later + timedelta(minutes=movie.runtime_minutes)


def test_concurrent_scheduling_in_one_hall_has_one_winner(session_factory, show):
    with session_factory() as session:
        slot = session.get(Show, show.show_id).ends_at + timedelta(minutes=20)
    barrier = threading.Barrier(4)
    outcomes = []

    def run():
        session = session_factory()
        try:
            barrier.wait()
            movie = session.get(Movie, show.movie_id)
            hall = session.get(Hall, show.hall_id)
            schedule_show(session, movie, hall, slot, Decimal("12.00"))
            outcomes.append("scheduled")
        except ScheduleConflict:
            outcomes.append("conflict")
        finally:
            session.close()

    threads = [threading.Thread(target=run) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["conflict"] * 3 + ["scheduled"]
    with session_factory() as session:
        assert session.query(Show).filter(Show.hall_id == show.hall_id).count() == 2


def test_complete_past_shows(db, session_factory):
    past = make_show(session_factory, starts_in=timedelta(hours=-4))
    upcoming = make_show(session_factory)

    assert complete_past_shows(db) == 1
    assert db.get(Show, past.show_id).status == "completed"
    assert db.get(Show, upcoming.show_id).status == "active"


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def test_dashboard_counts_from_ledger(db, session_factory, show, user, other_user, admin):
    paid = _book(db, show.show_id, ["A1", "A2"], user.id)
    ledger.mark_paid(db, paid.id)
    _book(db, show.show_id, ["B1"], other_user.id)
    dropped = _book(db, show.show_id, ["B2"], other_user.id)
    ledger.cancel_booking(db, dropped.id)

    stats = dashboard_stats(db)
    assert stats["total_bookings"] == 2
    assert stats["total_revenue"] == Decimal("24.00")
    assert stats["active_movies"] == 1
    assert stats["total_users"] == 2
    assert len(stats["daily"]) == 7
    today = stats["daily"][-1]
    assert today["total_bookings"] == 2
    assert today["total_revenue"] == Decimal("24.00")
    assert db.query(Booking).count() == 3

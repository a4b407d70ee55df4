"""
Booking ledger: durable bookings and their payment-state machine.

    pending -> paid         payment confirmed
    pending -> cancelled    user/admin cancel, unpaid timeout, show cancelled
    paid    -> cancelled    refund path

``cancelled`` is terminal and nothing re-enters ``pending``. Every transition
is a conditional UPDATE on the current state, so two concurrent transitions
on the same booking cannot both apply.
"""
import logging
import random
import string
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from app.core.errors import BookingNotFound, InvalidTransition
from app.db.types import utcnow
from app.models.booking import Booking, BookingSeat, PaymentState
from app.models.reservation import HoldBatch, HoldBatchStatus, SeatHold
from app.models.show import Show

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    PaymentState.pending: {PaymentState.paid, PaymentState.cancelled},
    PaymentState.paid: {PaymentState.cancelled},
    PaymentState.cancelled: set(),
}


def _sources_of(target: PaymentState) -> List[str]:
    return [src.value for src, targets in ALLOWED_TRANSITIONS.items() if target in targets]


def _generate_booking_number(db: Session) -> str:
    """Generate a unique 'CNX-XXXXXXXX' booking reference."""
    chars = string.ascii_uppercase + string.digits
    while True:
        number = "CNX-" + "".join(random.choices(chars, k=8))
        if not db.query(Booking.id).filter(Booking.booking_number == number).first():
            return number


def _booking_query(db: Session):
    return db.query(Booking).options(
        joinedload(Booking.show).joinedload(Show.movie),
        joinedload(Booking.show).joinedload(Show.hall),
        joinedload(Booking.seats),
        joinedload(Booking.user),
    )


def create_booking(
    db: Session,
    batch: HoldBatch,
    show: Show,
    special_requests: Optional[str] = None,
) -> Booking:
    """Add a pending booking for a confirmed hold batch. The caller commits."""
    seats = batch.seat_list
    booking = Booking(
        user_id=batch.holder_id,
        show_id=show.id,
        hold_batch_id=batch.id,
        booking_number=_generate_booking_number(db),
        quantity=len(seats),
        total_amount=Decimal(show.price) * len(seats),
        payment_state=PaymentState.pending.value,
        special_requests=special_requests,
    )
    booking.seats = [BookingSeat(seat_id=sid, position=i) for i, sid in enumerate(seats)]
    db.add(booking)
    return booking


def get_booking(db: Session, booking_id: UUID, user_id: Optional[UUID] = None) -> Booking:
    query = _booking_query(db).filter(Booking.id == booking_id)
    if user_id is not None:
        query = query.filter(Booking.user_id == user_id)
    booking = query.first()
    if not booking:
        raise BookingNotFound("Booking not found")
    return booking


def _apply_transition(db: Session, booking_id: UUID, target: PaymentState, values: dict) -> bool:
    updated = (
        db.query(Booking)
        .filter(
            Booking.id == booking_id,
            Booking.payment_state.in_(_sources_of(target)),
        )
        .update({"payment_state": target.value, **values}, synchronize_session=False)
    )
    return updated == 1


def _release_booking_holds(db: Session, booking: Booking, now: datetime) -> int:
    released = (
        db.query(SeatHold)
        .filter(SeatHold.batch_id == booking.hold_batch_id)
        .delete(synchronize_session=False)
    )
    db.query(HoldBatch).filter(HoldBatch.id == booking.hold_batch_id).update(
        {"status": HoldBatchStatus.released.value, "closed_at": now},
        synchronize_session=False,
    )
    return released


def mark_paid(db: Session, booking_id: UUID) -> Booking:
    """pending -> paid. Marking an already-paid booking again is a no-op."""
    booking = get_booking(db, booking_id)
    if booking.payment_state == PaymentState.paid.value:
        return booking

    now = utcnow()
    if not _apply_transition(db, booking_id, PaymentState.paid, {"paid_at": now}):
        db.rollback()
        booking = get_booking(db, booking_id)
        if booking.payment_state == PaymentState.paid.value:
            return booking
        raise InvalidTransition(
            f"Booking {booking.booking_number} is {booking.payment_state} and cannot be paid"
        )

    db.commit()
    booking = get_booking(db, booking_id)
    logger.info("Booking %s marked paid.", booking.booking_number)
    return booking


def cancel_booking(
    db: Session,
    booking_id: UUID,
    user_id: Optional[UUID] = None,
    reason: str = "cancelled_by_user",
    commit: bool = True,
) -> Booking:
    """pending/paid -> cancelled, releasing the booked seats back to the show."""
    booking = get_booking(db, booking_id, user_id)
    now = utcnow()
    if not _apply_transition(
        db, booking_id, PaymentState.cancelled, {"cancelled_at": now, "cancel_reason": reason}
    ):
        db.rollback()
        raise InvalidTransition(
            f"Booking {booking.booking_number} is already {PaymentState.cancelled.value}"
        )

    released = _release_booking_holds(db, booking, now)
    if commit:
        db.commit()
        booking = get_booking(db, booking_id)
    logger.info(
        "Booking %s cancelled (%s); released %d seat(s).",
        booking.booking_number, reason, released,
    )
    return booking


def list_for_user(
    db: Session,
    user_id: UUID,
    payment_state: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Booking], int]:
    query = _booking_query(db).filter(Booking.user_id == user_id)
    if payment_state:
        query = query.filter(Booking.payment_state == payment_state)
    total = query.count()
    items = (
        query.order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def list_all(
    db: Session,
    payment_state: Optional[str] = None,
    show_id: Optional[UUID] = None,
    movie_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Booking], int]:
    query = _booking_query(db)
    if payment_state:
        query = query.filter(Booking.payment_state == payment_state)
    if show_id:
        query = query.filter(Booking.show_id == show_id)
    if movie_id:
        query = query.join(Show, Show.id == Booking.show_id).filter(Show.movie_id == movie_id)
    total = query.count()
    items = (
        query.order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def cancel_unpaid_bookings(db: Session, timeout_seconds: int, now: Optional[datetime] = None) -> int:
    """
    Cancel pending bookings created more than ``timeout_seconds`` ago.

    Used by the background sweep so that abandoned checkouts and failed
    payments give their seats back. Returns the number of bookings cancelled.
    """
    if timeout_seconds <= 0:
        return 0
    now = now or utcnow()
    cutoff = now - timedelta(seconds=timeout_seconds)
    stale_ids = [
        row.id
        for row in db.query(Booking.id).filter(
            Booking.payment_state == PaymentState.pending.value,
            Booking.created_at <= cutoff,
        )
    ]

    cancelled = 0
    for booking_id in stale_ids:
        try:
            cancel_booking(db, booking_id, reason="payment_timeout")
            cancelled += 1
        except InvalidTransition:
            # Paid or cancelled between the scan and the update
            continue
    return cancelled

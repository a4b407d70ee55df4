"""
Reservation engine: provisional seat holds, confirmation and release.

Concurrency model
-----------------
``seat_holds`` only contains active holds and carries a unique index on
(show_id, seat_id). Placing a hold inserts one row per seat inside a single
transaction, so the index is the per-seat compare-and-set: when two requests
race for a seat, the first to commit wins and the other hits an
IntegrityError, rolls back the whole batch and reports SeatUnavailable.

Batch status changes (provisional -> confirmed / released / expired) are
conditional UPDATEs whose rowcount is checked, so confirm, release and the
expiry sweep can race on the same batch and exactly one of them applies.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
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
from app.models.booking import Booking
from app.models.hall import Hall
from app.models.reservation import HoldBatch, HoldBatchStatus, HoldState, SeatHold
from app.models.show import Show, ShowStatus
from app.services import ledger
from app.services.availability import get_occupied_seats
from app.services.seat_map import generate_seat_map

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_bookable_show(db: Session, show_id: UUID, now: datetime) -> Show:
    show = (
        db.query(Show)
        .options(selectinload(Show.hall).selectinload(Hall.rows))
        .filter(Show.id == show_id)
        .first()
    )
    if not show:
        raise ShowNotFound("Show not found")
    if show.status != ShowStatus.active.value:
        raise ShowNotBookable(f"Show is {show.status}")
    if show.starts_at <= now:
        raise ShowNotBookable("Show has already started")
    return show


def _normalise_seat_ids(seat_ids: Iterable[str]) -> List[str]:
    requested = [s.strip() for s in seat_ids]
    if not requested or any(not s for s in requested):
        raise InvalidHoldRequest("Select at least one seat")
    duplicates = sorted({s for s in requested if requested.count(s) > 1})
    if duplicates:
        raise InvalidHoldRequest(f"Seat(s) requested more than once: {', '.join(duplicates)}")
    if len(requested) > settings.MAX_SEATS_PER_HOLD:
        raise InvalidHoldRequest(
            f"You cannot select more than {settings.MAX_SEATS_PER_HOLD} seats"
        )
    return requested


def _expire_batches(db: Session, batch_ids: Iterable[UUID], now: datetime) -> int:
    """
    Move provisional batches past their TTL to ``expired`` and drop their holds.

    Only batches still provisional and actually expired are touched, so a batch
    confirmed in the meantime keeps its seats. The caller commits.
    """
    batch_ids = list(batch_ids)
    if not batch_ids:
        return 0
    expired = (
        db.query(HoldBatch)
        .filter(
            HoldBatch.id.in_(batch_ids),
            HoldBatch.status == HoldBatchStatus.provisional.value,
            HoldBatch.expires_at <= now,
        )
        .update(
            {"status": HoldBatchStatus.expired.value, "closed_at": now},
            synchronize_session=False,
        )
    )
    db.query(SeatHold).filter(
        SeatHold.batch_id.in_(batch_ids),
        SeatHold.state == HoldState.provisional.value,
        SeatHold.expires_at <= now,
    ).delete(synchronize_session=False)
    return expired


def _get_batch(db: Session, batch_id: UUID, holder_id: Optional[UUID], lock: bool = False) -> HoldBatch:
    query = db.query(HoldBatch).filter(HoldBatch.id == batch_id)
    if lock:
        query = query.with_for_update()
    batch = query.first()
    if not batch or (holder_id is not None and batch.holder_id != holder_id):
        raise HoldNotFound("Hold not found")
    return batch


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def place_provisional_hold(
    db: Session,
    show_id: UUID,
    seat_ids: Iterable[str],
    holder_id: UUID,
    ttl_seconds: Optional[int] = None,
) -> HoldBatch:
    """
    Hold every seat in ``seat_ids`` for ``holder_id``, or none of them.

    Raises InvalidHoldRequest for malformed selections, ShowNotFound /
    ShowNotBookable for shows that can't be booked, and SeatUnavailable
    (listing the conflicting seats) when any seat already has an active hold.
    """
    ttl = settings.HOLD_TTL_SECONDS if ttl_seconds is None else int(ttl_seconds)
    if ttl <= 0 or ttl > settings.MAX_HOLD_TTL_SECONDS:
        raise InvalidHoldRequest(
            f"ttl_seconds must be between 1 and {settings.MAX_HOLD_TTL_SECONDS}"
        )
    requested = _normalise_seat_ids(seat_ids)

    now = utcnow()
    show = _load_bookable_show(db, show_id, now)
    valid = set(generate_seat_map(show.hall.layout))
    unknown = [s for s in requested if s not in valid]
    if unknown:
        raise InvalidHoldRequest(f"Seat(s) not in hall {show.hall.name}: {', '.join(unknown)}")

    # Lazily expire provisional holds on these seats whose TTL already passed
    stale = {
        h.batch_id
        for h in db.query(SeatHold).filter(
            SeatHold.show_id == show_id,
            SeatHold.seat_id.in_(requested),
            SeatHold.state == HoldState.provisional.value,
            SeatHold.expires_at <= now,
        )
    }
    if stale:
        count = _expire_batches(db, stale, now)
        logger.info("Expired %d stale hold batch(es) on show %s.", count, show_id)

    taken = {
        h.seat_id
        for h in db.query(SeatHold.seat_id).filter(
            SeatHold.show_id == show_id,
            SeatHold.seat_id.in_(requested),
        )
    }
    if taken:
        db.commit()
        logger.info("Hold rejected for %s on show %s: %s taken.", holder_id, show_id, sorted(taken))
        raise SeatUnavailable(taken)

    expires_at = now + timedelta(seconds=ttl)
    batch = HoldBatch(
        id=uuid.uuid4(),
        show_id=show_id,
        holder_id=holder_id,
        seat_ids=requested,
        status=HoldBatchStatus.provisional.value,
        expires_at=expires_at,
    )
    db.add(batch)
    for sid in requested:
        db.add(SeatHold(
            show_id=show_id,
            seat_id=sid,
            batch_id=batch.id,
            holder_id=holder_id,
            state=HoldState.provisional.value,
            expires_at=expires_at,
        ))

    try:
        db.commit()
    except IntegrityError:
        # Lost the race: another batch committed one of these seats first
        db.rollback()
        taken = get_occupied_seats(db, show_id) & set(requested)
        logger.info("Hold race lost for %s on show %s: %s.", holder_id, show_id, sorted(taken))
        raise SeatUnavailable(taken or requested)

    db.refresh(batch)
    logger.info(
        "Placed hold %s on show %s for %s: %s (expires %s).",
        batch.id, show_id, holder_id, batch.seat_ids, expires_at.isoformat(),
    )
    return batch


def confirm_hold(
    db: Session,
    batch_id: UUID,
    holder_id: Optional[UUID] = None,
    special_requests: Optional[str] = None,
) -> Booking:
    """
    Turn a provisional hold batch into a pending booking.

    Confirming an already-confirmed batch returns its booking. Raises
    HoldNotFound for unknown or released batches and HoldExpired when the
    TTL passed before confirmation.
    """
    now = utcnow()
    batch = _get_batch(db, batch_id, holder_id, lock=True)

    if batch.status == HoldBatchStatus.confirmed.value:
        return ledger.get_booking(db, batch.booking.id)
    if batch.status == HoldBatchStatus.released.value:
        raise HoldNotFound("Hold was released")
    if batch.status == HoldBatchStatus.expired.value or batch.expires_at <= now:
        _expire_batches(db, [batch.id], now)
        db.commit()
        raise HoldExpired("Hold expired before confirmation; select your seats again")

    show = db.query(Show).filter(Show.id == batch.show_id).first()
    if show.status != ShowStatus.active.value:
        raise ShowNotBookable(f"Show is {show.status}")

    claimed = (
        db.query(HoldBatch)
        .filter(
            HoldBatch.id == batch.id,
            HoldBatch.status == HoldBatchStatus.provisional.value,
            HoldBatch.expires_at > now,
        )
        .update(
            {"status": HoldBatchStatus.confirmed.value, "closed_at": now},
            synchronize_session=False,
        )
    )
    seats = batch.seat_list
    flipped = (
        db.query(SeatHold)
        .filter(
            SeatHold.batch_id == batch.id,
            SeatHold.state == HoldState.provisional.value,
        )
        .update({"state": HoldState.confirmed.value}, synchronize_session=False)
    )
    if claimed != 1 or flipped != len(seats):
        db.rollback()
        logger.warning("Confirm of hold %s lost to a concurrent release/expiry.", batch_id)
        raise HoldExpired("Hold is no longer active; select your seats again")

    booking = ledger.create_booking(db, batch, show, special_requests=special_requests)
    db.commit()

    logger.info(
        "Confirmed hold %s as booking %s (%d seat(s), %s).",
        batch_id, booking.booking_number, booking.quantity, booking.total_amount,
    )
    return ledger.get_booking(db, booking.id)


def get_hold(db: Session, batch_id: UUID, holder_id: Optional[UUID] = None) -> HoldBatch:
    """Current state of a batch; a provisional batch past its TTL reads as expired."""
    now = utcnow()
    batch = _get_batch(db, batch_id, holder_id)
    if batch.status == HoldBatchStatus.provisional.value and batch.expires_at <= now:
        _expire_batches(db, [batch.id], now)
        db.commit()
        db.refresh(batch)
    return batch


def release_hold(db: Session, batch_id: UUID, holder_id: Optional[UUID] = None) -> HoldBatch:
    """
    Give back the seats of a provisional batch. Idempotent: releasing a batch
    that is already released or expired succeeds without changes.
    """
    now = utcnow()
    batch = _get_batch(db, batch_id, holder_id, lock=True)

    if batch.status in (HoldBatchStatus.released.value, HoldBatchStatus.expired.value):
        return batch
    if batch.status == HoldBatchStatus.confirmed.value:
        raise InvalidTransition("Hold is already confirmed; cancel the booking instead")

    released = (
        db.query(HoldBatch)
        .filter(
            HoldBatch.id == batch.id,
            HoldBatch.status == HoldBatchStatus.provisional.value,
        )
        .update(
            {"status": HoldBatchStatus.released.value, "closed_at": now},
            synchronize_session=False,
        )
    )
    if released != 1:
        db.rollback()
        batch = _get_batch(db, batch_id, holder_id)
        if batch.status == HoldBatchStatus.confirmed.value:
            raise InvalidTransition("Hold is already confirmed; cancel the booking instead")
        return batch

    db.query(SeatHold).filter(
        SeatHold.batch_id == batch.id,
        SeatHold.state == HoldState.provisional.value,
    ).delete(synchronize_session=False)
    db.commit()
    db.refresh(batch)
    logger.info("Released hold %s (%s).", batch_id, batch.seat_ids)
    return batch


def release_show_holds(db: Session, show_id: UUID) -> int:
    """Release every provisional batch of a show. The caller commits."""
    now = utcnow()
    batch_ids = [
        row.id
        for row in db.query(HoldBatch.id).filter(
            HoldBatch.show_id == show_id,
            HoldBatch.status == HoldBatchStatus.provisional.value,
        )
    ]
    if not batch_ids:
        return 0
    count = (
        db.query(HoldBatch)
        .filter(
            HoldBatch.id.in_(batch_ids),
            HoldBatch.status == HoldBatchStatus.provisional.value,
        )
        .update(
            {"status": HoldBatchStatus.released.value, "closed_at": now},
            synchronize_session=False,
        )
    )
    db.query(SeatHold).filter(
        SeatHold.batch_id.in_(batch_ids),
        SeatHold.state == HoldState.provisional.value,
    ).delete(synchronize_session=False)
    return count


def expire_holds(db: Session, now: Optional[datetime] = None) -> int:
    """Sweep: expire every provisional batch whose TTL has passed."""
    now = now or utcnow()
    batch_ids = [
        row.id
        for row in db.query(HoldBatch.id).filter(
            HoldBatch.status == HoldBatchStatus.provisional.value,
            HoldBatch.expires_at <= now,
        )
    ]
    count = _expire_batches(db, batch_ids, now)
    db.commit()
    if count:
        logger.info("Expired %d provisional hold batch(es).", count)
    return count

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from app.core.errors import InvalidTransition, ScheduleConflict, ShowNotFound
from app.db.types import utcnow
from app.models.booking import Booking, PaymentState
from app.models.hall import Hall
from app.models.movie import Movie
from app.models.show import Show, ShowStatus
from app.services import ledger
from app.services.reservation import release_show_holds

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME_MINUTES = 150
CLEANUP_MINUTES = 15


def schedule_show(
    db: Session,
    movie: Movie,
    hall: Hall,
    starts_at: datetime,
    price: Decimal,
    created_by: Optional[UUID] = None,
) -> Show:
    """
    Schedule ``movie`` in ``hall``.

    The show occupies the hall for the movie's runtime plus a cleanup gap;
    another active show in the same hall may not overlap that window.
    """
    if starts_at.tzinfo is None:
        starts_at = starts_at.replace(tzinfo=timezone.utc)
    if starts_at <= utcnow():
        raise ScheduleConflict("Shows can only be scheduled in the future")
    if price <= 0:
        raise ScheduleConflict("Price per seat must be positive")

    runtime = movie.runtime_minutes or DEFAULT_RUNTIME_MINUTES
    ends_at = starts_at + timedelta(minutes=runtime)
    busy_until = ends_at + timedelta(minutes=CLEANUP_MINUTES)

    # Serialise scheduling per hall so two requests can't both pass the clash check
    db.query(Hall).filter(Hall.id == hall.id).with_for_update().one()

    clash = (
        db.query(Show)
        .filter(
            Show.hall_id == hall.id,
            Show.status == ShowStatus.active.value,
            Show.starts_at < busy_until,
            Show.ends_at > starts_at - timedelta(minutes=CLEANUP_MINUTES),
        )
        .first()
    )
    if clash:
        raise ScheduleConflict(
            f"Hall {hall.name} already has a show from "
            f"{clash.starts_at.isoformat()} to {clash.ends_at.isoformat()}"
        )

    show = Show(
        movie_id=movie.id,
        hall_id=hall.id,
        starts_at=starts_at,
        ends_at=ends_at,
        price=price,
        status=ShowStatus.active.value,
        created_by=created_by,
    )
    db.add(show)
    db.commit()
    db.refresh(show)
    logger.info("Scheduled %s in %s at %s.", movie.title, hall.name, starts_at.isoformat())
    return show


def cancel_show(db: Session, show_id: UUID) -> Show:
    """
    Soft-cancel a show: cancel its live bookings (refund path for paid ones)
    and release any provisional holds. The show row is kept.
    """
    show = db.query(Show).filter(Show.id == show_id).first()
    if not show:
        raise ShowNotFound("Show not found")
    if show.status != ShowStatus.active.value:
        raise InvalidTransition(f"Show is already {show.status}")

    now = utcnow()
    show.status = ShowStatus.cancelled.value
    show.cancelled_at = now

    live = (
        db.query(Booking.id)
        .filter(
            Booking.show_id == show_id,
            Booking.payment_state != PaymentState.cancelled.value,
        )
        .all()
    )
    for row in live:
        ledger.cancel_booking(db, row.id, reason="show_cancelled", commit=False)
    released = release_show_holds(db, show_id)

    db.commit()
    db.refresh(show)
    logger.info(
        "Cancelled show %s: %d booking(s) cancelled, %d hold batch(es) released.",
        show_id, len(live), released,
    )
    return show


def complete_past_shows(db: Session) -> int:
    """
    Mark as completed all active shows that have already ended.

    A show without an end time counts as ended once it has started.
    Returns the number of shows completed.
    """
    now = utcnow()
    count = (
        db.query(Show)
        .filter(
            Show.status == ShowStatus.active.value,
            or_(
                Show.ends_at <= now,
                and_(Show.ends_at.is_(None), Show.starts_at <= now),
            ),
        )
        .update({"status": ShowStatus.completed.value}, synchronize_session=False)
    )
    db.commit()
    return count


def list_upcoming_shows(db: Session, movie_id: UUID, on_date: Optional[date] = None) -> List[Show]:
    """Active shows of a movie that haven't started yet, optionally on one UTC date."""
    now = utcnow()
    query = (
        db.query(Show)
        .options(joinedload(Show.hall))
        .filter(
            Show.movie_id == movie_id,
            Show.status == ShowStatus.active.value,
            Show.starts_at > now,
        )
    )
    if on_date:
        day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
        query = query.filter(
            Show.starts_at >= day_start,
            Show.starts_at < day_start + timedelta(days=1),
        )
    return query.order_by(Show.starts_at).all()

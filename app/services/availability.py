from datetime import datetime
from typing import Optional, Set
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.reservation import SeatHold, HoldState


def active_hold_filter(show_id: UUID, now: datetime):
    """Holds that currently block a seat: confirmed, or provisional and not yet expired."""
    return and_(
        SeatHold.show_id == show_id,
        or_(
            SeatHold.state == HoldState.confirmed.value,
            SeatHold.expires_at > now,
        ),
    )


def get_occupied_seats(db: Session, show_id: UUID, now: Optional[datetime] = None) -> Set[str]:
    """
    Seat ids of a show that are held or booked.

    Expiry is evaluated against the clock on every read, so a provisional hold
    stops counting the moment its TTL passes even if the sweep hasn't deleted
    the row yet.
    """
    now = now or utcnow()
    rows = db.query(SeatHold.seat_id).filter(active_hold_filter(show_id, now)).all()
    return {r.seat_id for r in rows}


def get_seat_states(
    db: Session, show_id: UUID, holder_id: Optional[UUID] = None, now: Optional[datetime] = None
) -> dict[str, str]:
    """
    Map of seat id -> "booked" | "held" | "selected" for every unavailable seat.

    "selected" marks provisional holds belonging to ``holder_id`` so a client
    can render its own pending selection.
    """
    now = now or utcnow()
    states = {}
    for hold in db.query(SeatHold).filter(active_hold_filter(show_id, now)).all():
        if hold.state == HoldState.confirmed.value:
            states[hold.seat_id] = "booked"
        elif holder_id is not None and hold.holder_id == holder_id:
            states[hold.seat_id] = "selected"
        else:
            states[hold.seat_id] = "held"
    return states

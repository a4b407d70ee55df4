from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload, selectinload

from app.db.session import get_db
from app.api.deps import get_current_user, get_optional_user
from app.core.errors import ShowNotFound
from app.db.types import utcnow
from app.models.user import User
from app.models.hall import Hall
from app.models.show import Show
from app.schemas.hall import HallSummary
from app.schemas.show import (
    ShowDetail,
    OccupiedSeats,
    SeatRow,
    SeatStatus,
    ShowSeatMap,
    show_to_detail,
)
from app.schemas.reservation import HoldBatch as HoldBatchSchema, HoldRequest, batch_to_schema
from app.services.availability import get_occupied_seats, get_seat_states
from app.services.reservation import place_provisional_hold
from app.services.seat_map import group_by_row

router = APIRouter(prefix="/shows", tags=["Shows"])


def _load_show(db: Session, show_id: UUID) -> Show:
    show = (
        db.query(Show)
        .options(
            joinedload(Show.movie),
            selectinload(Show.hall).selectinload(Hall.rows),
        )
        .filter(Show.id == show_id)
        .first()
    )
    if not show:
        raise ShowNotFound("Show not found")
    return show


@router.get("/{show_id}", response_model=ShowDetail)
def get_show(show_id: UUID, db: Session = Depends(get_db)):
    show = _load_show(db, show_id)
    return show_to_detail(show, len(get_occupied_seats(db, show.id)))


@router.get("/{show_id}/seat-map", response_model=ShowSeatMap)
def get_show_seat_map(
    show_id: UUID,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """
    Every seat of the show's hall with its status.

    `selected` marks seats provisionally held by the caller, `held` seats held
    by someone else and `booked` seats of confirmed bookings.
    """
    show = _load_show(db, show_id)
    states = get_seat_states(db, show.id, holder_id=current_user.id if current_user else None)

    rows = []
    for label, seat_ids in group_by_row(show.hall.layout):
        rows.append(SeatRow(
            label=label,
            seats=[
                SeatStatus(id=sid, number=n, status=states.get(sid, "available"))
                for n, sid in enumerate(seat_ids, start=1)
            ],
        ))

    return ShowSeatMap(
        show_id=show.id,
        hall=HallSummary.model_validate(show.hall),
        price=show.price,
        available_count=show.hall.capacity - len(states),
        rows=rows,
    )


@router.get("/{show_id}/occupied-seats", response_model=OccupiedSeats)
def get_show_occupied_seats(show_id: UUID, db: Session = Depends(get_db)):
    """Seat ids that are held or booked right now."""
    if not db.query(Show.id).filter(Show.id == show_id).first():
        raise ShowNotFound("Show not found")
    return OccupiedSeats(show_id=show_id, seat_ids=sorted(get_occupied_seats(db, show_id)))


@router.post(
    "/{show_id}/holds",
    response_model=HoldBatchSchema,
    status_code=status.HTTP_201_CREATED,
)
def create_hold(
    show_id: UUID,
    data: HoldRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Hold a set of seats for the current user, all or nothing.

    Answers 409 with `unavailable_seat_ids` when any seat is already held or
    booked; no seat of the request is held in that case.
    """
    batch = place_provisional_hold(
        db, show_id, data.seat_ids, current_user.id, ttl_seconds=data.ttl_seconds
    )
    return batch_to_schema(batch, utcnow())

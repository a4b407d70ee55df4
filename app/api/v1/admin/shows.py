from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.models.booking import Booking, BookingSeat, PaymentState
from app.models.hall import Hall
from app.models.movie import Movie
from app.models.show import Show
from app.schemas.show import ShowDetail, Show as ShowSchema, ShowCreate, show_to_detail
from app.schemas.common import PaginatedResponse, paginate
from app.services.shows import cancel_show, schedule_show

router = APIRouter(prefix="/admin/shows", tags=["Admin - Shows"])


@router.post("/", response_model=ShowSchema, status_code=status.HTTP_201_CREATED)
def create_show(
    data: ShowCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """
    Schedule a movie in a hall. The start must be in the future and the hall
    must be free for the movie's runtime plus the cleanup gap.
    """
    movie = db.query(Movie).filter(Movie.id == data.movie_id, Movie.status == "active").first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found or inactive")
    hall = db.query(Hall).filter(Hall.id == data.hall_id, Hall.is_active == True).first()  # noqa: E712
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found or inactive")
    return schedule_show(db, movie, hall, data.starts_at, data.price, created_by=current_user.id)


@router.get("/", response_model=PaginatedResponse[ShowDetail])
def list_shows(
    movie_id: Optional[UUID] = None,
    hall_id: Optional[UUID] = None,
    show_status: Optional[str] = Query(
        None, alias="status", pattern="^(active|cancelled|completed)$"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """All shows with their booked-seat counts, latest start first."""
    query = db.query(Show).options(
        joinedload(Show.movie),
        selectinload(Show.hall).selectinload(Hall.rows),
    )
    if movie_id:
        query = query.filter(Show.movie_id == movie_id)
    if hall_id:
        query = query.filter(Show.hall_id == hall_id)
    if show_status:
        query = query.filter(Show.status == show_status)

    total = query.count()
    shows = query.order_by(Show.starts_at.desc()).offset((page - 1) * limit).limit(limit).all()

    booked = dict(
        db.query(Booking.show_id, func.count(BookingSeat.id))
        .join(BookingSeat, BookingSeat.booking_id == Booking.id)
        .filter(
            Booking.show_id.in_([s.id for s in shows]),
            Booking.payment_state != PaymentState.cancelled.value,
        )
        .group_by(Booking.show_id)
        .all()
    ) if shows else {}

    items = [show_to_detail(s, booked.get(s.id, 0)) for s in shows]
    return PaginatedResponse(**paginate(items, total, page, limit))


@router.patch("/{id}/cancel", response_model=ShowSchema)
def cancel(
    id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Cancel a show: its bookings are cancelled and its held seats released."""
    return cancel_show(db, id)

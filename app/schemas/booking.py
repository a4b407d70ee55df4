from __future__ import annotations

from typing import Optional, List
from pydantic import BaseModel, UUID4
from decimal import Decimal
from datetime import datetime


# Nested response objects for booking responses
class BookingMovieSummary(BaseModel):
    title: str
    slug: str
    poster_url: Optional[str] = None


class BookingShowSummary(BaseModel):
    id: UUID4
    starts_at: datetime
    hall_name: Optional[str] = None
    price: Decimal
    status: str


# Booking: full response (POST /holds/{id}/confirm, GET /bookings/{id})
class Booking(BaseModel):
    id: UUID4
    booking_number: str
    show_id: UUID4
    hold_batch_id: UUID4
    seat_ids: List[str]
    quantity: int
    total_amount: Decimal
    payment_state: str
    special_requests: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    movie: Optional[BookingMovieSummary] = None
    show: Optional[BookingShowSummary] = None


# Booking: admin view (GET /admin/bookings, includes user info)
class AdminBooking(Booking):
    user: Optional[UserSummary] = None


def serialize_booking(booking, admin: bool = False):
    """Convert a Booking ORM object (show, movie, hall and seats loaded) to its schema."""
    movie_summary = None
    show_summary = None
    if booking.show:
        s = booking.show
        show_summary = BookingShowSummary(
            id=s.id,
            starts_at=s.starts_at,
            hall_name=s.hall.name if s.hall else None,
            price=s.price,
            status=s.status,
        )
        if s.movie:
            movie_summary = BookingMovieSummary(
                title=s.movie.title,
                slug=s.movie.slug,
                poster_url=s.movie.poster_url,
            )

    fields = dict(
        id=booking.id,
        booking_number=booking.booking_number,
        show_id=booking.show_id,
        hold_batch_id=booking.hold_batch_id,
        seat_ids=booking.seat_ids,
        quantity=booking.quantity,
        total_amount=booking.total_amount,
        payment_state=booking.payment_state,
        special_requests=booking.special_requests,
        created_at=booking.created_at,
        paid_at=booking.paid_at,
        cancelled_at=booking.cancelled_at,
        cancel_reason=booking.cancel_reason,
        movie=movie_summary,
        show=show_summary,
    )
    if not admin:
        return Booking(**fields)

    user_summary = None
    if booking.user:
        user_summary = UserSummary(
            id=booking.user.id,
            full_name=booking.user.full_name,
            email=booking.user.email,
        )
    return AdminBooking(**fields, user=user_summary)


# Import at the bottom to avoid circular imports
from app.schemas.user import UserSummary  # noqa: E402

AdminBooking.model_rebuild()

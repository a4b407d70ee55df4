from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user, get_payment_gateway
from app.models.user import User
from app.schemas.booking import Booking as BookingSchema, serialize_booking
from app.schemas.common import PaginatedResponse, paginate
from app.services import ledger
from app.services.payments import PaymentGateway, pay_booking

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# GET /bookings: list current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingSchema])
def list_my_bookings(
    payment_state: Optional[str] = Query(
        None, pattern="^(pending|paid|cancelled)$", description="Filter by payment state"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return the authenticated user's bookings, newest first."""
    bookings, total = ledger.list_for_user(db, current_user.id, payment_state, page, limit)
    return PaginatedResponse(
        **paginate([serialize_booking(b) for b in bookings], total, page, limit)
    )


# ---------------------------------------------------------------------------
# GET /bookings/{id}: single booking detail
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingSchema)
def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return a single booking. Only the owning user can access it."""
    return serialize_booking(ledger.get_booking(db, booking_id, current_user.id))


# ---------------------------------------------------------------------------
# POST /bookings/{id}/pay
# ---------------------------------------------------------------------------


@router.post("/{booking_id}/pay", response_model=BookingSchema)
def pay(
    booking_id: UUID,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Charge a pending booking.

    Retrying with the same `Idempotency-Key` never charges twice: the first
    outcome is replayed. A declined payment answers 402 and the booking stays
    pending, so the user can try again with a new key.
    """
    booking = pay_booking(
        db,
        booking_id,
        gateway,
        user_id=current_user.id,
        idempotency_key=idempotency_key,
    )
    return serialize_booking(booking)


# ---------------------------------------------------------------------------
# PATCH /bookings/{id}/cancel
# ---------------------------------------------------------------------------


@router.patch("/{booking_id}/cancel", response_model=BookingSchema)
def cancel_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Cancel a pending or paid booking and give its seats back to the show.
    Cancelling twice answers 409.
    """
    booking = ledger.cancel_booking(db, booking_id, user_id=current_user.id)
    return serialize_booking(booking)

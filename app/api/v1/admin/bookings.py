from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.schemas.booking import AdminBooking, serialize_booking
from app.schemas.common import PaginatedResponse
from app.services import ledger

router = APIRouter(prefix="/admin/bookings", tags=["Admin - Bookings"])


@router.get("/", response_model=PaginatedResponse[AdminBooking])
def list_all_bookings(
    # --- Filters ---
    payment_state: Optional[str] = Query(
        None, pattern="^(pending|paid|cancelled)$", description="Filter by payment state"
    ),
    show_id: Optional[UUID] = Query(None, description="Filter by show"),
    movie_id: Optional[UUID] = Query(None, description="Filter by movie"),
    # --- Pagination ---
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Return all bookings across every show, newest first."""
    bookings, total = ledger.list_all(
        db,
        payment_state=payment_state,
        show_id=show_id,
        movie_id=movie_id,
        page=page,
        limit=limit,
    )
    return PaginatedResponse(
        data=[serialize_booking(b, admin=True) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.patch("/{booking_id}/mark-paid", response_model=AdminBooking)
def mark_paid(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Record an offline payment. Marking a paid booking again is a no-op."""
    return serialize_booking(ledger.mark_paid(db, booking_id), admin=True)


@router.patch("/{booking_id}/cancel", response_model=AdminBooking)
def cancel_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Cancel any user's booking (refund path for paid ones) and free its seats."""
    booking = ledger.cancel_booking(db, booking_id, reason="cancelled_by_admin")
    return serialize_booking(booking, admin=True)

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user
from app.db.types import utcnow
from app.models.user import User
from app.schemas.booking import Booking as BookingSchema, serialize_booking
from app.schemas.reservation import (
    HoldBatch as HoldBatchSchema,
    HoldConfirmRequest,
    HoldReleaseResponse,
    batch_to_schema,
)
from app.services.reservation import confirm_hold, get_hold, release_hold

router = APIRouter(prefix="/holds", tags=["Holds"])


@router.get("/{batch_id}", response_model=HoldBatchSchema)
def read_hold(
    batch_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return batch_to_schema(get_hold(db, batch_id, current_user.id), utcnow())


@router.post(
    "/{batch_id}/confirm",
    response_model=BookingSchema,
    status_code=status.HTTP_201_CREATED,
)
def confirm(
    batch_id: UUID,
    data: HoldConfirmRequest = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Turn the hold into a pending booking. The hold must still be live:
    410 once its TTL has passed, 404 when it was released.
    """
    booking = confirm_hold(
        db,
        batch_id,
        holder_id=current_user.id,
        special_requests=data.special_requests if data else None,
    )
    return serialize_booking(booking)


@router.delete("/{batch_id}", response_model=HoldReleaseResponse)
def release(
    batch_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Give the held seats back. Releasing twice is harmless."""
    batch = release_hold(db, batch_id, holder_id=current_user.id)
    return HoldReleaseResponse(
        hold_batch_id=batch.id,
        status=batch.status,
        released_seats=batch.seat_list,
    )

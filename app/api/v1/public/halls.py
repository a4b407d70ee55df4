from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from app.db.session import get_db
from app.models.hall import Hall
from app.schemas.hall import HallSeatMap
from app.services.seat_map import generate_seat_map

router = APIRouter(prefix="/halls", tags=["Halls"])


@router.get("/{hall_id}/seat-map", response_model=HallSeatMap)
def get_hall_seat_map(hall_id: UUID, db: Session = Depends(get_db)):
    """All seat ids of a hall in row order, e.g. A1..A10, B1..B10."""
    hall = (
        db.query(Hall)
        .options(selectinload(Hall.rows))
        .filter(Hall.id == hall_id)
        .first()
    )
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found")
    seat_ids = generate_seat_map(hall.layout)
    return HallSeatMap(hall_id=hall.id, seat_ids=seat_ids, total=len(seat_ids))

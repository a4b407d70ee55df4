from typing import Optional, List
from pydantic import BaseModel, Field, UUID4
from decimal import Decimal
from datetime import datetime

from app.schemas.hall import HallSummary
from app.schemas.movie import MovieSummary


class ShowCreate(BaseModel):
    movie_id: UUID4
    hall_id: UUID4
    starts_at: datetime
    price: Decimal = Field(gt=0)


class Show(BaseModel):
    id: UUID4
    movie_id: UUID4
    hall_id: UUID4
    starts_at: datetime
    ends_at: Optional[datetime] = None
    price: Decimal
    status: str
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Show with nested hall for the showtime picker
class ShowWithHall(Show):
    hall: Optional[HallSummary] = None

    class Config:
        from_attributes = True


# Show detail with occupancy (GET /shows/{id}, admin listing)
class ShowDetail(ShowWithHall):
    movie: Optional[MovieSummary] = None
    booked_seats: int = 0
    capacity: int = 0


# --- Seat map for a show ---

class SeatStatus(BaseModel):
    id: str
    number: int
    status: str  # available, held, selected, booked


class SeatRow(BaseModel):
    label: str
    seats: List[SeatStatus]


class ShowSeatMap(BaseModel):
    show_id: UUID4
    hall: HallSummary
    price: Decimal
    available_count: int
    rows: List[SeatRow]


class OccupiedSeats(BaseModel):
    show_id: UUID4
    seat_ids: List[str]


def show_to_detail(show, booked_seats: int) -> ShowDetail:
    """ORM Show (movie and hall rows loaded) -> ShowDetail."""
    return ShowDetail(
        id=show.id,
        movie_id=show.movie_id,
        hall_id=show.hall_id,
        starts_at=show.starts_at,
        ends_at=show.ends_at,
        price=show.price,
        status=show.status,
        cancelled_at=show.cancelled_at,
        hall=HallSummary.model_validate(show.hall),
        movie=MovieSummary.model_validate(show.movie),
        booked_seats=booked_seats,
        capacity=show.hall.capacity,
    )

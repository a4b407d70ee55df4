from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4


class HallRowIn(BaseModel):
    label: Annotated[str, Field(min_length=1, max_length=5)]
    seats: int


class HallCreate(BaseModel):
    name: str
    description: Optional[str] = None
    features: List[str] = []
    rows: Annotated[List[HallRowIn], Field(min_length=1)]


class HallUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None


class HallRowsReplace(BaseModel):
    rows: Annotated[List[HallRowIn], Field(min_length=1)]


class Hall(BaseModel):
    id: UUID4
    name: str
    description: Optional[str] = None
    features: List[str] = []
    is_active: bool
    capacity: int
    rows: List[HallRowIn]


class HallSummary(BaseModel):
    id: UUID4
    name: str

    class Config:
        from_attributes = True


# GET /halls/{id}/seat-map
class HallSeatMap(BaseModel):
    hall_id: UUID4
    seat_ids: List[str]
    total: int


def hall_to_schema(hall) -> Hall:
    return Hall(
        id=hall.id,
        name=hall.name,
        description=hall.description,
        features=[f for f in (hall.features or "").split(",") if f],
        is_active=hall.is_active,
        capacity=hall.capacity,
        rows=[HallRowIn(label=r.label, seats=r.seat_count) for r in hall.rows],
    )

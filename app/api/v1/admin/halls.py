from uuid import UUID
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.models.hall import Hall, HallRow
from app.models.show import Show
from app.schemas.hall import (
    HallCreate,
    HallUpdate,
    HallRowsReplace,
    Hall as HallSchema,
    hall_to_schema,
)
from app.services.seat_map import validate_layout

router = APIRouter(prefix="/admin/halls", tags=["Admin - Halls"])


def _get_hall(db: Session, hall_id: UUID) -> Hall:
    hall = (
        db.query(Hall)
        .options(selectinload(Hall.rows))
        .filter(Hall.id == hall_id)
        .first()
    )
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found")
    return hall


def _build_rows(rows) -> List[HallRow]:
    layout = validate_layout([(r.label, r.seats) for r in rows])
    return [
        HallRow(position=i, label=label, seat_count=count)
        for i, (label, count) in enumerate(layout)
    ]


@router.post("/", response_model=HallSchema, status_code=status.HTTP_201_CREATED)
def create_hall(
    data: HallCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Create a hall from its row layout, e.g. rows A-G with 18 seats each."""
    if db.query(Hall.id).filter(Hall.name == data.name).first():
        raise HTTPException(status_code=400, detail="A hall with this name already exists")
    hall = Hall(
        name=data.name,
        description=data.description,
        features=",".join(data.features),
        rows=_build_rows(data.rows),
    )
    db.add(hall)
    db.commit()
    return hall_to_schema(_get_hall(db, hall.id))


@router.get("/", response_model=List[HallSchema])
def list_halls(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    halls = db.query(Hall).options(selectinload(Hall.rows)).order_by(Hall.name).all()
    return [hall_to_schema(h) for h in halls]


@router.get("/{id}", response_model=HallSchema)
def get_hall(
    id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return hall_to_schema(_get_hall(db, id))


@router.patch("/{id}", response_model=HallSchema)
def update_hall(
    id: UUID,
    data: HallUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    hall = _get_hall(db, id)
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and updates["name"] != hall.name:
        if db.query(Hall.id).filter(Hall.name == updates["name"]).first():
            raise HTTPException(status_code=400, detail="A hall with this name already exists")
    if "features" in updates:
        updates["features"] = ",".join(updates["features"] or [])
    for field, value in updates.items():
        setattr(hall, field, value)
    db.commit()
    return hall_to_schema(_get_hall(db, id))


@router.put("/{id}/rows", response_model=HallSchema)
def replace_rows(
    id: UUID,
    data: HallRowsReplace,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """
    Replace the row layout. Only allowed while no show has been scheduled in
    the hall, since existing holds and bookings reference its seat ids.
    """
    hall = _get_hall(db, id)
    if db.query(Show.id).filter(Show.hall_id == hall.id).first():
        raise HTTPException(
            status_code=409,
            detail="Hall layout cannot change once shows have been scheduled",
        )
    new_rows = _build_rows(data.rows)
    hall.rows = []
    db.flush()
    hall.rows = new_rows
    db.commit()
    return hall_to_schema(_get_hall(db, id))

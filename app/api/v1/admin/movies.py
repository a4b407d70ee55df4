from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.models.movie import Movie
from app.schemas.movie import (
    MovieCreate,
    MovieUpdate,
    Movie as MovieSchema,
    movie_to_schema,
)
from app.schemas.common import PaginatedResponse, paginate
from app.utils.slug import make_unique_slug

router = APIRouter(prefix="/admin/movies", tags=["Admin - Movies"])


def _get_movie(db: Session, id: UUID) -> Movie:
    movie = db.query(Movie).filter(Movie.id == id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


@router.get("/", response_model=PaginatedResponse[MovieSchema])
def list_movies(
    movie_status: Optional[str] = Query(None, alias="status", pattern="^(active|inactive)$"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Movie)
    if movie_status:
        query = query.filter(Movie.status == movie_status)
    if search:
        query = query.filter(Movie.title.ilike(f"%{search}%"))

    total = query.count()
    movies = query.order_by(Movie.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return PaginatedResponse(**paginate([movie_to_schema(m) for m in movies], total, page, limit))


@router.post("/", response_model=MovieSchema, status_code=status.HTTP_201_CREATED)
def create_movie(
    data: MovieCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    fields = data.model_dump()
    fields["genres"] = ",".join(data.genres)
    movie = Movie(
        slug=make_unique_slug(db, data.title, data.release_date.year if data.release_date else None),
        status="active",
        **fields,
    )
    db.add(movie)
    db.commit()
    db.refresh(movie)
    return movie_to_schema(movie)


@router.patch("/{id}", response_model=MovieSchema)
def update_movie(
    id: UUID,
    data: MovieUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    movie = _get_movie(db, id)
    updates = data.model_dump(exclude_unset=True)
    if "genres" in updates:
        updates["genres"] = ",".join(updates["genres"] or [])
    for field, value in updates.items():
        setattr(movie, field, value)
    db.commit()
    db.refresh(movie)
    return movie_to_schema(movie)


@router.delete("/{id}", status_code=status.HTTP_200_OK)
def delete_movie(
    id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Soft delete: the movie disappears from the catalog, its shows and bookings stay."""
    movie = _get_movie(db, id)
    movie.status = "inactive"
    db.commit()
    return {"id": str(id), "status": "inactive"}

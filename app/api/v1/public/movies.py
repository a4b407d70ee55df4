from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.movie import Movie
from app.schemas.movie import Movie as MovieSchema, movie_to_schema
from app.schemas.show import ShowWithHall
from app.schemas.common import PaginatedResponse, paginate
from app.services.shows import list_upcoming_shows

router = APIRouter(prefix="/movies", tags=["Movies"])


@router.get("/", response_model=PaginatedResponse[MovieSchema])
def list_movies(
    search: Optional[str] = None,
    genre: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Movie).filter(Movie.status == "active")
    if search:
        query = query.filter(Movie.title.ilike(f"%{search}%"))
    if genre:
        query = query.filter(Movie.genres.ilike(f"%{genre}%"))

    total = query.count()
    movies = (
        query.order_by(Movie.release_date.desc(), Movie.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PaginatedResponse(**paginate([movie_to_schema(m) for m in movies], total, page, limit))


@router.get("/{slug}", response_model=MovieSchema)
def get_movie(slug: str, db: Session = Depends(get_db)):
    movie = db.query(Movie).filter(Movie.slug == slug, Movie.status == "active").first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie_to_schema(movie)


@router.get("/{slug}/shows", response_model=List[ShowWithHall])
def list_movie_shows(
    slug: str,
    date: Optional[date] = Query(None, description="Only shows starting on this day (UTC)"),
    db: Session = Depends(get_db),
):
    """Upcoming active shows of a movie, earliest first."""
    movie = db.query(Movie).filter(Movie.slug == slug, Movie.status == "active").first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return list_upcoming_shows(db, movie.id, on_date=date)

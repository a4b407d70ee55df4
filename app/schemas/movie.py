from typing import Optional, List
from pydantic import BaseModel, Field, UUID4
from decimal import Decimal
from datetime import date, datetime


class MovieBase(BaseModel):
    title: str
    tagline: Optional[str] = None
    overview: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None
    genres: List[str] = []
    original_language: Optional[str] = None
    runtime_minutes: Optional[int] = Field(None, gt=0)
    release_date: Optional[date] = None
    vote_average: Decimal = Decimal("0")


class MovieCreate(MovieBase):
    pass


class MovieUpdate(BaseModel):
    title: Optional[str] = None
    tagline: Optional[str] = None
    overview: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None
    genres: Optional[List[str]] = None
    original_language: Optional[str] = None
    runtime_minutes: Optional[int] = Field(None, gt=0)
    release_date: Optional[date] = None
    vote_average: Optional[Decimal] = None
    status: Optional[str] = None


class Movie(MovieBase):
    id: UUID4
    slug: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


# Compact movie for nested responses (bookings, favorites)
class MovieSummary(BaseModel):
    id: UUID4
    title: str
    slug: str
    poster_url: Optional[str] = None

    class Config:
        from_attributes = True


def movie_to_schema(movie) -> Movie:
    """ORM -> schema; genres are stored comma separated."""
    return Movie(
        id=movie.id,
        slug=movie.slug,
        status=movie.status,
        created_at=movie.created_at,
        title=movie.title,
        tagline=movie.tagline,
        overview=movie.overview,
        poster_url=movie.poster_url,
        backdrop_url=movie.backdrop_url,
        trailer_url=movie.trailer_url,
        genres=movie.genre_list,
        original_language=movie.original_language,
        runtime_minutes=movie.runtime_minutes,
        release_date=movie.release_date,
        vote_average=movie.vote_average or Decimal("0"),
    )

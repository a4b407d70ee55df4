from typing import Optional, List
from pydantic import BaseModel, Field, UUID4
from decimal import Decimal
from datetime import date, datetime

from app.schemas.movie import MovieSummary


# --- Favorites ---

class Favorite(BaseModel):
    movie_id: UUID4
    added_at: datetime
    movie: MovieSummary

    class Config:
        from_attributes = True


class FavoriteStatus(BaseModel):
    movie_id: UUID4
    is_favorite: bool


# --- Reviews ---

class ReviewUpsert(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class Reviewer(BaseModel):
    id: UUID4
    display_name: str


class Review(BaseModel):
    id: UUID4
    movie_id: UUID4
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: Optional[Reviewer] = None


class MovieReviews(BaseModel):
    movie_id: UUID4
    average_rating: float
    review_count: int
    reviews: List[Review]


# --- Admin dashboard ---

class DailyStats(BaseModel):
    date: date
    total_bookings: int
    total_revenue: Decimal


class DashboardStats(BaseModel):
    total_bookings: int
    total_revenue: Decimal
    active_movies: int
    total_users: int
    daily: List[DailyStats]

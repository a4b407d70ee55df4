from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.models.movie import Movie
from app.models.review import Review
from app.schemas.engagement import (
    MovieReviews,
    Review as ReviewSchema,
    Reviewer,
    ReviewUpsert,
)

router = APIRouter(prefix="/movies", tags=["Reviews"])


def _get_movie(db: Session, slug: str) -> Movie:
    movie = db.query(Movie).filter(Movie.slug == slug).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


def _display_name(user: Optional[User]) -> str:
    if user is None:
        return "Unknown User"
    if user.full_name and user.full_name.strip():
        return user.full_name.strip()
    return user.email.split("@")[0]


def _serialize_review(review: Review) -> ReviewSchema:
    reviewer = None
    if review.user_id:
        reviewer = Reviewer(id=review.user_id, display_name=_display_name(review.user))
    return ReviewSchema(
        id=review.id,
        movie_id=review.movie_id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        updated_at=review.updated_at,
        user=reviewer,
    )


@router.get("/{slug}/reviews", response_model=MovieReviews)
def list_reviews(
    slug: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Average rating over every review plus the latest ones. No authentication required."""
    movie = _get_movie(db, slug)

    average, count = (
        db.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.movie_id == movie.id)
        .one()
    )
    reviews = (
        db.query(Review)
        .options(joinedload(Review.user))
        .filter(Review.movie_id == movie.id)
        .order_by(Review.created_at.desc())
        .limit(limit)
        .all()
    )
    return MovieReviews(
        movie_id=movie.id,
        average_rating=round(float(average or 0), 2),
        review_count=count,
        reviews=[_serialize_review(r) for r in reviews],
    )


@router.get("/{slug}/reviews/me", response_model=Optional[ReviewSchema])
def get_my_review(
    slug: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The current user's review of this movie, or null when there is none."""
    movie = _get_movie(db, slug)
    review = db.query(Review).filter(
        Review.movie_id == movie.id, Review.user_id == current_user.id
    ).first()
    return _serialize_review(review) if review else None


@router.put("/{slug}/reviews", response_model=ReviewSchema)
def upsert_review(
    slug: str,
    data: ReviewUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create or update the current user's review.

    One review per user per movie: submitting again overwrites the rating and
    comment of the existing review.
    """
    movie = _get_movie(db, slug)
    review = db.query(Review).filter(
        Review.movie_id == movie.id, Review.user_id == current_user.id
    ).first()
    if review:
        review.rating = data.rating
        review.comment = data.comment
    else:
        review = Review(
            user_id=current_user.id,
            movie_id=movie.id,
            rating=data.rating,
            comment=data.comment,
        )
        db.add(review)
    db.commit()
    db.refresh(review)
    return _serialize_review(review)

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.models.movie import Movie
from app.models.favorite import Favorite
from app.schemas.user import User as UserSchema, UserUpdate
from app.schemas.engagement import Favorite as FavoriteSchema, FavoriteStatus
from app.schemas.common import PaginatedResponse, paginate

router = APIRouter(prefix="/me", tags=["Me"])


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/", response_model=UserSchema)
def get_me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return current_user


@router.patch("/", response_model=UserSchema)
def update_me(
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update the authenticated user's profile (full_name, phone, avatar_url)."""
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


def _get_movie(db: Session, movie_id: UUID) -> Movie:
    movie = db.query(Movie).filter(Movie.id == movie_id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


def _get_favorite(db: Session, user_id, movie_id: UUID):
    return db.query(Favorite).filter(
        Favorite.user_id == user_id,
        Favorite.movie_id == movie_id,
    ).first()


@router.get("/favorites", response_model=PaginatedResponse[FavoriteSchema])
def list_favorites(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return the current user's favorite movies, most recently added first."""
    query = (
        db.query(Favorite)
        .options(joinedload(Favorite.movie))
        .filter(Favorite.user_id == current_user.id)
    )
    total = query.count()
    favorites = (
        query.order_by(Favorite.added_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PaginatedResponse(**paginate(favorites, total, page, limit))


@router.get("/favorites/{movie_id}", response_model=FavoriteStatus)
def get_favorite_status(
    movie_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    favorite = _get_favorite(db, current_user.id, movie_id)
    return FavoriteStatus(movie_id=movie_id, is_favorite=favorite is not None)


@router.put("/favorites/{movie_id}", response_model=FavoriteStatus)
def add_favorite(
    movie_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add a movie to favorites. Adding it twice is a no-op."""
    _get_movie(db, movie_id)
    if not _get_favorite(db, current_user.id, movie_id):
        db.add(Favorite(user_id=current_user.id, movie_id=movie_id))
        db.commit()
    return FavoriteStatus(movie_id=movie_id, is_favorite=True)


@router.delete("/favorites/{movie_id}", response_model=FavoriteStatus)
def remove_favorite(
    movie_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    favorite = _get_favorite(db, current_user.id, movie_id)
    if favorite:
        db.delete(favorite)
        db.commit()
    return FavoriteStatus(movie_id=movie_id, is_favorite=False)


@router.post("/favorites/{movie_id}/toggle", response_model=FavoriteStatus)
def toggle_favorite(
    movie_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Flip the favorite flag for a movie and return the new state."""
    _get_movie(db, movie_id)
    favorite = _get_favorite(db, current_user.id, movie_id)
    if favorite:
        db.delete(favorite)
    else:
        db.add(Favorite(user_id=current_user.id, movie_id=movie_id))
    db.commit()
    return FavoriteStatus(movie_id=movie_id, is_favorite=favorite is None)

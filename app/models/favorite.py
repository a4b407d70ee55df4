import uuid
from sqlalchemy import Column, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_favorites_user_movie"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    movie_id = Column(Uuid, ForeignKey("movies.id"), nullable=False)
    added_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="favorites")
    movie = relationship("Movie")

import uuid
from sqlalchemy import Column, String, Text, DECIMAL, Integer, Date, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class Movie(Base):
    __tablename__ = "movies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    tagline = Column(String(500), nullable=True)
    overview = Column(Text, nullable=True)
    poster_url = Column(Text, nullable=True)
    backdrop_url = Column(Text, nullable=True)
    trailer_url = Column(Text, nullable=True)
    genres = Column(String(255), nullable=True)  # comma separated: "Action,Drama"
    original_language = Column(String(10), nullable=True)
    runtime_minutes = Column(Integer, nullable=True)
    release_date = Column(Date, nullable=True)
    vote_average = Column(DECIMAL(3, 1), default=0)
    status = Column(String(20), default="active", index=True)  # active, inactive
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, onupdate=utcnow, nullable=True)

    shows = relationship("Show", back_populates="movie")
    reviews = relationship("Review", back_populates="movie", cascade="all, delete-orphan")

    @property
    def genre_list(self) -> list[str]:
        if not self.genres:
            return []
        return [g.strip() for g in self.genres.split(",") if g.strip()]

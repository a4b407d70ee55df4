import enum
import uuid
from sqlalchemy import Column, String, DECIMAL, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class ShowStatus(str, enum.Enum):
    active = "active"
    cancelled = "cancelled"
    completed = "completed"


class Show(Base):
    __tablename__ = "shows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    movie_id = Column(Uuid, ForeignKey("movies.id"), nullable=False, index=True)
    hall_id = Column(Uuid, ForeignKey("halls.id"), nullable=False, index=True)
    starts_at = Column(UTCDateTime, nullable=False, index=True)
    ends_at = Column(UTCDateTime, nullable=True)
    price = Column(DECIMAL(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ShowStatus.active.value, index=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    cancelled_at = Column(UTCDateTime, nullable=True)

    # Relationships
    movie = relationship("Movie", back_populates="shows")
    hall = relationship("Hall", back_populates="shows")
    bookings = relationship("Booking", back_populates="show")

import uuid
from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class Hall(Base):
    """A hall configuration: an ordered set of rows, each with a seat count."""

    __tablename__ = "halls"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    features = Column(String(255), nullable=True)  # "Dolby Atmos,4K Projection"
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=utcnow)

    # Relationships
    rows = relationship(
        "HallRow",
        back_populates="hall",
        cascade="all, delete-orphan",
        order_by="HallRow.position",
    )
    shows = relationship("Show", back_populates="hall")

    @property
    def layout(self) -> list[tuple[str, int]]:
        return [(r.label, r.seat_count) for r in self.rows]

    @property
    def capacity(self) -> int:
        return sum(r.seat_count for r in self.rows)


class HallRow(Base):
    __tablename__ = "hall_rows"
    __table_args__ = (
        UniqueConstraint("hall_id", "label", name="uq_hall_rows_label"),
        UniqueConstraint("hall_id", "position", name="uq_hall_rows_position"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    hall_id = Column(Uuid, ForeignKey("halls.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    label = Column(String(5), nullable=False)
    seat_count = Column(Integer, nullable=False)

    hall = relationship("Hall", back_populates="rows")

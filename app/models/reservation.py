import enum
import uuid
from sqlalchemy import Column, String, JSON, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class HoldBatchStatus(str, enum.Enum):
    provisional = "provisional"
    confirmed = "confirmed"
    released = "released"
    expired = "expired"


class HoldState(str, enum.Enum):
    provisional = "provisional"
    confirmed = "confirmed"


class HoldBatch(Base):
    """The seats claimed by one hold request; confirmed or released as a unit."""

    __tablename__ = "hold_batches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id"), nullable=False, index=True)
    holder_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    seat_ids = Column(JSON, nullable=False)  # ["A1", "B2"], kept after the holds are gone
    status = Column(String(20), nullable=False, default=HoldBatchStatus.provisional.value, index=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow)
    closed_at = Column(UTCDateTime, nullable=True)

    show = relationship("Show")
    holds = relationship("SeatHold", back_populates="batch")
    booking = relationship("Booking", back_populates="hold_batch", uselist=False)

    @property
    def seat_list(self) -> list[str]:
        return list(self.seat_ids or [])


class SeatHold(Base):
    """
    An active claim on one seat of one show.

    A row exists only while the hold is active (provisional and unexpired, or
    confirmed). Released and expired holds are deleted, so the unique
    constraint on (show_id, seat_id) is the per-seat compare-and-set.
    """

    __tablename__ = "seat_holds"
    __table_args__ = (
        UniqueConstraint("show_id", "seat_id", name="uq_seat_holds_show_seat"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id"), nullable=False, index=True)
    seat_id = Column(String(12), nullable=False)
    batch_id = Column(Uuid, ForeignKey("hold_batches.id"), nullable=False, index=True)
    holder_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    state = Column(String(20), nullable=False, default=HoldState.provisional.value)
    expires_at = Column(UTCDateTime, nullable=False, index=True)

    batch = relationship("HoldBatch", back_populates="holds")

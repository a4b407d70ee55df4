import enum
import uuid
from sqlalchemy import Column, String, DECIMAL, Integer, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime, utcnow


class PaymentState(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"


class PaymentStatus(str, enum.Enum):
    succeeded = "succeeded"
    failed = "failed"
    refund_required = "refund_required"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    show_id = Column(Uuid, ForeignKey("shows.id"), nullable=False, index=True)
    hold_batch_id = Column(Uuid, ForeignKey("hold_batches.id"), nullable=False, unique=True)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    total_amount = Column(DECIMAL(10, 2), nullable=False)
    payment_state = Column(String(20), nullable=False, default=PaymentState.pending.value, index=True)
    special_requests = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, index=True)
    paid_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancel_reason = Column(String(100), nullable=True)

    # Relationships
    user = relationship("User")
    show = relationship("Show", back_populates="bookings")
    hold_batch = relationship("HoldBatch", back_populates="booking")
    seats = relationship(
        "BookingSeat",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingSeat.position",
    )
    payments = relationship("Payment", back_populates="booking", order_by="Payment.created_at")

    @property
    def seat_ids(self) -> list[str]:
        return [s.seat_id for s in self.seats]


class BookingSeat(Base):
    __tablename__ = "booking_seats"
    __table_args__ = (
        UniqueConstraint("booking_id", "seat_id", name="uq_booking_seats_seat"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id"), nullable=False, index=True)
    seat_id = Column(String(12), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    booking = relationship("Booking", back_populates="seats")


class Payment(Base):
    """One charge attempt. The idempotency key makes a retried request return the first outcome."""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id"), nullable=False, index=True)
    idempotency_key = Column(String(100), unique=True, nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)
    status = Column(String(20), nullable=False)  # succeeded, failed, refund_required
    created_at = Column(UTCDateTime, default=utcnow)

    booking = relationship("Booking", back_populates="payments")

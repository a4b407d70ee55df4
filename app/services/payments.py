"""
Payment collaborator and exactly-once payment confirmation.

The gateway only answers success/failure. Each attempt is recorded in
``payments`` under its idempotency key: replaying a key returns the recorded
outcome instead of charging again, and a booking that is already paid is
never charged twice.
"""
import logging
import random
import uuid
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidTransition, PaymentFailed
from app.models.booking import Booking, Payment, PaymentState, PaymentStatus
from app.services import ledger

logger = logging.getLogger(__name__)


class PaymentGateway:
    def charge(self, booking_id: UUID, amount: Decimal, idempotency_key: str) -> bool:
        raise NotImplementedError


class SimulatedPaymentGateway(PaymentGateway):
    """Approves a charge with probability ``success_rate``; no money moves."""

    def __init__(self, success_rate: Optional[float] = None, rng: Optional[random.Random] = None):
        self.success_rate = settings.PAYMENT_SUCCESS_RATE if success_rate is None else success_rate
        self._rng = rng or random.Random()

    def charge(self, booking_id: UUID, amount: Decimal, idempotency_key: str) -> bool:
        approved = self._rng.random() < self.success_rate
        logger.info(
            "Simulated charge of %s for booking %s (%s): %s",
            amount, booking_id, idempotency_key, "approved" if approved else "declined",
        )
        return approved


def _replay(db: Session, payment: Payment, booking_id: UUID) -> Booking:
    if payment.booking_id != booking_id:
        raise InvalidTransition("Idempotency key was already used for another booking")
    if payment.status == PaymentStatus.succeeded.value:
        return ledger.get_booking(db, booking_id)
    if payment.status == PaymentStatus.refund_required.value:
        raise InvalidTransition(
            "Booking was cancelled while the payment was processed; the charge will be refunded"
        )
    raise PaymentFailed("Payment was declined. Please try again with a new payment attempt.")


def pay_booking(
    db: Session,
    booking_id: UUID,
    gateway: PaymentGateway,
    user_id: Optional[UUID] = None,
    idempotency_key: Optional[str] = None,
) -> Booking:
    """
    Charge a pending booking and mark it paid.

    Raises PaymentFailed when the gateway declines; the booking stays pending
    and keeps its seats until it is paid, cancelled or times out. The outcome
    is committed before the booking transition, so an approved charge is never
    lost: if the booking was cancelled meanwhile, the payment is kept as
    ``refund_required`` and InvalidTransition is raised.
    """
    booking = ledger.get_booking(db, booking_id, user_id)
    key = idempotency_key or str(uuid.uuid4())

    previous = db.query(Payment).filter(Payment.idempotency_key == key).first()
    if previous:
        return _replay(db, previous, booking.id)

    if booking.payment_state == PaymentState.paid.value:
        return booking
    if booking.payment_state == PaymentState.cancelled.value:
        raise InvalidTransition(f"Booking {booking.booking_number} is cancelled and cannot be paid")

    booking_number = booking.booking_number
    amount = booking.total_amount
    # No transaction (and no SQLite write lock) stays open while the gateway answers
    db.commit()

    approved = gateway.charge(booking_id, amount, key)
    db.add(Payment(
        booking_id=booking_id,
        idempotency_key=key,
        amount=amount,
        status=PaymentStatus.succeeded.value if approved else PaymentStatus.failed.value,
    ))
    try:
        db.commit()
    except IntegrityError:
        # Same key submitted concurrently; the other request recorded the outcome
        db.rollback()
        previous = db.query(Payment).filter(Payment.idempotency_key == key).first()
        return _replay(db, previous, booking_id)

    if not approved:
        logger.warning("Payment declined for booking %s.", booking_number)
        raise PaymentFailed("Payment was declined. Please try again or use a different card.")

    try:
        return ledger.mark_paid(db, booking_id)
    except InvalidTransition:
        db.query(Payment).filter(Payment.idempotency_key == key).update(
            {"status": PaymentStatus.refund_required.value}, synchronize_session=False
        )
        db.commit()
        logger.warning(
            "Booking %s changed state during payment %s; charge of %s needs a refund.",
            booking_number, key, amount,
        )
        raise

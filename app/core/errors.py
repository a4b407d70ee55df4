"""Domain errors raised by the reservation core and rendered by the API.

Every error carries a machine-readable ``kind`` (the ``error`` field of the
JSON body), a human message and the HTTP status the API answers with.
"""
import logging
from typing import Iterable, List

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    kind = "reservation_error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class InvalidConfiguration(ReservationError):
    kind = "invalid_configuration"
    status_code = 422


class InvalidHoldRequest(ReservationError):
    kind = "invalid_hold_request"
    status_code = 400


class SeatUnavailable(ReservationError):
    kind = "seat_unavailable"
    status_code = 409

    def __init__(self, seat_ids: Iterable[str], message: str = ""):
        self.seat_ids: List[str] = sorted(seat_ids)
        super().__init__(
            message or f"Seat(s) already held: {', '.join(self.seat_ids)}"
        )

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["unavailable_seat_ids"] = self.seat_ids
        return body


class HoldNotFound(ReservationError):
    kind = "hold_not_found"
    status_code = 404


class HoldExpired(ReservationError):
    kind = "hold_expired"
    status_code = 410


class ShowNotFound(ReservationError):
    kind = "show_not_found"
    status_code = 404


class ShowNotBookable(ReservationError):
    kind = "show_not_bookable"
    status_code = 409


class ScheduleConflict(ReservationError):
    kind = "schedule_conflict"
    status_code = 409


class BookingNotFound(ReservationError):
    kind = "booking_not_found"
    status_code = 404


class InvalidTransition(ReservationError):
    kind = "invalid_transition"
    status_code = 409


class PaymentFailed(ReservationError):
    kind = "payment_failed"
    status_code = 402


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.exception("Reservation error: %s", exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ReservationError, reservation_error_handler)

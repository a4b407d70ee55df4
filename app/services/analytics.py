from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.booking import Booking, PaymentState
from app.models.movie import Movie
from app.models.show import Show, ShowStatus
from app.models.user import User


def dashboard_stats(db: Session, days: int = 7, now: Optional[datetime] = None) -> dict:
    """
    Admin dashboard numbers, recomputed from the booking ledger on every call.

    Revenue only counts paid bookings; booking counts exclude cancelled ones.
    The daily series covers the last ``days`` days including today (UTC).
    """
    now = now or utcnow()
    live = Booking.payment_state != PaymentState.cancelled.value
    paid = Booking.payment_state == PaymentState.paid.value

    total_bookings = db.query(func.count(Booking.id)).filter(live).scalar() or 0
    total_revenue = db.query(func.sum(Booking.total_amount)).filter(paid).scalar() or Decimal("0")
    active_movies = (
        db.query(func.count(func.distinct(Show.movie_id)))
        .join(Movie, Movie.id == Show.movie_id)
        .filter(
            Show.status == ShowStatus.active.value,
            Show.starts_at > now,
            Movie.status == "active",
        )
        .scalar()
    ) or 0
    total_users = db.query(func.count(User.id)).filter(User.role == "user").scalar() or 0

    first_day = (now - timedelta(days=days - 1)).date()
    window_start = datetime.combine(first_day, datetime.min.time(), tzinfo=now.tzinfo)
    series = {
        (first_day + timedelta(days=i)).isoformat(): {"bookings": 0, "revenue": Decimal("0")}
        for i in range(days)
    }
    recent = (
        db.query(Booking.created_at, Booking.payment_state, Booking.total_amount)
        .filter(Booking.created_at >= window_start, live)
        .all()
    )
    for created_at, state, amount in recent:
        bucket = series.get(created_at.date().isoformat())
        if bucket is None:
            continue
        bucket["bookings"] += 1
        if state == PaymentState.paid.value:
            bucket["revenue"] += Decimal(amount)

    return {
        "total_bookings": total_bookings,
        "total_revenue": Decimal(total_revenue),
        "active_movies": active_movies,
        "total_users": total_users,
        "daily": [
            {"date": day, "total_bookings": v["bookings"], "total_revenue": v["revenue"]}
            for day, v in series.items()
        ],
    }

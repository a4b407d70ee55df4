from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.schemas.engagement import DashboardStats
from app.services.analytics import dashboard_stats

router = APIRouter(prefix="/admin/dashboard", tags=["Admin - Dashboard"])


@router.get("/", response_model=DashboardStats)
def get_dashboard(
    days: int = Query(7, ge=1, le=90, description="Length of the daily series"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """
    Headline numbers for the admin console, computed from the booking ledger
    on every request: live bookings, revenue of paid bookings, movies with
    upcoming shows and registered users, plus a per-day series.
    """
    return dashboard_stats(db, days=days)

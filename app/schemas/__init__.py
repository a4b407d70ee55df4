from app.schemas.common import PaginatedResponse, ErrorResponse, SeatsUnavailableError
from app.schemas.user import User, UserCreate, UserUpdate, UserSummary, Token
from app.schemas.movie import Movie, MovieCreate, MovieUpdate, MovieSummary
from app.schemas.hall import Hall, HallCreate, HallUpdate, HallSummary, HallSeatMap
from app.schemas.show import (
    Show, ShowCreate, ShowWithHall, ShowDetail, ShowSeatMap, OccupiedSeats,
)
from app.schemas.reservation import (
    HoldRequest, HoldBatch, HoldConfirmRequest, HoldReleaseResponse,
)
from app.schemas.booking import Booking, AdminBooking
from app.schemas.engagement import (
    Favorite, FavoriteStatus, Review, ReviewUpsert, MovieReviews, DashboardStats,
)

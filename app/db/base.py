from app.db.session import Base
from app.models.user import User
from app.models.movie import Movie
from app.models.hall import Hall, HallRow
from app.models.show import Show
from app.models.reservation import HoldBatch, SeatHold
from app.models.booking import Booking, BookingSeat, Payment
from app.models.favorite import Favorite
from app.models.review import Review

from app.models.user import User
from app.models.movie import Movie
from app.models.hall import Hall, HallRow
from app.models.show import Show, ShowStatus
from app.models.reservation import HoldBatch, HoldBatchStatus, SeatHold, HoldState
from app.models.booking import Booking, BookingSeat, Payment, PaymentState, PaymentStatus
from app.models.favorite import Favorite
from app.models.review import Review

from fastapi import APIRouter

# Auth
from app.api.v1.public.auth import router as auth_router

# Public: catalog
from app.api.v1.public.movies import router as movies_router
from app.api.v1.public.reviews import router as reviews_router
from app.api.v1.public.halls import router as halls_router

# Public: seat maps, holds, bookings
from app.api.v1.public.shows import router as shows_router
from app.api.v1.public.holds import router as holds_router
from app.api.v1.public.bookings import router as bookings_router

# Public: user profile & favorites
from app.api.v1.public.me import router as me_router

# Admin
from app.api.v1.admin.halls import router as admin_halls_router
from app.api.v1.admin.movies import router as admin_movies_router
from app.api.v1.admin.shows import router as admin_shows_router
from app.api.v1.admin.bookings import router as admin_bookings_router
from app.api.v1.admin.dashboard import router as admin_dashboard_router

api_router = APIRouter()

# --- Auth ---
api_router.include_router(auth_router)

# --- Public: catalog ---
api_router.include_router(movies_router)
api_router.include_router(reviews_router)
api_router.include_router(halls_router)

# --- Public: reservations ---
api_router.include_router(shows_router)
api_router.include_router(holds_router)
api_router.include_router(bookings_router)

# --- Public: profile & favorites ---
api_router.include_router(me_router)

# --- Admin ---
api_router.include_router(admin_halls_router)
api_router.include_router(admin_movies_router)
api_router.include_router(admin_shows_router)
api_router.include_router(admin_bookings_router)
api_router.include_router(admin_dashboard_router)

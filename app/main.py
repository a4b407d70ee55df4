import asyncio
import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware

from app.db.init_db import create_database
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.api.v1.router import api_router

logger = logging.getLogger(__name__)


def run_sweep() -> None:
    """Expire stale holds, time out unpaid bookings and close finished shows."""
    from app.services.ledger import cancel_unpaid_bookings
    from app.services.reservation import expire_holds
    from app.services.shows import complete_past_shows

    db = SessionLocal()
    try:
        expire_holds(db)
        cancelled = cancel_unpaid_bookings(db, settings.PENDING_PAYMENT_TIMEOUT_SECONDS)
        if cancelled:
            logger.info("Cancelled %d unpaid booking(s).", cancelled)
        completed = complete_past_shows(db)
        if completed:
            logger.info("Marked %d show(s) completed.", completed)
    finally:
        db.close()


async def _sweep_loop() -> None:
    """Background task: run the sweep every HOLD_SWEEP_INTERVAL_SECONDS."""
    while True:
        try:
            await asyncio.to_thread(run_sweep)
        except Exception:
            logger.exception("Error during reservation sweep.")
        await asyncio.sleep(settings.HOLD_SWEEP_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    # Background sweep loop; its first pass runs right away
    sweep_task = asyncio.create_task(_sweep_loop())
    yield

    # Shutdown: cancel background task
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def read_root():
    return {"Hello": settings.PROJECT_NAME}

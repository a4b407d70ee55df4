import os

# Must be set before the app (and its module-level engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"

import uuid
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.api.deps import get_payment_gateway
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.db.session import build_engine, get_db
from app.db.types import utcnow
from app.models import Hall, HallRow, Movie, Show, User
from app.services.payments import SimulatedPaymentGateway

PASSWORD = "secret123"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'cineplex.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return SimulatedPaymentGateway(success_rate=1.0)


@pytest.fixture
def client(session_factory, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    # Not used as a context manager: the lifespan (DB bootstrap, sweep loop) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed helpers. Each one works in its own short session so no transaction
# (and no SQLite write lock) is left open when a test starts.
# ---------------------------------------------------------------------------


def make_user(session_factory, email=None, role="user", password=None, full_name="Test User"):
    with session_factory() as session:
        user = User(
            id=uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:10]}@mail.com",
            password_hash=get_password_hash(password) if password else "!",
            full_name=full_name,
            role=role,
        )
        session.add(user)
        session.commit()
        token = create_access_token(subject=str(user.id))
        return SimpleNamespace(
            id=user.id,
            email=user.email,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )


def make_show(
    session_factory,
    layout=(("A", 2), ("B", 2)),
    price=Decimal("12.00"),
    starts_in=timedelta(days=1),
    hall_name=None,
    title="Dune: Part Two",
):
    with session_factory() as session:
        hall = Hall(
            id=uuid.uuid4(),
            name=hall_name or f"Hall {uuid.uuid4().hex[:6]}",
            rows=[
                HallRow(position=i, label=label, seat_count=count)
                for i, (label, count) in enumerate(layout)
            ],
        )
        movie = Movie(
            id=uuid.uuid4(),
            title=title,
            slug=f"movie-{uuid.uuid4().hex[:8]}",
            genres="Science Fiction,Adventure",
            runtime_minutes=166,
        )
        starts_at = utcnow() + starts_in
        show = Show(
            id=uuid.uuid4(),
            movie=movie,
            hall=hall,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=166),
            price=price,
        )
        session.add_all([hall, movie, show])
        session.commit()
        return SimpleNamespace(
            show_id=show.id,
            hall_id=hall.id,
            movie_id=movie.id,
            slug=movie.slug,
            price=price,
        )


@pytest.fixture
def show(session_factory):
    return make_show(session_factory)


@pytest.fixture
def user(session_factory):
    return make_user(session_factory, email="alice@mail.com", password=PASSWORD, full_name="Alice Doe")


@pytest.fixture
def other_user(session_factory):
    return make_user(session_factory, email="bob@mail.com", full_name="Bob Roe")


@pytest.fixture
def admin(session_factory):
    return make_user(session_factory, email="admin@mail.com", role="admin", full_name="Admin")

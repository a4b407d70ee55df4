from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings


def build_engine(url: str) -> Engine:
    """
    Create an engine for ``url``.

    SQLite (local dev and tests) only gets a database-wide write lock, so every
    transaction is opened with BEGIN IMMEDIATE: writers queue on the busy
    timeout instead of failing when they upgrade a read lock. Postgres relies
    on the unique index over seat_holds and conditional UPDATEs.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    # For PostgreSQL, we might need to adjust pool_size and max_overflow in production
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

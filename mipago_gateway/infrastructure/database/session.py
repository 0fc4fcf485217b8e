"""Database engine and session factory for the wallet store"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from mipago_gateway.config import settings


def build_engine(database_url: str) -> Engine:
    """
    Engine for the wallet store.

    SQLite (local runs and tests) is used single-file without a pool; any
    other backend gets a pre-pinged pool recycled hourly.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Request-scoped session; repositories own commit and rollback"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""Database configuration and session management."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from clinicforms.config import get_settings


settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """Create an engine with the right connection args for the backend."""
    # Handle SQLite vs PostgreSQL connection args
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def init_db(bind: Engine = None) -> None:
    """Create all tables registered on the declarative base."""
    # Register models on the metadata before creating tables
    import clinicforms.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

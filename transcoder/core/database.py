# Database connection and session management (SQLAlchemy)

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

# Create SQLAlchemy engine with connection pooling
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Check connection before using
    pool_recycle=300,    # Recycle connections after 5 minutes
    echo=False
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all database models
Base = declarative_base()


@contextmanager
def session_scope(factory=SessionLocal) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.
    Commits on success, rolls back on error and always closes the session.
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """Create all tables defined in models. Call this once during setup."""
    from transcoder import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)


def dispose_engine():
    """Close every pooled connection held by this process"""
    engine.dispose()

"""Database engine, session factory, and dependency injection."""

import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from estate_admin.core.config import settings
from estate_admin.core.exceptions import InternalError, ValidationError
from estate_admin.db.base import Base

logger = logging.getLogger("estate_admin.db")

engine = create_engine(
    settings.DATABASE_URL,
    pool_size=20,
    max_overflow=40,
    pool_timeout=30,
    pool_recycle=1800,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables known to the model registry."""
    import estate_admin.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def commit_or_rollback(db: Session, operation: str) -> None:
    """Commit the session's transaction; on failure nothing is kept.

    Unique-key violations surface as ``ValidationError``, any other store
    failure (including lock or statement timeouts) as ``InternalError``.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity error during %s: %s", operation, exc.orig)
        raise ValidationError(f"Failed to {operation}: duplicate or invalid reference") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Store failure during %s", operation)
        raise InternalError(f"Failed to {operation}") from exc

"""
Database connection and session management.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from hms_rbac.core.config import settings

# Create declarative base for models
Base = declarative_base()

DATABASE_URL = settings.database_url

# Engine configurations
engine_kwargs = {
    "echo": settings.debug,  # Log SQL queries in debug mode
}
if not DATABASE_URL.startswith("sqlite"):
    engine_kwargs.update({
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": settings.database_pool_timeout,
        "pool_recycle": settings.database_pool_recycle,
    })

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency functions
def get_db():
    """Get database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """
    Run a block of writes as one unit of work.

    Commits when the block completes and rolls back every change made in the
    block if it raises, so multi-table updates are never partially applied.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# Database initialization
def init_db():
    """Initialize database tables."""
    import hms_rbac.models  # noqa: F401  (registers models on Base)
    Base.metadata.create_all(bind=engine)


def close_db():
    """Close database connections."""
    engine.dispose()

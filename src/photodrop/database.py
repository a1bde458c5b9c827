"""Database configuration and session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from photodrop.settings import settings

# SQLite connections are shared with FastAPI's worker threads
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

# Create database engine
engine = create_engine(settings.database_url, connect_args=connect_args)

# Create session factory
SessionLocal = sessionmaker(bind=engine)


def get_db():
    """Get database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

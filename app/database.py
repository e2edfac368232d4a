# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite is accepted for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings


def build_engine(url: str):
    """Engine factory shared by the app and the setup scripts."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.terminal import Terminal                 # noqa
    from app.models.focal_person import FocalPerson          # noqa
    from app.models.neighborhood import Neighborhood         # noqa
    from app.models.dispatcher import Dispatcher             # noqa
    from app.models.alert import Alert                       # noqa
    from app.models.rescue_form import RescueForm            # noqa
    from app.models.post_rescue_form import PostRescueForm   # noqa

    Base.metadata.create_all(bind=bind or engine)


# Registers the post-commit report cache invalidation hook on every Session.
from app.services import report_cache as _report_cache  # noqa: E402,F401

"""
Database connection and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from dedup.models import Base


def build_engine(url: str = settings.DATABASE_URL, **kwargs):
    """Create an engine; SQLite connections wait up to STORE_TIMEOUT_SECONDS on locks."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("timeout", settings.STORE_TIMEOUT_SECONDS)
        kwargs["connect_args"] = connect_args
    return create_engine(url, echo=settings.DEBUG, future=True, **kwargs)


engine = build_engine()

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=None):
    """Initialize database tables."""
    if bind is None and settings.DATABASE_URL.startswith("sqlite:///"):
        settings.project_root.joinpath("data").mkdir(exist_ok=True)
    Base.metadata.create_all(bind=bind or engine)


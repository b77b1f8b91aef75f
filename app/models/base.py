"""
Base database model and session management
"""
import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import get_settings

logger = logging.getLogger(__name__)


def _absolute_sqlite_url(url: str) -> str:
    """Relative SQLite files are pinned to an absolute path at start-up."""
    if not url.startswith("sqlite:///") or url.startswith("sqlite:////"):
        return url
    rel_path = url[len("sqlite:///"):]
    if not rel_path or rel_path == ":memory:":
        return url
    return "sqlite:///" + os.path.abspath(rel_path)


def _engine_options(url: str) -> dict:
    if url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url:
        # One shared connection, or every session would see an empty database
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False, "timeout": 60},
            "poolclass": NullPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
    }


DATABASE_URL = _absolute_sqlite_url(get_settings().database_url)

engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """Request-scoped database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create missing tables. Column changes go through Alembic."""
    import app.models  # noqa: F401  (populate metadata)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready ({engine.dialect.name})")

"""Database configuration for the commission web application."""
from __future__ import annotations

from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from commissiondesk import config
from commissiondesk.core.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL = config.DATABASE_URL


def _create_engine(url: str):
    """Create a SQLAlchemy engine for the given URL, handling sqlite connect args."""
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, future=True)


# In development an unreachable database (usually a local PostgreSQL that is not
# running) falls back to the SQLite file. Any other environment fails loudly.
try:
    engine = _create_engine(DATABASE_URL)
    with engine.connect():
        pass
except OperationalError as exc:  # pragma: no cover - environment dependent
    if config.ENVIRONMENT != "development":
        raise
    fallback = f"sqlite:///{config.DEFAULT_SQLITE_PATH}"
    logger.warning("database_unreachable_falling_back", url=DATABASE_URL, fallback=fallback, error=str(exc))
    DATABASE_URL = fallback
    engine = _create_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Ensure database tables exist and create the default admin user if needed."""

    from commissiondesk import models  # noqa: F401  (import ensures model metadata is registered)
    from commissiondesk.auth import User

    Base.metadata.create_all(bind=engine, checkfirst=True)

    session = SessionLocal()
    try:
        username = config.DEFAULT_ADMIN_USERNAME.strip().lower()
        if session.query(User).filter(User.username == username).count() == 0:
            admin_user = User.create_user(
                username,
                config.DEFAULT_ADMIN_PASSWORD,
                name="System Admin",
                role="admin",
            )
            session.add(admin_user)
            session.commit()
            logger.info("default_admin_created", username=username)
        else:
            logger.debug("default_admin_present", username=username)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coachdesk.core.config import get_settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Sync routes and the deadline sweep share connections across threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


settings = get_settings()
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
logger.debug(f"Database engine created for {engine.dialect.name}")

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Session factory for code that outlives a single request (websockets, scheduler)."""
    return SessionLocal

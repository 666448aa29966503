from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine
from typing import Generator, Optional
import logging

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


# ============================================================
# ✅ Create SQLModel engine
# ============================================================
def build_engine(settings: Settings) -> Engine:
    """Create an engine for the configured database URL."""
    connect_args = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        logger.warning("⚠️ Using SQLite database: fine for local dev, not for production.")

    # For PostgreSQL, pool_pre_ping avoids stale connections
    return create_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def get_engine(settings: Optional[Settings] = None) -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(settings or get_settings())
    return _engine


# ============================================================
# ✅ Create tables (called at startup)
# ============================================================
def create_db_and_tables(engine: Optional[Engine] = None) -> None:
    """Create any missing tables for the mess models (startup and scripts)."""
    # Registers the table classes on SQLModel.metadata
    import models.models  # noqa: F401

    try:
        SQLModel.metadata.create_all(engine or get_engine())
        logger.info("✅ All database tables created successfully.")
    except Exception as e:
        logger.error(f"❌ Failed to create tables: {e}")
        raise


# ============================================================
# ✅ Dependency: FastAPI session generator
# ============================================================
def get_session() -> Generator[Session, None, None]:
    """One session per request; tests override this with an in-memory engine."""
    with Session(get_engine()) as session:
        yield session

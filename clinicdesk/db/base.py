"""
Database engine configuration and health utilities.
"""

from datetime import datetime
from typing import Any, Dict
from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import event, text
from sqlalchemy.pool import NullPool

from clinicdesk.core.config import settings


def _engine_kwargs() -> Dict[str, Any]:
    if settings.is_sqlite:
        return {
            "poolclass": NullPool,
            "connect_args": {"timeout": 30, "check_same_thread": False},
        }
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def _configure_sqlite(engine: Engine) -> None:
    """Enforce foreign keys and take the write lock when a transaction begins.

    SQLite otherwise upgrades a reader to a writer mid-transaction, which
    fails immediately under contention instead of waiting on the busy timeout.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Create async engine
async_engine = create_async_engine(
    settings.database_url,
    **_engine_kwargs(),
    echo=settings.debug
)

if settings.is_sqlite:
    _configure_sqlite(async_engine.sync_engine)

# Session maker
AsyncSessionLocal = sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def create_sync_engine() -> Engine:
    """Create a synchronous engine for schema management."""
    engine = create_engine(settings.database_url_sync, **_engine_kwargs(), echo=settings.debug)
    if settings.is_sqlite:
        _configure_sqlite(engine)
    return engine


async def init_models() -> None:
    """Create all tables that do not exist yet."""
    # Register table metadata
    import clinicdesk.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# Health check utilities
async def check_database_health() -> Dict[str, Any]:
    """Check database connectivity and health."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "database": "connected",
                "timestamp": datetime.utcnow().isoformat()
            }
    except (SQLAlchemyError, OSError) as e:
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "timestamp": datetime.utcnow().isoformat()
        }

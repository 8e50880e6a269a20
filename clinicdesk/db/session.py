"""
Database session management and connection utilities.
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager
from sqlalchemy.exc import IntegrityError

from clinicdesk.core.exceptions import ValidationError
from clinicdesk.db.base import AsyncSessionLocal, async_engine


class DatabaseManager:
    """Database connection and session management."""
    
    def __init__(self):
        self.session_factory = AsyncSessionLocal
    
    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with automatic cleanup."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
    
    async def close(self):
        """Dispose of pooled connections."""
        await async_engine.dispose()


# Global database manager
db_manager = DatabaseManager()


# FastAPI dependency
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with db_manager.get_session() as session:
        yield session


async def commit_or_raise(db: AsyncSession, conflict_message: str) -> None:
    """Commit, turning constraint violations into a client-facing validation error."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationError(conflict_message) from e

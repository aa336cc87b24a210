"""Database Session Manager — async connection pool, units of work, error mapping.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - unit_of_work commits exactly once on clean exit, rolls back on any exception
      (cancellation included) and re-raises
    - All SQLAlchemy exceptions mapped to the error taxonomy (core/errors.py):
      integrity -> ConflictError, lock/deadlock/serialization -> LockTimeoutError,
      anything else -> DatabaseError
    - Connection pool uses pool_pre_ping for stale connection detection

Design Decisions:
    - Session handle passed explicitly to every operation; the only process-wide
      state is the engine (bounded pool) created once at startup
    - expire_on_commit=False: results stay readable after commit in async context
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from kinstone.core.errors import (
    ConflictError, DatabaseError, KinstoneError, LockTimeoutError,
)

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs that mean "another transaction holds what you need"
_LOCK_SQLSTATES = {
    "55P03",  # lock_not_available (lock_timeout / NOWAIT)
    "40P01",  # deadlock_detected
    "40001",  # serialization_failure
    "57014",  # query_canceled (statement_timeout)
}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def map_db_error(exc: SQLAlchemyError) -> KinstoneError:
    """Translate a store exception into the domain error taxonomy."""
    if isinstance(exc, IntegrityError):
        return ConflictError("Concurrent modification violated a store constraint")
    if isinstance(exc, DBAPIError) and _sqlstate(exc) in _LOCK_SQLSTATES:
        return LockTimeoutError("Timed out waiting for a lock held by another operation")
    if isinstance(exc, OperationalError):
        if "locked" in str(exc.orig).lower():
            return LockTimeoutError("Database is locked by another operation")
        return DatabaseError("Connection or operational error", "execute")
    if isinstance(exc, DBAPIError):
        return DatabaseError("Database driver error", "query")
    return DatabaseError("Database operation failed", "unknown")


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """All-or-nothing scope: commit on clean exit, roll back on any exception."""
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Unit of work rolled back: {e}")
        raise map_db_error(e) from e
    except BaseException:
        await db.rollback()
        raise


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"DB error outside unit of work: {e}")
            raise map_db_error(e) from e
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session

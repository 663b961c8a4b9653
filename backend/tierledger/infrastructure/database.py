"""Ledger database access — engine, per-request sessions and failure mapping.

Invariants:
    - A session that raises is rolled back before the error leaves it
    - SQLAlchemy failures surface as DatabaseError carrying the feature and
      record the request was working on
    - SQLite URLs get no pool sizing; PostgreSQL gets a pre-pinged, recycled pool

Design Decisions:
    - db_manager is created in the FastAPI lifespan, never at import time
    - expire_on_commit=False: engines keep reading the domain rows they wrote
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from tierledger.core.errors import DatabaseError, ErrorContext

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIErrors
_FAILURES: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "commit", "Ledger constraint violated (duplicate id or dangling reference)"),
    (OperationalError, "execute", "Ledger database unreachable or locked"),
    (DBAPIError, "query", "Database driver error"),
    (SQLAlchemyError, "unknown", "Ledger operation failed"),
)


def _describe(exc: SQLAlchemyError) -> tuple[str, str]:
    return next((op, msg) for kind, op, msg in _FAILURES if isinstance(exc, kind))


class DatabaseSessionManager:
    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.is_sqlite = database_url.startswith("sqlite")
        options: dict = {"pool_pre_ping": True}
        if not self.is_sqlite:
            options.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **options)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(
        self, feature: str | None = None, record_id: str | None = None,
    ) -> AsyncGenerator[AsyncSession, None]:
        """Session scoped to one ledger request; failures roll back and map to DatabaseError."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            operation, message = _describe(e)
            logger.error(
                f"Ledger {operation} failed: {e}",
                extra={"feature": feature, "record_id": record_id},
            )
            raise DatabaseError(
                message, operation, ErrorContext(feature=feature, record_id=record_id),
            ) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Ledger database health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    backend = "sqlite" if db_manager.is_sqlite else "postgresql"
    logger.info(f"Ledger database configured ({backend})")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, tagged with its feature and record."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    params = request.path_params
    async with db_manager.session(
        params.get("feature"), params.get("record_id"),
    ) as session:
        yield session

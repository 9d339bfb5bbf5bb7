"""
Database Management and Configuration.

Asynchronous SQLAlchemy engine and session factory for the comment store,
with SQLModel supplying the table metadata.

Key Components:
- `create_engine_for`: Builds an async engine for a URL. SQLite (via
  `aiosqlite`) is used for development and tests, PostgreSQL (via `asyncpg`)
  in production.
- `engine` / `async_session`: Process-wide engine and session factory built
  from `DATABASE_URL`.
- `create_db_and_tables`: Startup hook creating all SQLModel tables.
- `session_scope`: Transactional session helper used by the comment repository.
- `get_database_info`: Diagnostic information for health checks.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool
from sqlmodel import SQLModel

from core.config import get_settings
from core.logging_config import get_logger

logger = get_logger(__name__)

DATABASE_URL = get_settings().database_url


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine configured for the database type"""
    if url.startswith("sqlite"):
        if url.rstrip("/").endswith(":memory:") or url.endswith("://"):
            # In-memory SQLite must share one connection
            return create_async_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=AsyncAdaptedQueuePool,
            echo=False,
        )

    return create_async_engine(
        url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )


def create_session_factory(
    bind: AsyncEngine,
) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine_for(DATABASE_URL)
async_session = create_session_factory(engine)


async def create_db_and_tables(bind: Optional[AsyncEngine] = None):
    """
    Initialize the database and create all tables.
    Called during application startup.
    """
    target = bind or engine
    try:
        async with target.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Comment store tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create comment store tables: {e}")
        raise


@asynccontextmanager
async def session_scope(factory: Optional[async_sessionmaker] = None) -> AsyncIterator[AsyncSession]:
    """Open a session, committing on success and rolling back on error"""
    session_factory = factory or async_session
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_database_info() -> Dict[str, Any]:
    """
    Get basic database information for health checks.
    """
    try:
        async with async_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            connection_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        connection_healthy = False

    return {
        # Hide credentials
        "database_url": DATABASE_URL.split("@")[1] if "@" in DATABASE_URL else "masked",
        "connection_healthy": connection_healthy,
        "database_type": "postgresql" if "postgresql" in DATABASE_URL else "sqlite",
    }

# backend/edu_erp/database.py

"""
Async SQLAlchemy engine and session management for the ERP schema.
"""

import asyncio
import logging
from typing import Optional, AsyncGenerator, Dict, Any
from contextlib import asynccontextmanager

from sqlalchemy import text, event
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from .config import get_settings
from .models.base import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the async engine and session factory with schema support."""

    def __init__(self) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.AsyncSessionLocal: Optional[async_sessionmaker] = None
        self.schema: str = "school_erp"
        self._is_initialized = False

    async def initialize(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        echo: bool = False,
        schema: str = "school_erp",
        max_retries: int = 3,
        retry_delay: int = 1,
    ) -> None:
        """
        Initialize async engine and session factory. Retries on failure.
        """
        if self._is_initialized:
            logger.warning("Database already initialized")
            return

        db_url = database_url or get_settings().DATABASE_URL
        if not db_url:
            raise ValueError("Database URL is required")

        # Convert sync prefix to async if needed
        if db_url.startswith("postgresql://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

        last_error = None
        for attempt in range(max_retries):
            try:
                self.engine = create_async_engine(
                    db_url,
                    echo=echo,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle,
                    pool_pre_ping=True,
                    connect_args={
                        "server_settings": {"search_path": f"{schema},public"}
                    },
                )
                self.AsyncSessionLocal = async_sessionmaker(
                    bind=self.engine, expire_on_commit=False, class_=AsyncSession
                )
                self._setup_event_listeners()
                await self._test_connection()

                self.schema = schema
                self._is_initialized = True
                logger.info(f"Async database initialized with schema: {schema}")
                return
            except Exception as e:
                last_error = e
                logger.error(
                    f"Database initialization attempt {attempt + 1}/{max_retries} failed: {e}"
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (attempt + 1))

        raise RuntimeError(
            f"Failed to initialize async database after {max_retries} attempts"
        ) from last_error

    def _setup_event_listeners(self) -> None:
        """Attach listeners to the underlying sync engine."""
        if not self.engine:
            return

        @event.listens_for(self.engine.sync_engine, "checkout")
        def on_checkout(dbapi_connection, connection_record, connection_proxy):
            logger.debug("Connection checked out from pool")

        @event.listens_for(self.engine.sync_engine, "checkin")
        def on_checkin(dbapi_connection, connection_record):
            logger.debug("Connection returned to pool")

    async def _test_connection(self) -> None:
        if self.engine is None:
            raise RuntimeError("Engine not initialized")

        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Async context manager returning an AsyncSession."""
        if not self._is_initialized or not self.AsyncSessionLocal:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self.AsyncSessionLocal() as session:
            try:
                yield session
            except Exception as e:
                logger.error(f"Async DB session error: {e}")
                await session.rollback()
                raise

    async def create_all_tables(self) -> None:
        """Create the schema and all mapped tables."""
        if self.engine is None:
            raise RuntimeError("Engine not initialized")

        async with self.engine.begin() as conn:
            await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {self.schema}"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"All tables created in schema: {self.schema}")

    async def close(self) -> None:
        """Dispose the async engine."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.AsyncSessionLocal = None
        self._is_initialized = False


# Global manager
db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession."""
    async with db_manager.get_session() as session:
        yield session


async def init_db(database_url: Optional[str] = None, create_tables: bool = False) -> None:
    """Initialize the async database from application settings."""
    settings = get_settings()
    config = settings.database_config
    await db_manager.initialize(
        database_url=database_url or settings.DATABASE_URL,
        pool_size=config["pool_size"],
        max_overflow=config["max_overflow"],
        pool_timeout=config["pool_timeout"],
        pool_recycle=config["pool_recycle"],
        echo=config["echo"],
        schema=config["schema"],
    )

    if create_tables:
        await db_manager.create_all_tables()


async def check_db_health() -> Dict[str, Any]:
    """Async health check."""
    try:
        if db_manager.engine is None:
            raise RuntimeError("Engine not initialized")

        async with db_manager.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "healthy", "schema": db_manager.schema}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

"""
Database connection and session management for Identity Reconciliation API
This module sets up the SQLAlchemy async engine with transactional session
scopes. Supports local PostgreSQL, AWS RDS (asyncpg) and SQLite (aiosqlite)
for local runs and tests.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import settings
from models import Base

# Configure logging
logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database connection manager that handles the SQLAlchemy engine,
    session creation, and connection lifecycle management
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.get_active_database_url()
        self.engine = None
        self.SessionLocal = None
        self._initialize_database()

    def _engine_options(self) -> dict:
        if self.database_url.startswith("sqlite"):
            # One shared connection so an in-memory database outlives its sessions
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }

        options = {
            "pool_pre_ping": True,  # Validate connections before use
            "connect_args": {
                "server_settings": {
                    "application_name": "identity-reconciliation",
                }
            },
        }
        if settings.is_lambda_environment():
            # Single concurrent execution per Lambda container
            options.update(pool_size=1, max_overflow=0, pool_timeout=10, pool_recycle=3600)
        else:
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
            )
        if settings.DB_ISOLATION_LEVEL:
            options["isolation_level"] = settings.DB_ISOLATION_LEVEL
        return options

    def _initialize_database(self):
        """Initialize database engine and session factory"""
        logger.info(f"Initializing database connection to: {self.database_url.split('@')[0]}@[HIDDEN]")

        self.engine = create_async_engine(
            self.database_url,
            echo=settings.DB_ECHO,
            **self._engine_options()
        )

        self.SessionLocal = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Projections read attributes after commit
            autoflush=False
        )

        logger.info("Database connection initialized successfully")

    async def create_tables(self):
        """Create all database tables defined in models"""
        logger.info("Creating database tables...")
        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def test_connection(self) -> bool:
        """Test database connection"""
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Transactional session scope: commits when the block exits cleanly,
        rolls back and re-raises on any error.

        Usage:
            async with db_manager.get_session() as session:
                # database operations
        """
        session = self.SessionLocal()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session rolled back: {e}")
            raise
        finally:
            await session.close()

    async def dispose(self):
        await self.engine.dispose()


# Global database manager instance
db_manager = DatabaseManager()

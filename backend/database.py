"""
backend/database.py
Database configuration

The engine and session factory live on a Database object that is built
explicitly (by the application lifespan, or by tests with an in-memory
URL) and attached to app.state. Request handlers receive a session through
the get_db dependency.
"""
import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.orm.base import Base
import backend.orm  # ensures all models are registered

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns one async engine and its session factory.

    Args:
        url: SQLAlchemy async database URL
        echo: Log SQL statements
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url

        if "sqlite" in url.lower():
            if ":memory:" in url:
                # One shared connection so every session sees the same in-memory schema
                engine_kwargs = {"poolclass": StaticPool}
            else:
                engine_kwargs = {
                    "pool_pre_ping": True,
                    "pool_size": 10,
                    "max_overflow": 20,
                    "pool_timeout": 30,
                }
            engine_kwargs["connect_args"] = {
                "timeout": 30.0,   # SQLite busy timeout in seconds
                "check_same_thread": False,
            }
        else:
            # PostgreSQL/MySQL: standard pool with larger size
            engine_kwargs = {
                "pool_pre_ping": True,
                "pool_size": 20,
                "max_overflow": 30,
                "pool_timeout": 30,
                "pool_recycle": 3600,
            }

        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)

        if "sqlite" in url.lower():
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_all(self) -> None:
        """Create all tables that do not exist yet"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified")

    async def dispose(self) -> None:
        """Close every pooled connection"""
        await self.engine.dispose()
        logger.info("Database connections closed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting an async database session"""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()

"""
Async SQLAlchemy database handle.

The application owns exactly one `Database`, created in the FastAPI lifespan
and disposed on shutdown. Nothing in the core reaches for a module-level
engine; sessions are always obtained from the handle that was passed in.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)


class Database:
    """Engine plus session factory with an explicit open/close lifecycle."""

    def __init__(
        self,
        url: str,
        echo: bool = False,
        engine: Optional[AsyncEngine] = None,
    ):
        if engine is None:
            connect_args = {}
            if url.startswith("postgresql+asyncpg"):
                # Required for Supabase Transaction Pooler
                connect_args["statement_cache_size"] = 0
            # NullPool is recommended for serverless environments
            engine = create_async_engine(
                url,
                poolclass=NullPool,
                echo=echo,
                connect_args=connect_args,
            )
        self.engine = engine
        self.sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database sessions.
        Use in non-FastAPI contexts (scheduler jobs, notifier, etc).
        Usage:
            async with database.session() as db:
                result = await db.execute(...)
        """
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        logger.info("Disposing database engine")
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.
    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work over an existing session.

    Everything written inside the block is committed together, or rolled
    back together if the block raises.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise

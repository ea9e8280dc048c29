"""
Database engine and session management.

A single async engine is created from ``settings.database_url``. Request
handlers receive a session through :func:`get_db`; components that manage
their own transactions (the allocator, the backfill sweeper and the walk-in
commit) receive the session factory through :func:`get_session_factory`.
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from seating.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


def get_session_factory() -> async_sessionmaker:
    """Session factory dependency (overridden in tests)"""
    return SessionLocal


async def get_db(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for the duration of a request"""
    async with session_factory() as session:
        yield session

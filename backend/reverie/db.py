# backend/reverie/db.py
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from .models import Base


def make_engine(database_url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create the async SQLAlchemy engine for a database URL."""
    return create_async_engine(
        database_url,
        echo=echo,  # True to log SQL
        **kwargs,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from shopcart.core.config import settings
from shopcart.db.base import Base
from shopcart.db import models  # noqa: F401


def create_engine(database_url: str = None) -> AsyncEngine:
    return create_async_engine(database_url or settings.DATABASE_URL, echo=False)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    """Create storage tables if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from coinsignal.models.base import Base

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=5,
    max_overflow=5,
    pool_pre_ping=True,
    pool_recycle=3600,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(db_engine: AsyncEngine = engine) -> None:
    """Create the scan log table if it does not exist (migrations live under alembic/)."""
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

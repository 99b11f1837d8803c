
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.core.logging import get_logger
from app.helpers.getters import isDebugMode

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL

if isDebugMode():
    logger.info("Using debug database settings (SQL echo enabled)")

engine_internal = create_async_engine(
    DATABASE_URL,
    # NullPool for SQLite to avoid sharing one file handle across event loops
    poolclass=NullPool if DATABASE_URL.startswith("sqlite") else None,
    echo=settings.DATABASE_ECHO or isDebugMode(),
    future=True,
)
SessionAsync = async_sessionmaker(engine_internal, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create all tables. Called on startup when CREATE_TABLES_ON_STARTUP is set."""
    from app.db.base import Base

    async with engine_internal.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")

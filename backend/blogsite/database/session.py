from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy import text
import logging

from ..core.config import settings
from ..models.base import Base

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    options = {"echo": settings.DEBUG}
    if settings.is_postgres:
        options.update(
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.APP_NAME},
                "command_timeout": settings.DB_COMMAND_TIMEOUT,
                "timeout": settings.DB_COMMAND_TIMEOUT,
            }
        )
    return options


engine = create_async_engine(settings.DATABASE_URL.get_secret_value(), **_engine_options())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


async def get_db() -> AsyncSession:  # type: ignore
    """
    Request-scoped session for FastAPI dependency injection.
    Commit/rollback is the service layer's job; this only cleans up.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error occurred, rolling back: {e}")
            raise


async def init_db(bind=None):
    """Create all tables. Production deployments may manage the schema externally."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def close_db():
    await engine.dispose()
    logger.info("Database connections closed")


async def check_db_connection() -> bool:
    try:
        async with AsyncSessionLocal() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False

import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker

from policy_review.core.config import settings


logger = logging.getLogger(__name__)

engine: AsyncEngine = create_async_engine(
    str(settings.database_url),
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# ORM objects stay readable after commit since async sessions cannot lazy-load expired attributes
SessionLocal = sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


async def check_connection() -> bool:
    """check that the agreements database is reachable"""

    try:
        async with engine.connect() as cnx:
            result = await cnx.execute(text("SELECT version()"))
            logger.info(f"database connection successful: {result.scalar_one()}")
        return True
    except SQLAlchemyError:
        logger.error("database connection failed", exc_info=True)
        return False
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(check_connection())

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from policy_review.core.db import SessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """get a new async database session, rolling back any uncommitted work when the request fails"""

    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

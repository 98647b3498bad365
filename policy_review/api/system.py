import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.api.deps import get_db
from policy_review.core.config import settings


router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/", tags=["index"])
def root():
    response = Response(content=f"{settings.app_name} v{settings.app_version}", status_code=200)
    return response


@router.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """report service health including database connectivity"""

    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("health check failed - database unavailable", exc_info=True)
        return Response(content="database unavailable", status_code=503)
    response = Response(content="OK", status_code=200)
    return response

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shopqueue.core.cache import get_cache
from shopqueue.db.database import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root_health_check():
    return {"status": "ok"}


@router.get("/db")
async def db_health_check(session: AsyncSession = Depends(get_db_session)):
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database connection failed: {e}",
        )


@router.get("/redis")
async def redis_health_check():
    """Check Redis connection status. Analytics still works without it, uncached."""
    try:
        cache = await get_cache()
        if cache.connected:
            test_key = "health_check_test"
            await cache.set(test_key, {"test": True}, ttl=10)
            result = await cache.get(test_key)
            await cache.delete(test_key)

            if result:
                return {"status": "ok", "redis": "connected"}
            return {"status": "degraded", "redis": "connected but read failed"}
        return {"status": "unavailable", "redis": "not connected"}
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Redis connection failed: {e}",
        )

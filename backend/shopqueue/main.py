import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shopqueue.api import analytics, health, queue
from shopqueue.api.dependencies.services import init_queue_services
from shopqueue.core.cache import close_cache, get_cache
from shopqueue.core.config import settings
from shopqueue.core.logging_config import setup_logging
from shopqueue.db.database import AsyncSessionLocal, engine
from shopqueue.exceptions import QueueError
from shopqueue.models import Base
from shopqueue.repositories.sql_store import SqlQueueStore
from shopqueue.services.analytics_cache import RedisAnalyticsCache

logger = logging.getLogger(__name__)

# Validate CORS for production
if settings.ENVIRONMENT == "production":
    if "http://localhost:3000" in settings.CORS_ORIGINS and len(settings.CORS_ORIGINS) == 1:
        logger.error("Production environment detected but CORS_ORIGINS contains localhost or is not set correctly.")
        sys.exit(1)

app = FastAPI(title="Shop Queue Engine")

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError):
    if not exc.is_user_facing:
        logger.error(
            f"{exc.error_type.value} in {exc.operation}: {exc.message} context={exc.context}",
            exc_info=exc.cause,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message(), "error_type": exc.error_type.value},
    )


@app.on_event("startup")
async def startup_event():
    # Setup Logging
    setup_logging()

    logger.info(f"Starting up in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS Allowed Origins: {settings.CORS_ORIGINS}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    cache_service = await get_cache()
    init_queue_services(
        app.state,
        store=SqlQueueStore(session_factory=AsyncSessionLocal),
        analytics_cache=RedisAnalyticsCache(cache_service),
    )


@app.on_event("shutdown")
async def shutdown_event():
    await close_cache()
    await engine.dispose()


app.include_router(health.router, prefix="/api/v1/health", tags=["Health Check"])
app.include_router(queue.router, prefix="/api/v1/shops/{shop_id}/queues", tags=["Queue"])
app.include_router(analytics.router, prefix="/api/v1/shops/{shop_id}/analytics", tags=["Queue Analytics"])


def run():
    import uvicorn

    uvicorn.run("shopqueue.main:app", host="0.0.0.0", port=8000)

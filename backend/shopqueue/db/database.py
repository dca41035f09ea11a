from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from shopqueue.core.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite picks its own pool; sizing arguments are rejected there
        return create_async_engine(database_url, echo=False)

    return create_async_engine(
        database_url,
        pool_size=20,
        max_overflow=10,        # Bulk batches open one session per item
        pool_timeout=30,        # Wait up to 30s for a connection
        pool_recycle=1800,      # Recycle connections every 30 minutes
        pool_pre_ping=True,
        echo=False,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


# DATABASE_URL is already validated in settings
engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = build_session_factory(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

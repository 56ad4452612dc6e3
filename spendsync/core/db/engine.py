from spendsync.core.config import config as settings
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool


def build_engine(db_url: str, *, use_pool: bool = True) -> AsyncEngine:
    """Create an async engine; pooling is disabled outside production."""
    return create_async_engine(
        db_url,
        echo=False,
        poolclass=None if use_pool else NullPool,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,  # Manual control over flushing
    )


engine = build_engine(settings.db_url, use_pool=settings.is_production)

# Session factory shared by repositories and request handlers
AsyncSessionLocal = build_session_factory(engine)


"""Async SQLAlchemy engine, session factory and declarative base."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from order_notify.config import Settings


class Base(DeclarativeBase):
    pass


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    kwargs = {"echo": settings.DATABASE_ECHO}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Called once at application startup."""
    # Register every mapped table on Base.metadata
    from order_notify.domain.models import (  # noqa: F401
        alert,
        error_log,
        message_template,
        notification,
        opt_out,
        order,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

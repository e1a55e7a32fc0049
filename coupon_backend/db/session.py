from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coupon_backend.core.config import settings

engine = create_async_engine(
    settings.sqlalchemy_url(),
    future=True,
    echo=False,
    pool_pre_ping=True,
    connect_args=settings.db_connect_args(),
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency to provide a database session."""
    async with SessionLocal() as session:
        yield session

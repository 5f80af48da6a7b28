# asmr_studio/core/database.py
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from asmr_studio.core.config import get_database_url


def build_engine(db_url: str):
    if "sqlite" in db_url:
        kwargs = {"echo": False, "connect_args": {"check_same_thread": False}}
        # In-memory SQLite must share one connection or every session sees an empty DB
        if ":memory:" in db_url or db_url.endswith("sqlite+aiosqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(db_url, **kwargs)

    # Hosted Postgres (asyncpg)
    return create_async_engine(
        db_url,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(get_database_url())

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def init_models() -> None:
    # Register every table on Base.metadata before create_all
    import asmr_studio.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()


async def get_db():
    async with SessionLocal() as session:
        yield session

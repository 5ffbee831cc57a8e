# dropserver/database.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def build_engine(settings):
    """Async engine for the relational store (asyncpg), with bounded waits."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_timeout_seconds,
        pool_pre_ping=True,
        connect_args={"timeout": settings.db_timeout_seconds},
    )


def build_session_factory(engine):
    # Session factory shared by the writer and the stats repository
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def init_models(engine):
    # Import registers the tables on Base.metadata
    from dropserver import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

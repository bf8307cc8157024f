from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.config import settings

_STALE_VIEWS = "stale_views"


def to_async_url(database_url: str) -> str:
    """Map a sync database URL onto its async driver.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so
    those are stripped; SSL is enabled via connect_args instead.
    """
    if database_url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + database_url[len("sqlite://"):]
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    return urlunparse(parsed._replace(scheme="postgresql+asyncpg", query=urlencode(query, doseq=True)))


def build_engine(database_url: str | None = None) -> AsyncEngine:
    url = to_async_url(database_url or settings.database_url)
    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        url,
        echo=settings.env == "development",
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args={"ssl": settings.env == "production"},
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_maker: async_sessionmaker[AsyncSession] = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    # Register tables on the shared metadata
    import clinic_scheduler.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def invalidate_on_commit(session: AsyncSession, cache: ViewCache | None, *practitioner_ids: int) -> None:
    """Drop cached views of these practitioners once ``session`` commits.

    Invalidating at flush time lets a concurrent reader cache the old
    committed state before this transaction lands.
    """
    if cache is None:
        return
    session.info.setdefault(_STALE_VIEWS, set()).update((cache, pid) for pid in practitioner_ids)


@event.listens_for(Session, "after_commit")
def _drop_stale_views(session: Session) -> None:
    for cache, practitioner_id in session.info.pop(_STALE_VIEWS, ()):
        cache.invalidate_practitioner(practitioner_id)


@event.listens_for(Session, "after_rollback")
def _forget_stale_views(session: Session) -> None:
    session.info.pop(_STALE_VIEWS, None)

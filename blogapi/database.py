import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from blogapi.config import settings
from blogapi.middleware import install_query_counter

logger = logging.getLogger(__name__)

# Tests bind their own engine and override get_db.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


_AFTER_COMMIT = "after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """
    Queue *callback* to run once *session* has committed.  Queuing the same
    callback twice runs it once; a rollback discards the queue.
    """
    pending = session.info.setdefault(_AFTER_COMMIT, [])
    if callback not in pending:
        pending.append(callback)


async def commit(session: AsyncSession) -> None:
    await session.commit()
    for callback in session.info.pop(_AFTER_COMMIT, []):
        await callback()


async def get_db():
    """
    Yield one session per request.  The request's writes (including every
    toggle and its counter update) commit together or not at all, and
    callbacks queued with ``after_commit`` run only after a commit.

    A cancelled request never reaches either branch; closing the session on
    exit from the context manager discards its open transaction.
    """
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception as exc:
            logger.debug("Rolling back request transaction: %s", type(exc).__name__)
            session.info.pop(_AFTER_COMMIT, None)
            await session.rollback()
            raise

import logging
from typing import Any, Awaitable, Callable

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.cache import CacheManager


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Post-commit callbacks: cache invalidation queued by services runs only
# once get_db has committed.  A rollback drops the queue.
# ---------------------------------------------------------------------------

_AFTER_COMMIT = "after_commit"


def after_commit(
    session: AsyncSession, callback: Callable[..., Awaitable[Any]], *args: Any
) -> None:
    """Queue ``await callback(*args)`` for after the session commits."""
    session.info.setdefault(_AFTER_COMMIT, []).append((callback, args))


async def run_after_commit(session: AsyncSession) -> None:
    for callback, args in session.info.pop(_AFTER_COMMIT, []):
        await callback(*args)


def discard_after_commit(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT, None)


# ---------------------------------------------------------------------------
# Request-scoped dependencies backed by the ``Data`` instance that the
# application lifespan stores on ``app.state``.  Tests override these.
# ---------------------------------------------------------------------------

async def get_db(request: Request):
    async with request.app.state.data.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            discard_after_commit(session)
            raise
        await run_after_commit(session)


def get_cache(request: Request) -> CacheManager:
    return request.app.state.data.cache


def get_logger(request: Request) -> logging.Logger:
    return request.app.state.logger

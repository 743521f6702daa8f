"""
Persistence client.

``new_data`` builds the process-wide database engine and Redis client once
at startup and returns them wrapped in a ``Data`` instance together with its
release coroutine.  Request handlers borrow sessions from
``Data.session_factory`` and the cache from ``Data.cache``; nothing else
holds a connection.

Schema synchronisation is deliberately not part of construction; see
``app.migrate``.
"""
import logging
from typing import Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.cache import CacheManager, TracedRedis
from app.config import Settings
from app.middleware import install_query_tracing


class DataError(RuntimeError):
    """The database or cache could not be reached during startup."""


class Data:
    def __init__(self, engine: AsyncEngine, redis_client, logger: logging.Logger) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.redis = redis_client
        self.cache = CacheManager(redis_client, logger)
        self._logger = logger

    async def close(self) -> None:
        """
        Release the database pool and the Redis client.

        Each close is attempted regardless of how the other one went; failures
        are logged and never raised.
        """
        self._logger.info("closing the data resources")
        try:
            await self.engine.dispose()
        except Exception as exc:
            self._logger.error("failed closing database: %s", exc)
        try:
            await self.redis.aclose()
        except Exception as exc:
            self._logger.error("failed closing redis: %s", exc)


def _build_redis(settings: Settings) -> TracedRedis:
    return TracedRedis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.REDIS_PASSWORD,
        db=settings.REDIS_DB,
        socket_connect_timeout=settings.REDIS_DIAL_TIMEOUT,
        # redis-py has a single socket timeout for reads and writes.
        socket_timeout=max(settings.REDIS_READ_TIMEOUT, settings.REDIS_WRITE_TIMEOUT),
        decode_responses=True,
    )


async def new_data(
    settings: Settings, logger: logging.Logger
) -> tuple[Data, Callable[[], Awaitable[None]]]:
    """
    Open the database engine and the Redis client.

    Returns ``(data, release)``.  Raises ``DataError`` when either backend is
    unreachable; anything opened before the failure is closed first.
    """
    try:
        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            pool_pre_ping=True,
        )
    except Exception as exc:
        logger.error("failed creating database engine: %s", exc)
        raise DataError(f"failed creating database engine: {exc}") from exc

    install_query_tracing(engine)

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("failed opening connection to database: %s", exc)
        await engine.dispose()
        raise DataError(f"failed opening connection to database: {exc}") from exc

    rdb = None
    try:
        rdb = _build_redis(settings)
        await rdb.ping()
    except Exception as exc:
        logger.error("failed connecting to redis at %s: %s", settings.REDIS_ADDR, exc)
        if rdb is not None:
            await rdb.aclose()
        await engine.dispose()
        raise DataError(f"failed connecting to redis at {settings.REDIS_ADDR}: {exc}") from exc

    logger.info("data resources ready (database=%s, redis=%s)", engine.url.drivername, settings.REDIS_ADDR)
    data = Data(engine, rdb, logger)
    return data, data.close

import json
import logging

import redis.asyncio as redis
from opentelemetry import trace

tracer = trace.get_tracer(__name__)

# Longest statement text attached to a span; values can be large JSON blobs.
_MAX_STATEMENT_LEN = 200


class TracedRedis(redis.Redis):
    """
    ``redis.asyncio.Redis`` with a tracing hook: every command runs inside a
    CLIENT span named after the command, so cache traffic shows up next to
    the SQL ``Query`` spans in the same trace.
    """

    async def execute_command(self, *args, **options):
        command = str(args[0]) if args else "UNKNOWN"
        statement = " ".join(str(a) for a in args)[:_MAX_STATEMENT_LEN]
        with tracer.start_as_current_span(
            command,
            kind=trace.SpanKind.CLIENT,
            attributes={"db.system": "redis", "db.statement": statement},
        ):
            return await super().execute_command(*args, **options)


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are silently skipped,
    so the application degrades gracefully without raising exceptions to
    callers.  Passing ``client=None`` disables the cache entirely.
    """

    def __init__(self, client: redis.Redis | None, logger: logging.Logger) -> None:
        self._redis = client
        self._logger = logger
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """
        Return the cached value for *key*, or None on a miss / error.

        Increments hit/miss counters for observability.
        """
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            self._logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Serialisation errors and Redis failures are logged and dropped.
        """
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl)
        except Exception as exc:
            self._logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, *keys: str) -> None:
        if not self._redis or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception as exc:
            self._logger.debug("Cache DELETE error for keys=%r: %s", keys, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """
        Delete all keys matching *pattern* using SCAN (avoids blocking KEYS).
        """
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                self._logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            self._logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_article(self, article_id: int) -> None:
        await self.delete(f"articles:detail:{article_id}")

    async def invalidate_tag(self, tag_id: int) -> None:
        """
        Drop the tag's detail entry and every article detail, since article
        details embed their tags.
        """
        await self.delete(f"tags:detail:{tag_id}")
        await self.delete_pattern("articles:detail:*")

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

"""
Direct service-layer tests: exercises business logic without HTTP, including
the cache-aside paths that endpoint tests skip because Redis is disabled
there.
"""
import fnmatch
import logging
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.cache import CacheManager
from app.database import after_commit, get_db, run_after_commit
from app.models import Tag
from app.schemas import ArticleCreate, ArticleUpdate, TagCreate, TagUpdate
from app.services import article_service, tag_service, user_service
from app.services.article_service import TagNotFound


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis calls CacheManager makes."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")

    async def delete(self, *keys):
        raise ConnectionError("redis down")


async def _commit(db: AsyncSession) -> None:
    await db.commit()
    await run_after_commit(db)


@pytest.fixture
def redis_cache(logger: logging.Logger) -> tuple[CacheManager, FakeRedis]:
    fake = FakeRedis()
    return CacheManager(fake, logger), fake


# ---------------------------------------------------------------------------
# tag_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_tag_via_service(db_session: AsyncSession):
    result = await tag_service.create_tag(
        db_session, TagCreate(name="golang", created_by="alice", updated_by="alice")
    )
    assert result["name"] == "golang"
    assert result["status"] == 0
    assert result["created_at"] is not None


@pytest.mark.asyncio
async def test_get_tag_is_cached_and_invalidated(db_session: AsyncSession, redis_cache):
    cache, fake = redis_cache
    created = await tag_service.create_tag(
        db_session, TagCreate(name="cached", created_by="alice", updated_by="alice")
    )
    key = f"tags:detail:{created['id']}"

    first = await tag_service.get_tag(db_session, cache, created["id"])
    assert key in fake.store
    second = await tag_service.get_tag(db_session, cache, created["id"])
    assert second == first
    assert cache.stats["hits"] == 1

    fake.store["articles:detail:7"] = "{}"
    await tag_service.update_tag(db_session, cache, created["id"], TagUpdate(status=1))
    assert key in fake.store

    await _commit(db_session)
    assert key not in fake.store
    assert "articles:detail:7" not in fake.store

    fresh = await tag_service.get_tag(db_session, cache, created["id"])
    assert fresh["status"] == 1


@pytest.mark.asyncio
async def test_update_tag_only_touches_set_fields(db_session: AsyncSession, cache: CacheManager):
    created = await tag_service.create_tag(
        db_session, TagCreate(name="partial", created_by="alice", updated_by="alice")
    )
    result = await tag_service.update_tag(
        db_session, cache, created["id"], TagUpdate(updated_by="bob")
    )
    assert result["updated_by"] == "bob"
    assert result["created_by"] == "alice"
    assert result["name"] == "partial"
    assert result["status"] == 0


@pytest.mark.asyncio
async def test_delete_tag_via_service(db_session: AsyncSession, cache: CacheManager):
    created = await tag_service.create_tag(
        db_session, TagCreate(name="doomed", created_by="alice", updated_by="alice")
    )
    assert await tag_service.delete_tag(db_session, cache, created["id"]) is True
    assert await tag_service.get_tag(db_session, cache, created["id"]) is None
    assert await tag_service.delete_tag(db_session, cache, created["id"]) is False


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_unknown_tag_raises(db_session: AsyncSession):
    with pytest.raises(TagNotFound) as excinfo:
        await article_service.create_article(
            db_session, ArticleCreate(title="Nope", content="Body", created_by="alice", tag_ids=[9, 10])
        )
    assert excinfo.value.tag_ids == [9, 10]


@pytest.mark.asyncio
async def test_article_detail_cache_invalidated_on_update(db_session: AsyncSession, redis_cache):
    cache, fake = redis_cache
    created = await article_service.create_article(
        db_session, ArticleCreate(title="Cache me", content="Body", created_by="alice")
    )
    await article_service.get_article(db_session, cache, created["id"])
    assert f"articles:detail:{created['id']}" in fake.store

    updated = await article_service.update_article(
        db_session, cache, created["id"], ArticleUpdate(title="Changed")
    )
    assert updated["title"] == "Changed"
    assert f"articles:detail:{created['id']}" in fake.store

    await _commit(db_session)
    assert f"articles:detail:{created['id']}" not in fake.store


@pytest.mark.asyncio
async def test_update_article_missing_returns_none(db_session: AsyncSession, cache: CacheManager):
    assert await article_service.update_article(db_session, cache, 404, ArticleUpdate()) is None


@pytest.mark.asyncio
async def test_list_articles_by_state(db_session: AsyncSession):
    await article_service.create_article(
        db_session, ArticleCreate(title="Live", content="Body", created_by="alice")
    )
    await article_service.create_article(
        db_session, ArticleCreate(title="Draft", content="Body", created_by="alice", state=0)
    )
    result = await article_service.list_articles(db_session, state=0)
    assert result.total == 1
    assert result.items[0]["title"] == "Draft"


# ---------------------------------------------------------------------------
# user_service / cache degradation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_user_missing(db_session: AsyncSession):
    assert await user_service.get_user(db_session, 1) is None


@pytest.mark.asyncio
async def test_cache_errors_degrade_to_miss(logger: logging.Logger):
    cache = CacheManager(BrokenRedis(), logger)
    assert await cache.get("k") is None
    await cache.set("k", {"a": 1})
    await cache.invalidate_article(1)
    assert cache.stats == {"hits": 0, "misses": 1, "hit_rate": 0.0}


# ---------------------------------------------------------------------------
# get_db: post-commit callbacks
# ---------------------------------------------------------------------------

def _request(engine) -> SimpleNamespace:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(
        data=SimpleNamespace(session_factory=factory),
    )))


@pytest.mark.asyncio
async def test_get_db_runs_invalidation_after_commit(engine):
    calls = []

    async def invalidate(key):
        calls.append((key, session.in_transaction()))

    deps = get_db(_request(engine))
    session = await deps.__anext__()
    session.add(Tag(name="queued", created_by="alice", updated_by="alice"))
    after_commit(session, invalidate, "tags:detail:1")
    assert calls == []

    with pytest.raises(StopAsyncIteration):
        await deps.__anext__()
    assert calls == [("tags:detail:1", False)]


@pytest.mark.asyncio
async def test_get_db_drops_invalidation_on_rollback(engine):
    calls = []

    async def invalidate(key):
        calls.append(key)

    deps = get_db(_request(engine))
    session = await deps.__anext__()
    after_commit(session, invalidate, "tags:detail:1")

    with pytest.raises(RuntimeError):
        await deps.athrow(RuntimeError("handler failed"))
    assert calls == []

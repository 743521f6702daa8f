"""
Article service: business logic for the Article aggregate and its tag links.

Design notes
------------
- Tag associations live in ``article_tag`` rows, one per (article, tag)
  pair.  Detaching a tag sets the row's ``state`` to 0; attaching it again
  flips the same row back to 1, so duplicates never accumulate.
- Requested tag ids are resolved before anything is written: an unknown or
  soft-deleted tag aborts the call with ``TagNotFound`` and the request's
  transaction holds no partial article.
- Deletes are soft.  The article gets ``deleted_at`` and ``state=0`` and all
  of its links are deactivated in the same transaction.
- Reads eager-load the author (``joinedload``) and the links with their
  tags (``selectinload``).  After a write the article is re-selected with
  ``populate_existing`` so the response reflects what was flushed.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
- Cache invalidation is queued with ``after_commit`` and runs only after
  ``get_db`` commits.
"""
import math
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.cache import CacheManager
from app.config import settings
from app.database import after_commit
from app.models import STATE_DISABLED, STATE_ENABLED, Article, ArticleTag, Tag, User
from app.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse


class TagNotFound(LookupError):
    """One or more requested tag ids do not name a live tag."""

    def __init__(self, tag_ids: list[int]) -> None:
        super().__init__(f"Tag not found: {tag_ids}")
        self.tag_ids = tag_ids


class UserNotFound(LookupError):
    """The author id does not name a live user."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _serialize_user(author) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "username": author.username,
        "email": author.email,
        "display_name": author.display_name,
        "bio": author.bio,
        "created_at": _iso(author.created_at),
    }


def _article_to_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "desc": article.desc,
        "content": article.content,
        "cover_image_url": article.cover_image_url,
        "state": article.state,
        "created_by": article.created_by,
        "updated_by": article.updated_by,
        "user_id": article.user_id,
        "author": _serialize_user(article.author),
        "tags": [{"id": t.id, "name": t.name} for t in article.active_tags],
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _detail_query(article_id: int):
    return (
        select(Article)
        .where(Article.id == article_id, Article.deleted_at.is_(None))
        .options(
            joinedload(Article.author),
            selectinload(Article.tag_links).selectinload(ArticleTag.tag),
        )
    )


async def _load_article(
    db: AsyncSession, article_id: int, refresh: bool = False
) -> Article | None:
    q = _detail_query(article_id)
    if refresh:
        q = q.execution_options(populate_existing=True)
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _resolve_tags(db: AsyncSession, tag_ids: list[int]) -> list[Tag]:
    """
    Return live Tag instances for *tag_ids* in request order, without
    duplicates.  Raises ``TagNotFound`` naming every id that did not resolve.
    """
    wanted = list(dict.fromkeys(tag_ids))
    if not wanted:
        return []
    result = await db.execute(
        select(Tag).where(Tag.id.in_(wanted), Tag.deleted_at.is_(None))
    )
    by_id = {t.id: t for t in result.scalars().all()}
    missing = [i for i in wanted if i not in by_id]
    if missing:
        raise TagNotFound(missing)
    return [by_id[i] for i in wanted]


async def _resolve_user(db: AsyncSession, user_id: int) -> None:
    result = await db.execute(
        select(User.id).where(User.id == user_id, User.deleted_at.is_(None))
    )
    if result.scalar_one_or_none() is None:
        raise UserNotFound(user_id)


def _sync_tag_links(article: Article, tags: list[Tag], actor_id: int) -> None:
    """
    Make the article's active links exactly *tags*.

    Existing rows are reused: links to tags not in *tags* are deactivated,
    links to requested tags are (re)activated, and only pairs with no row at
    all get a new ``ArticleTag``.
    """
    wanted = {t.id: t for t in tags}
    existing = {link.tag_id: link for link in article.tag_links}

    for tag_id, link in existing.items():
        state = STATE_ENABLED if tag_id in wanted else STATE_DISABLED
        if link.state != state:
            link.state = state
            link.updated_by = actor_id

    for tag_id, tag in wanted.items():
        if tag_id not in existing:
            article.tag_links.append(
                ArticleTag(
                    tag=tag,
                    state=STATE_ENABLED,
                    created_by=article.created_by,
                    updated_by=actor_id,
                )
            )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    tag_id: int | None = None,
    state: int | None = None,
) -> PaginatedResponse:
    """
    Return a page of live articles, optionally limited to those with an
    active link to *tag_id* and/or a given *state*.
    """
    filters = [Article.deleted_at.is_(None)]
    if state is not None:
        filters.append(Article.state == state)
    if tag_id is not None:
        linked = select(ArticleTag.article_id).where(
            ArticleTag.tag_id == tag_id, ArticleTag.state == STATE_ENABLED
        )
        filters.append(Article.id.in_(linked))

    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(*filters))
    ).scalar_one()

    result = await db.execute(
        select(Article)
        .where(*filters)
        .options(
            joinedload(Article.author),
            selectinload(Article.tag_links).selectinload(ArticleTag.tag),
        )
        .order_by(Article.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = result.unique().scalars().all()

    return PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


async def get_article(db: AsyncSession, cache: CacheManager, article_id: int) -> dict | None:
    """Return the article detail dict, or None when missing or soft-deleted."""
    cache_key = f"articles:detail:{article_id}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    article = await _load_article(db, article_id)
    if article is None:
        return None

    data = _article_to_dict(article)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def create_article(db: AsyncSession, data: ArticleCreate) -> dict:
    """
    Create an article together with its tag links and return its detail.

    Raises ``UserNotFound`` or ``TagNotFound`` before writing anything if
    the author or a tag id is unknown.
    """
    if data.user_id is not None:
        await _resolve_user(db, data.user_id)
    tags = await _resolve_tags(db, data.tag_ids)

    article = Article(
        title=data.title,
        desc=data.desc,
        content=data.content,
        cover_image_url=data.cover_image_url,
        state=data.state,
        created_by=data.created_by,
        user_id=data.user_id,
        tag_links=[],
    )
    _sync_tag_links(article, tags, actor_id=data.user_id or 0)

    db.add(article)
    await db.flush()

    article = await _load_article(db, article.id, refresh=True)
    return _article_to_dict(article)


async def update_article(
    db: AsyncSession, cache: CacheManager, article_id: int, data: ArticleUpdate
) -> dict | None:
    """
    Partially update an article and return its detail, or None if missing.

    Only fields present in the payload are modified.  A present ``tag_ids``
    replaces the active link set.
    """
    article = await _load_article(db, article_id)
    if article is None:
        return None

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    tag_ids: list[int] | None = update_data.pop("tag_ids", None)
    tags = await _resolve_tags(db, tag_ids) if tag_ids is not None else None

    for field, value in update_data.items():
        setattr(article, field, value)

    if tags is not None:
        _sync_tag_links(article, tags, actor_id=article.user_id or 0)

    await db.flush()
    after_commit(db, cache.invalidate_article, article_id)

    article = await _load_article(db, article_id, refresh=True)
    return _article_to_dict(article)


async def delete_article(db: AsyncSession, cache: CacheManager, article_id: int) -> bool:
    """Soft-delete the article and deactivate its links."""
    article = await _load_article(db, article_id)
    if article is None:
        return False

    article.deleted_at = datetime.now(timezone.utc)
    article.state = STATE_DISABLED
    for link in article.tag_links:
        link.state = STATE_DISABLED

    await db.flush()
    after_commit(db, cache.invalidate_article, article_id)
    return True

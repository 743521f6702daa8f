"""
Tag service: CRUD for the Tag aggregate.

Deletes are soft: ``deleted_at`` is stamped, the tag's article links are
deactivated, and every read path filters soft-deleted rows out, so a deleted
tag answers 404.  Detail reads go through the cache; every write drops the
tag's entry plus all article details (they embed tag names) once the
request's transaction has committed.
"""
import math
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheManager
from app.config import settings
from app.database import after_commit
from app.models import STATE_DISABLED, ArticleTag, Tag
from app.schemas import PaginatedResponse, TagCreate, TagUpdate


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _tag_to_dict(tag: Tag) -> dict:
    return {
        "id": tag.id,
        "name": tag.name,
        "status": tag.status,
        "created_by": tag.created_by,
        "updated_by": tag.updated_by,
        "created_at": _iso(tag.created_at),
        "updated_at": _iso(tag.updated_at),
    }


async def _get_live_tag(db: AsyncSession, tag_id: int) -> Tag | None:
    result = await db.execute(
        select(Tag).where(Tag.id == tag_id, Tag.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_tag(db: AsyncSession, cache: CacheManager, tag_id: int) -> dict | None:
    """Return the tag as a dict, or None when missing or soft-deleted."""
    cache_key = f"tags:detail:{tag_id}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    tag = await _get_live_tag(db, tag_id)
    if tag is None:
        return None

    data = _tag_to_dict(tag)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def list_tags(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    name: str | None = None,
    status: int | None = None,
) -> PaginatedResponse:
    filters = [Tag.deleted_at.is_(None)]
    if name:
        filters.append(Tag.name == name)
    if status is not None:
        filters.append(Tag.status == status)

    total: int = (
        await db.execute(select(func.count()).select_from(Tag).where(*filters))
    ).scalar_one()

    result = await db.execute(
        select(Tag)
        .where(*filters)
        .order_by(Tag.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return PaginatedResponse(
        items=[_tag_to_dict(t) for t in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


async def create_tag(db: AsyncSession, data: TagCreate) -> dict:
    """
    Create a tag with the initial (disabled) status.

    Name uniqueness is enforced by the database; the router translates the
    resulting ``IntegrityError`` into a 409.
    """
    tag = Tag(
        name=data.name,
        status=STATE_DISABLED,
        created_by=data.created_by,
        updated_by=data.updated_by,
    )
    db.add(tag)
    await db.flush()
    await db.refresh(tag, ["created_at", "updated_at"])
    return _tag_to_dict(tag)


async def update_tag(
    db: AsyncSession, cache: CacheManager, tag_id: int, data: TagUpdate
) -> dict | None:
    """
    Apply a partial update and return the tag, or None if it does not exist.

    Fields absent from the payload (or sent as null) keep their stored value.
    """
    tag = await _get_live_tag(db, tag_id)
    if tag is None:
        return None

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(tag, field, value)

    await db.flush()
    await db.refresh(tag, ["updated_at"])
    after_commit(db, cache.invalidate_tag, tag_id)
    return _tag_to_dict(tag)


async def delete_tag(db: AsyncSession, cache: CacheManager, tag_id: int) -> bool:
    tag = await _get_live_tag(db, tag_id)
    if tag is None:
        return False

    tag.deleted_at = datetime.now(timezone.utc)
    await db.execute(
        update(ArticleTag)
        .where(ArticleTag.tag_id == tag_id)
        .values(state=STATE_DISABLED)
    )
    await db.flush()
    after_commit(db, cache.invalidate_tag, tag_id)
    return True

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import CacheManager
from app.database import get_cache, get_db
from app.models import Article, Tag, User
from app.schemas import MetricsResponse

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db), cache: CacheManager = Depends(get_cache)):

    total_articles = (await db.execute(
        select(func.count()).select_from(Article).where(Article.deleted_at.is_(None))
    )).scalar_one()

    total_tags = (await db.execute(
        select(func.count()).select_from(Tag).where(Tag.deleted_at.is_(None))
    )).scalar_one()

    total_users = (await db.execute(
        select(func.count()).select_from(User).where(User.deleted_at.is_(None))
    )).scalar_one()

    return MetricsResponse(
        total_articles=total_articles,
        total_tags=total_tags,
        total_users=total_users,
        cache_info=cache.stats,
    )

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import CacheManager
from app.database import get_cache, get_db
from app.dependencies import PaginationParams
from app.schemas import ArticleCreate, ArticleResponse, ArticleUpdate, PaginatedResponse
from app.services import article_service
from app.services.article_service import TagNotFound, UserNotFound

router = APIRouter(prefix="/api/v1/article", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    tag_id: int | None = Query(None, ge=1),
    state: int | None = Query(None, ge=0, le=1),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db, pagination.page, pagination.page_size, tag_id, state
    )

@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    article = await article_service.get_article(db, cache, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(data: ArticleCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await article_service.create_article(db, data)
    except TagNotFound as exc:
        raise HTTPException(status_code=404, detail=f"Tag not found: {exc.tag_ids}")
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail=f"User not found: {exc.user_id}")

@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(
    data: ArticleUpdate,
    article_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    try:
        article = await article_service.update_article(db, cache, article_id, data)
    except TagNotFound as exc:
        raise HTTPException(status_code=404, detail=f"Tag not found: {exc.tag_ids}")
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    deleted = await article_service.delete_article(db, cache, article_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Article not found")

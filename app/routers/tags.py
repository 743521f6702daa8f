from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import CacheManager
from app.database import get_cache, get_db
from app.dependencies import PaginationParams
from app.schemas import PaginatedResponse, TagCreate, TagResponse, TagUpdate
from app.services import tag_service

router = APIRouter(prefix="/api/v1/tag", tags=["tags"])

@router.get("", response_model=PaginatedResponse)
async def list_tags(
    name: str | None = Query(None, max_length=100),
    status: int | None = Query(None, ge=0, le=1),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await tag_service.list_tags(db, pagination.page, pagination.page_size, name, status)

@router.get("/{tag_id}", response_model=TagResponse)
async def get_tag(
    tag_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    tag = await tag_service.get_tag(db, cache, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag

@router.post("", status_code=201, response_model=TagResponse)
async def create_tag(data: TagCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await tag_service.create_tag(db, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A tag with this name already exists")

@router.put("/{tag_id}", response_model=TagResponse)
async def update_tag(
    data: TagUpdate,
    tag_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    try:
        tag = await tag_service.update_tag(db, cache, tag_id, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A tag with this name already exists")
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag

@router.delete("/{tag_id}", status_code=204)
async def delete_tag(
    tag_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    deleted = await tag_service.delete_tag(db, cache, tag_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Tag not found")

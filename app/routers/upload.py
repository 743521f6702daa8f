import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from app.config import settings
from app.database import get_logger
from app.schemas import UploadResponse
from app.services import upload_service
from app.services.upload_service import FILE_TYPE_IMAGE, UploadError

router = APIRouter(prefix="/c", tags=["upload"])

@router.post("/upload/file", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    type: int = Form(FILE_TYPE_IMAGE),
    logger: logging.Logger = Depends(get_logger),
):
    try:
        return await upload_service.upload_file(file, type, settings, logger)
    except UploadError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)

from __future__ import annotations

import base64

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ...config import AppConfig
from ...domain.chat_models import UPLOAD_MEDIA_TYPES, UploadResponse
from ...security.auth import User
from ...security.rbac import Permission, require_permission
from ..deps import get_config

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    user: User = Depends(require_permission(Permission.CHAT_WRITE)),
    config: AppConfig = Depends(get_config),
) -> UploadResponse:
    content_type = (file.content_type or "").lower()
    if content_type not in UPLOAD_MEDIA_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="File type should be JPEG, PNG, or PDF",
        )
    data = await file.read(config.max_upload_bytes + 1)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if len(data) > config.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size should be less than {config.max_upload_bytes // (1024 * 1024)}MB",
        )
    encoded = base64.b64encode(data).decode("ascii")
    return UploadResponse(
        url=f"data:{content_type};base64,{encoded}",
        pathname=file.filename or "upload",
        content_type=content_type,
    )

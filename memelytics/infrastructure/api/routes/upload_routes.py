from __future__ import annotations

import mimetypes

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from memelytics.application.dtos.meme_dto import UploadResponse
from memelytics.application.use_cases.upload_asset import UploadAssetUseCase, max_upload_bytes
from memelytics.infrastructure.api.dependencies import get_current_wallet, get_storage
from memelytics.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/upload",
    tags=["Uploads"],
    responses={401: {"description": "Unauthorized - Invalid or missing wallet session token"}},
)


@router.post(
    "",
    response_model=UploadResponse,
    summary="Upload File",
    description="""
    Upload a raw file (templates, stickers) to public storage under `uploads/`.

    **Maximum file size**: `MAX_UPLOAD_BYTES` (5 MB by default)
    """,
    responses={400: {"description": "Bad Request - Empty file or size limit exceeded"}},
)
async def upload_file(
    file: UploadFile = File(..., description="File to upload"),
    wallet=Depends(get_current_wallet),
    storage: SupabaseStorage = Depends(get_storage),
):
    limit = max_upload_bytes()
    # read one byte past the limit so oversized files are rejected without buffering them whole
    data = await file.read(limit + 1)
    try:
        stored, url = UploadAssetUseCase(storage=storage, limit=limit).execute(
            data, file.filename or "upload.bin", file.content_type
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return UploadResponse(url=url, path=stored.path, size=stored.size)


local_storage_router = APIRouter(prefix="/local-storage", tags=["Uploads"], include_in_schema=False)


@local_storage_router.get("/{path:path}", response_class=Response)
async def serve_local_object(path: str, storage: SupabaseStorage = Depends(get_storage)):
    """Public URLs of the local storage fallback resolve here."""
    if not storage.is_local:
        raise HTTPException(status_code=404, detail="Not found")
    try:
        data = storage.download_bytes(path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Not found") from exc
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)

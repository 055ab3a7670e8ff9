from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from memelytics.application.dtos.common_dto import MessageResponse
from memelytics.application.dtos.meme_dto import (
    MemeEventRequest,
    MemeResponse,
    SaveMemeRequest,
    SaveMemeResponse,
)
from memelytics.application.use_cases.record_meme_event import RecordMemeEventUseCase
from memelytics.application.use_cases.save_meme import SaveMemeUseCase, decode_data_url
from memelytics.infrastructure.api.dependencies import (
    get_current_wallet,
    get_meme_repo,
    get_storage,
    get_user_repo,
)
from memelytics.infrastructure.database.repositories.meme_repository import MemeRepository
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.database.supabase_client import normalize_wallet
from memelytics.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/memes",
    tags=["Memes"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing wallet session token"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


@router.post(
    "/save",
    response_model=SaveMemeResponse,
    summary="Save Meme",
    description="""
    Store an exported meme for the signed-in wallet.

    The body carries the raster as a base64 `data:` URL together with the meme
    type and optional tags. The raster is uploaded under `memes/` and linked to
    the user's meme list.
    """,
    responses={
        400: {"description": "Bad Request - Malformed data URL or missing type"},
        404: {"description": "Not Found - The wallet has no user record yet"},
    },
)
async def save_meme(
    payload: SaveMemeRequest,
    wallet=Depends(get_current_wallet),
    storage: SupabaseStorage = Depends(get_storage),
    memes: MemeRepository = Depends(get_meme_repo),
    users: UserRepository = Depends(get_user_repo),
):
    try:
        raster, fmt = decode_data_url(payload.data_url)
        meme = SaveMemeUseCase(storage=storage, memes=memes, users=users).execute(
            wallet_address=wallet.wallet_address,
            raster=raster,
            category=payload.type,
            tags=payload.tags,
            fmt=fmt,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SaveMemeResponse(meme_id=meme.id, image_url=meme.image_url)


@router.post(
    "/{meme_id}/events",
    response_model=MessageResponse,
    summary="Record Download Or Share",
    description="Increment the `downloads` or `shares` counter of a meme.",
    responses={
        400: {"description": "Bad Request - Action is neither download nor share"},
        404: {"description": "Not Found - Meme does not exist"},
    },
)
async def record_event(
    meme_id: str,
    payload: MemeEventRequest,
    wallet=Depends(get_current_wallet),
    memes: MemeRepository = Depends(get_meme_repo),
):
    try:
        RecordMemeEventUseCase(memes=memes).execute(meme_id, payload.action)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MessageResponse(message="Updated")


@router.get(
    "/user/{wallet_address}",
    response_model=list[MemeResponse],
    summary="List User Memes",
    description="All memes saved by a wallet, newest first.",
    responses={404: {"description": "Not Found - No user for this wallet"}},
)
async def list_user_memes(
    wallet_address: str,
    wallet=Depends(get_current_wallet),
    memes: MemeRepository = Depends(get_meme_repo),
    users: UserRepository = Depends(get_user_repo),
):
    try:
        address = normalize_wallet(wallet_address)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    user = users.get_by_wallet(address)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return [MemeResponse.from_entity(m) for m in memes.list_by_user(user.id)]

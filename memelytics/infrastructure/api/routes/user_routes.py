from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from memelytics.application.dtos.meme_dto import EnsureUserResponse, UserResponse
from memelytics.infrastructure.api.dependencies import get_current_wallet, get_user_repo
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.database.supabase_client import normalize_wallet

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing wallet session token"},
    },
)


@router.post(
    "",
    response_model=EnsureUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ensure User",
    description="""
    Create the user record for the signed-in wallet if it does not exist yet.

    Returns **201** when a user was created and **200** when it already existed.
    The wallet address is always stored lowercased.
    """,
)
async def ensure_user(
    response: Response,
    wallet=Depends(get_current_wallet),
    users: UserRepository = Depends(get_user_repo),
):
    user, created = users.ensure(wallet.wallet_address)
    if not created:
        response.status_code = status.HTTP_200_OK
    return EnsureUserResponse(
        message="User created" if created else "User already exists",
        user=UserResponse.from_entity(user),
    )


@router.get(
    "/{wallet_address}",
    response_model=UserResponse,
    summary="Get User",
    description="Look up a user by wallet address (case-insensitive).",
    responses={
        400: {"description": "Bad Request - Not a wallet address"},
        404: {"description": "Not Found - No user for this wallet"},
    },
)
async def get_user(
    wallet_address: str,
    users: UserRepository = Depends(get_user_repo),
):
    try:
        address = normalize_wallet(wallet_address)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    user = users.get_by_wallet(address)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse.from_entity(user)

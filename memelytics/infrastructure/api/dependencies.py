from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from memelytics.infrastructure.database.repositories.meme_repository import MemeRepository
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.database.supabase_client import (
    SupabaseAuthAdapter,
    WalletIdentity,
    get_supabase_client,
)
from memelytics.infrastructure.sessions.session_registry import SessionRegistry, get_session_registry
from memelytics.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_current_wallet(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)] = None,
) -> WalletIdentity:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_meme_repo() -> MemeRepository:
    return MemeRepository(get_supabase_client())


def get_user_repo() -> UserRepository:
    return UserRepository(get_supabase_client())


def get_sessions() -> SessionRegistry:
    return get_session_registry()

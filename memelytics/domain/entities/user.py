from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UserEntity:
    id: str
    wallet_address: str  # always lowercased
    created_at: datetime | None = None
    meme_ids: tuple[str, ...] = ()

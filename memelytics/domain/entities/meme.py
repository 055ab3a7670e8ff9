from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MemeEntity:
    id: str
    user_id: str
    image_url: str
    storage_path: str
    category: str  # "meme", "sticker", ... as chosen by the client
    tags: tuple[str, ...]
    created_at: datetime
    downloads: int = 0
    shares: int = 0

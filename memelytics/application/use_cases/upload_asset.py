from __future__ import annotations

import os
from dataclasses import dataclass

from memelytics.infrastructure.storage.supabase_storage import StoredObject, SupabaseStorage

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def max_upload_bytes() -> int:
    return int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))


@dataclass
class UploadAssetUseCase:
    storage: SupabaseStorage
    limit: int = DEFAULT_MAX_UPLOAD_BYTES

    def execute(self, data: bytes, filename: str, content_type: str | None) -> tuple[StoredObject, str]:
        """Store a raw user file under ``uploads/`` and return it with its public URL."""
        if not data:
            raise ValueError("No file provided")
        if len(data) > self.limit:
            raise ValueError(f"File size exceeds {self.limit // (1024 * 1024)}MB")
        stored = self.storage.upload_asset(data, filename, content_type or "application/octet-stream")
        return stored, self.storage.get_public_url(stored.path)

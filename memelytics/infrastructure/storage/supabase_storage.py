from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from supabase import Client

MEMES_PREFIX = "memes"
UPLOADS_PREFIX = "uploads"


@dataclass
class StoredObject:
    path: str
    content_type: str
    size: int


def _safe_name(name: str) -> str:
    # keep the client's file name readable but never let it escape the prefix
    base = Path(name or "file").name
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in base) or "file"


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local fake fallback."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "memes")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        self.public_base = os.getenv("SUPABASE_PUBLIC_URL_BASE")
        if self.disabled:
            self.local_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_local(self) -> bool:
        return self.disabled or self.client is None

    def upload_meme(self, data: bytes, ext: str = "png", content_type: str = "image/png") -> StoredObject:
        ext = ext.lower().lstrip(".")
        return self.upload_bytes(f"{MEMES_PREFIX}/{uuid.uuid4()}.{ext}", data, content_type)

    def upload_asset(self, data: bytes, filename: str, content_type: str) -> StoredObject:
        return self.upload_bytes(f"{UPLOADS_PREFIX}/{uuid.uuid4()}-{_safe_name(filename)}", data, content_type)

    def upload_bytes(self, storage_path: str, data: bytes, content_type: str) -> StoredObject:
        if self.is_local:
            full_path = self.local_dir / storage_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
            return StoredObject(path=storage_path, content_type=content_type, size=len(data))
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).upload(
                path=storage_path,
                file=data,
                file_options={"content-type": content_type},
            )
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage upload failed: {exc}") from exc
        return StoredObject(path=storage_path, content_type=content_type, size=len(data))  # pragma: no cover

    def download_bytes(self, path: str) -> bytes:
        """Raises ``FileNotFoundError`` for missing objects in local mode."""
        if self.is_local:
            root = self.local_dir.resolve()
            full_path = (root / path).resolve()
            if root not in full_path.parents or not full_path.is_file():
                raise FileNotFoundError(path)
            return full_path.read_bytes()
        try:  # pragma: no cover - network
            return self.client.storage.from_(self.bucket).download(path)
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage download failed: {exc}") from exc

    def get_public_url(self, path: str) -> str:
        if self.public_base:
            return f"{self.public_base.rstrip('/')}/{path}"
        if self.is_local:
            return f"/local-storage/{path}"
        try:  # pragma: no cover - network
            return self.client.storage.from_(self.bucket).get_public_url(path)
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage public URL failed: {exc}") from exc

    def delete(self, path: str) -> None:
        if self.is_local:
            full_path = self.local_dir / path
            if full_path.exists():
                full_path.unlink()
            return
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage delete failed: {exc}") from exc

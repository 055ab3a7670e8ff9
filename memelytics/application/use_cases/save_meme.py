from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from memelytics.domain.entities.meme import MemeEntity
from memelytics.domain.services.compositor import RasterFormat
from memelytics.infrastructure.database.repositories.meme_repository import MemeRepository
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


def decode_data_url(data_url: str) -> tuple[bytes, RasterFormat]:
    """Split a ``data:image/...;base64,`` URL into raw bytes and its format."""
    header, sep, encoded = (data_url or "").partition(",")
    if not sep or not header.startswith("data:image/") or ";base64" not in header:
        raise ValueError("Expected a base64 image data URL")
    mime = header[len("data:"):].split(";", 1)[0]
    fmt = RasterFormat.parse(mime.split("/", 1)[1])
    try:
        payload = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Malformed base64 payload: {exc}") from exc
    if not payload:
        raise ValueError("Empty image payload")
    return payload, fmt


def _clean_tags(tags: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    seen: list[str] = []
    for tag in tags or ():
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


@dataclass
class SaveMemeUseCase:
    storage: SupabaseStorage
    memes: MemeRepository
    users: UserRepository

    def execute(
        self,
        wallet_address: str,
        raster: bytes,
        category: str,
        tags: list[str] | tuple[str, ...] | None = None,
        fmt: RasterFormat = RasterFormat.PNG,
    ) -> MemeEntity:
        """
        Persist an exported meme for a known user.

        Uploads the raster under ``memes/``, records it, and links the record
        to the user's meme list.

        Raises:
            LookupError: If no user exists for the wallet
            ValueError: If the category is blank or the raster is empty
        """
        if not category or not category.strip():
            raise ValueError("Missing meme type")
        if not raster:
            raise ValueError("Empty image payload")
        user = self.users.get_by_wallet(wallet_address)
        if user is None:
            raise LookupError("User not found")

        stored = self.storage.upload_meme(raster, ext=fmt.value, content_type=fmt.mime_type)
        try:
            meme = self.memes.create(
                user_id=user.id,
                image_url=self.storage.get_public_url(stored.path),
                storage_path=stored.path,
                category=category.strip(),
                tags=_clean_tags(tags),
            )
        except RuntimeError:
            # no record points at the object, drop it
            logger.warning("Meme record failed, removing %s", stored.path)
            self.storage.delete(stored.path)
            raise
        self.users.add_meme(user, meme.id)
        logger.info("Saved meme %s for %s (%d bytes)", meme.id, user.wallet_address, stored.size)
        return meme

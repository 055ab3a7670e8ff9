from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Union

import aiohttp
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

# bytes, a path, a URL / data URL / file path string, or a binary file-like object
ImageSource = Union[bytes, bytearray, Path, str, Any]


@dataclass(frozen=True)
class DecodeOutcome:
    image: Image.Image | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.image is not None


def _describe(source: ImageSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return str(source)[:70]


def _decode_bytes(data: bytes) -> Image.Image:
    with Image.open(BytesIO(data)) as img:
        # animated sources (GIF) keep their first frame
        img.seek(0)
        return img.convert("RGBA")


class ImageDecoder:
    """Awaitable image loading. Never raises: failures come back as ``DecodeOutcome``."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT) -> None:
        self.timeout = timeout

    async def decode(self, source: ImageSource) -> DecodeOutcome:
        try:
            data = await self._read_source(source)
            image = await asyncio.to_thread(_decode_bytes, data)
        except (
            aiohttp.ClientError,
            asyncio.TimeoutError,
            OSError,
            ValueError,
            binascii.Error,
            UnidentifiedImageError,
            Image.DecompressionBombError,
        ) as exc:
            logger.warning("Failed to decode image from %r: %s", _describe(source), type(exc).__name__)
            return DecodeOutcome(image=None, error=f"{type(exc).__name__}: {exc}")
        return DecodeOutcome(image=image)

    async def decode_many(self, sources: list[ImageSource]) -> list[DecodeOutcome]:
        return list(await asyncio.gather(*(self.decode(src) for src in sources)))

    async def _read_source(self, source: ImageSource) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source)
        if isinstance(source, Path):
            return await asyncio.to_thread(source.read_bytes)
        if isinstance(source, str):
            if source.startswith(("http://", "https://")):
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.get(source) as response:
                        response.raise_for_status()
                        return await response.read()
            if source.startswith("data:"):
                _, encoded = source.split(",", 1)
                return base64.b64decode(encoded)
            if os.path.isfile(source):
                return await asyncio.to_thread(Path(source).read_bytes)
            raise ValueError("Unrecognised image source")
        if hasattr(source, "read"):
            data = await asyncio.to_thread(source.read)
            return bytes(data)
        raise ValueError(f"Unsupported image source type: {type(source).__name__}")

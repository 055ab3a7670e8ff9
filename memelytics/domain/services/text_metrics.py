from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

from memelytics.domain.entities.editor_state import TextItem
from memelytics.domain.services.geometry import Size

_FONT_SUFFIXES = (".ttf", ".otf")


def _family_candidates(family: str) -> list[str]:
    base = family.strip()
    names = [base, base.replace(" ", ""), base.replace(" ", "-"), base.lower().replace(" ", "-")]
    out: list[str] = []
    for name in names:
        for suffix in _FONT_SUFFIXES:
            candidate = f"{name}{suffix}"
            if candidate not in out:
                out.append(candidate)
    return out


@lru_cache(maxsize=256)
def _load_font(family: str, size: int, font_dir: str | None):
    for candidate in _family_candidates(family):
        if font_dir:
            path = Path(font_dir) / candidate
            if path.is_file():
                return ImageFont.truetype(str(path), size)
        try:
            # Pillow also searches the platform font directories by file name
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


class TextMeasurer:
    """Resolves font families to Pillow fonts and measures text boxes.

    The box height is the font size, not the real ascent + descent. Every
    caller (hit-testing, gestures, rendering, export bounds) goes through
    ``measure`` so the simplification is applied consistently.
    """

    def __init__(self, font_dir: str | None = None) -> None:
        self.font_dir = font_dir if font_dir is not None else os.getenv("MEMELYTICS_FONT_DIR")

    def font(self, family: str, size: int):
        return _load_font(family, int(size), self.font_dir)

    def measure(self, item: TextItem) -> Size:
        font = self.font(item.font, item.size)
        # empty text still gets a one-space box so it stays clickable
        width = font.getlength(item.text or " ")
        return Size(w=float(width), h=float(item.size))

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

# Text size bounds (font pixels)
MIN_TEXT_SIZE = 8
MAX_TEXT_SIZE = 256
# Overlay images never shrink below this box edge
MIN_IMAGE_EDGE = 16.0
# Brush diameter bounds
MIN_BRUSH_SIZE = 1
MAX_BRUSH_SIZE = 128
# Padding sides are individually capped
MAX_PADDING = 2000

DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_TEXT_COLOR = "#000000"
DEFAULT_TEXT_FONT = "Fredoka One"
DEFAULT_TEXT_SIZE = 20


class LayerKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    STROKE = "stroke"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Padding:
    top: int = 0
    right: int = 0
    bottom: int = 0
    left: int = 0


@dataclass(frozen=True)
class TextItem:
    id: str
    text: str = ""
    x: float = 0.0
    y: float = 0.0  # baseline-bottom of the text box
    size: int = DEFAULT_TEXT_SIZE
    color: str = DEFAULT_TEXT_COLOR
    font: str = DEFAULT_TEXT_FONT
    rotation_deg: float = 0.0


@dataclass(frozen=True)
class Stroke:
    id: str
    points: tuple[Point, ...]
    color: str
    size: int


@dataclass(frozen=True)
class ImageItem:
    """Overlay image layer. The decoded raster is keyed by ``id`` outside the state."""

    id: str
    x: float
    y: float
    w: float
    h: float


@dataclass(frozen=True)
class EditorState:
    """Immutable snapshot of the editable document.

    ``images`` order is z-order (index 0 is the back). ``texts`` draw in order
    above every image, and ``strokes`` always draw last.
    """

    rotation_deg: float = 0.0
    background_color: str = DEFAULT_BACKGROUND
    padding: Padding = field(default_factory=Padding)
    texts: tuple[TextItem, ...] = ()
    strokes: tuple[Stroke, ...] = ()
    images: tuple[ImageItem, ...] = ()

    # --------- lookups ---------
    def find_text(self, text_id: str) -> TextItem | None:
        return next((t for t in self.texts if t.id == text_id), None)

    def find_image(self, image_id: str) -> ImageItem | None:
        return next((i for i in self.images if i.id == image_id), None)

    def find_stroke(self, stroke_id: str) -> Stroke | None:
        return next((s for s in self.strokes if s.id == stroke_id), None)

    def kind_of(self, layer_id: str) -> LayerKind | None:
        if self.find_text(layer_id) is not None:
            return LayerKind.TEXT
        if self.find_image(layer_id) is not None:
            return LayerKind.IMAGE
        if self.find_stroke(layer_id) is not None:
            return LayerKind.STROKE
        return None

    def layer_ids(self) -> set[str]:
        ids = {t.id for t in self.texts}
        ids.update(i.id for i in self.images)
        ids.update(s.id for s in self.strokes)
        return ids

    # --------- copy-on-write updates ---------
    def map_text(self, text_id: str, fn: Callable[[TextItem], TextItem]) -> EditorState:
        return replace(self, texts=tuple(fn(t) if t.id == text_id else t for t in self.texts))

    def map_image(self, image_id: str, fn: Callable[[ImageItem], ImageItem]) -> EditorState:
        return replace(
            self, images=tuple(fn(i) if i.id == image_id else i for i in self.images)
        )

    def map_stroke(self, stroke_id: str, fn: Callable[[Stroke], Stroke]) -> EditorState:
        return replace(
            self, strokes=tuple(fn(s) if s.id == stroke_id else s for s in self.strokes)
        )

    def without_layer(self, layer_id: str) -> EditorState:
        return replace(
            self,
            texts=tuple(t for t in self.texts if t.id != layer_id),
            images=tuple(i for i in self.images if i.id != layer_id),
            strokes=tuple(s for s in self.strokes if s.id != layer_id),
        )

"""Public editing API of the canvas engine.

``MemeEditor`` owns the committed history, the live working state shown while
a gesture runs, the selection, the decoded raster cache and the base template.
Toolbars, keyboard handlers and HTTP routes only ever go through it.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable

from PIL import Image

from memelytics.domain.entities.content_frame import ContentFrame, FramePolicy, resolve_frame
from memelytics.domain.entities.editor_state import (
    EditorState,
    ImageItem,
    LayerKind,
    Padding,
    Point,
    TextItem,
)
from memelytics.domain.entities.selection import NO_SELECTION, Selection
from memelytics.domain.services.compositor import (
    Compositor,
    RasterFormat,
    Scene,
    encode_raster,
    to_data_url,
)
from memelytics.domain.services.geometry import (
    CanvasRect,
    Size,
    is_finite,
    normalize_deg,
    rotated_bounds,
    to_content_space,
)
from memelytics.domain.services.hit_testing import DEFAULT_HANDLES, HandleGeometry, Hit, hit_test
from memelytics.domain.services.history_manager import HistoryManager
from memelytics.domain.services.image_decoder import ImageDecoder, ImageSource
from memelytics.domain.services.layer_ops import (
    clamp_brush_size,
    clamp_image_position,
    clamp_padding,
    clamp_text_box,
    clamp_text_size,
    is_valid_color,
    natural_fit_from_anchor,
    place_new_image,
    sanitize_text_changes,
    scale_image_item,
    swap_backward,
    swap_forward,
)
from memelytics.domain.services.text_metrics import TextMeasurer

logger = logging.getLogger(__name__)

ADD_SPACE_STEP = 100
WHEEL_STEP = 0.05
DEFAULT_BRUSH_COLOR = "#111111"
DEFAULT_BRUSH_SIZE = 6
TEXT_FIELDS = frozenset({"text", "x", "y", "size", "color", "font", "rotation_deg"})


class EditorTool(str, Enum):
    NONE = "none"
    TEXT = "text"
    DRAW = "draw"
    IMAGE = "image"
    ROTATE = "rotate"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class SavePayload:
    """What the persistence collaborator receives on save."""

    raster: bytes
    category: str
    labels: tuple[str, ...] = ()
    format: RasterFormat = RasterFormat.PNG


Publisher = Callable[[SavePayload], str]


class MemeEditor:
    def __init__(
        self,
        policy: FramePolicy = FramePolicy.FIXED,
        *,
        measurer: TextMeasurer | None = None,
        decoder: ImageDecoder | None = None,
        publisher: Publisher | None = None,
        on_template_load: Callable[[MemeEditor], None] | None = None,
        max_history: int | None = None,
        handles: HandleGeometry = DEFAULT_HANDLES,
    ) -> None:
        self.policy = FramePolicy(policy)
        self.measurer = measurer or TextMeasurer()
        self.decoder = decoder or ImageDecoder()
        self.compositor = Compositor(self.measurer, handles)
        self.handles = handles
        self.publisher = publisher
        self.on_template_load = on_template_load
        self.history = HistoryManager(EditorState(), max_history=max_history)
        self._live = self.history.current
        self._selection = NO_SELECTION
        self._tool = EditorTool.NONE
        self._brush_color = DEFAULT_BRUSH_COLOR
        self._brush_size = DEFAULT_BRUSH_SIZE
        self._base: Image.Image | None = None
        self._rasters: dict[str, Image.Image] = {}
        # bumped on every template request; stale decodes compare against it
        self._generation = 0

    # --------- read-only views ---------
    @property
    def state(self) -> EditorState:
        """The live state (equals the committed one outside of gestures)."""
        return self._live

    @property
    def committed(self) -> EditorState:
        return self.history.current

    @property
    def frame(self) -> ContentFrame:
        natural = self._base.size if self._base is not None else None
        return resolve_frame(self.policy, natural, self._live.padding)

    @property
    def has_template(self) -> bool:
        return self._base is not None

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def tool(self) -> EditorTool:
        return self._tool

    @property
    def brush(self) -> tuple[str, int]:
        return self._brush_color, self._brush_size

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def raster_for(self, image_id: str) -> Image.Image | None:
        return self._rasters.get(image_id)

    def display_size(self) -> Size:
        """Pixel size of the preview buffer (the rotated bounding box when padded)."""
        frame = self.frame
        rotation = self._live.rotation_deg % 360.0
        if self._base is None or not frame.allows_free_rotation or rotation == 0:
            return Size(frame.width, frame.height)
        w, h = rotated_bounds(frame.width, frame.height, rotation)
        return Size(w, h)

    # --------- live state and commits ---------
    def show_live(self, state: EditorState) -> None:
        """Display an uncommitted working state (gesture frames)."""
        self._live = state

    def discard_live(self) -> None:
        self._live = self.history.current

    def commit(self, state: EditorState | None = None) -> bool:
        """Commit ``state`` (default: the live state). Returns False when nothing changed."""
        state = self._live if state is None else state
        self._live = state
        if state == self.history.current:
            return False
        self.history.commit(state)
        return True

    def _new_id(self) -> str:
        taken = self._live.layer_ids() | self.committed.layer_ids() | set(self._rasters)
        while True:
            candidate = uuid.uuid4().hex[:8]
            if candidate not in taken:
                return candidate

    # --------- templates ---------
    async def load_template(self, source: ImageSource) -> bool:
        """Decode ``source`` and install it as the base template.

        Layers and history are only reset once the decode succeeds. A decode
        that completes after a newer template request is dropped.
        """
        self._generation += 1
        generation = self._generation
        outcome = await self.decoder.decode(source)
        if generation != self._generation:
            logger.warning(
                "Discarding stale template decode (generation %d, current %d)", generation, self._generation
            )
            return False
        if not outcome.ok:
            return False
        self.install_template(outcome.image)
        return True

    def install_template(self, image: Image.Image) -> None:
        self._base = image.convert("RGBA")
        self._rasters.clear()
        initial = EditorState()
        self.history.reset(initial)
        self._live = initial
        self._selection = NO_SELECTION
        logger.info("Template installed (%dx%d, policy=%s)", image.width, image.height, self.policy.value)
        if self.on_template_load is not None:
            self.on_template_load(self)

    def close(self) -> None:
        """End the session: in-flight decodes become stale and caches are dropped."""
        self._generation += 1
        self._base = None
        self._rasters.clear()
        self.history.reset(EditorState())
        self._live = self.history.current
        self._selection = NO_SELECTION

    # --------- tools ---------
    def set_tool(self, tool: EditorTool | str) -> EditorTool:
        try:
            self._tool = EditorTool(tool)
        except ValueError as exc:
            raise ValueError(f"Unknown tool: {tool}") from exc
        return self._tool

    def set_brush(self, color: str | None = None, size: float | None = None) -> tuple[str, int]:
        if color is not None and is_valid_color(color):
            self._brush_color = color
        if size is not None and is_finite(size):
            self._brush_size = clamp_brush_size(size)
        return self.brush

    # --------- layers ---------
    def add_text(self) -> str:
        frame = self.frame
        text_id = self._new_id()
        item = TextItem(id=text_id, x=frame.width / 2, y=frame.height / 2)
        self.commit(replace(self._live, texts=self._live.texts + (item,)))
        self._selection = Selection(LayerKind.TEXT, text_id, editing=True)
        return text_id

    def update_text(self, text_id: str, **changes) -> bool:
        current = self._live.find_text(text_id)
        if current is None:
            return False
        unknown = set(changes) - TEXT_FIELDS
        if unknown:
            logger.debug("Ignoring unknown text fields: %s", sorted(unknown))
        updated = sanitize_text_changes(current, changes, self.frame)
        if not self._selection.is_text(text_id):
            self._selection = Selection(LayerKind.TEXT, text_id)
        if updated == current:
            return False
        return self.commit(self._live.map_text(text_id, lambda _: updated))

    async def add_image_sources(self, sources: Iterable[ImageSource]) -> list[str]:
        generation = self._generation
        outcomes = await self.decoder.decode_many(list(sources))
        if generation != self._generation:
            logger.warning("Discarding %d overlay decodes from a superseded template", len(outcomes))
            return []
        return self.add_images([o.image for o in outcomes if o.ok])

    def add_images(self, rasters: Iterable[Image.Image]) -> list[str]:
        """Append already decoded rasters as front-most overlays in one commit."""
        frame = self.frame
        items: list[ImageItem] = []
        for raster in rasters:
            image_id = self._new_id()
            self._rasters[image_id] = raster.convert("RGBA")
            items.append(place_new_image(image_id, raster.size, frame))
        if not items:
            return []
        self.commit(replace(self._live, images=self._live.images + tuple(items)))
        self._selection = Selection(LayerKind.IMAGE, items[-1].id)
        return [item.id for item in items]

    def remove_layer(self, layer_id: str) -> bool:
        if self._live.kind_of(layer_id) is None:
            return False
        # rasters stay cached so undo can bring the image back
        self.commit(self._live.without_layer(layer_id))
        if self._selection.layer_id == layer_id:
            self._selection = NO_SELECTION
        return True

    def clear_strokes(self) -> bool:
        return self.commit(replace(self._live, strokes=()))

    def scale_image(self, image_id: str, factor: float) -> bool:
        item = self._live.find_image(image_id)
        if item is None:
            return False
        scaled = scale_image_item(item, factor, self.frame)
        return self.commit(self._live.map_image(image_id, lambda _: scaled))

    def reset_size(self, image_id: str) -> bool:
        item = self._live.find_image(image_id)
        if item is None:
            return False
        raster = self._rasters.get(image_id)
        natural = raster.size if raster is not None else (round(item.w), round(item.h))
        restored = natural_fit_from_anchor(item, natural, self.frame)
        return self.commit(self._live.map_image(image_id, lambda _: restored))

    def bring_forward(self, layer_id: str) -> bool:
        return self._reorder(layer_id, swap_forward)

    def send_backward(self, layer_id: str) -> bool:
        return self._reorder(layer_id, swap_backward)

    def _reorder(self, layer_id: str, swap: Callable[[tuple, str], tuple]) -> bool:
        kind = self._live.kind_of(layer_id)
        if kind is LayerKind.IMAGE:
            return self.commit(replace(self._live, images=swap(self._live.images, layer_id)))
        if kind is LayerKind.TEXT:
            return self.commit(replace(self._live, texts=swap(self._live.texts, layer_id)))
        return False

    # --------- canvas ---------
    def rotate_canvas_by(self, delta_deg: float) -> float:
        if not is_finite(delta_deg):
            return self._live.rotation_deg
        rotation = normalize_deg(self._live.rotation_deg + delta_deg)
        self.commit(replace(self._live, rotation_deg=rotation))
        return rotation

    def add_space(self) -> bool:
        """Grow the bottom padding. Only meaningful under the padded policy."""
        if self.policy is not FramePolicy.PADDED:
            return False
        padding = self._live.padding
        grown = clamp_padding(replace(padding, bottom=padding.bottom + ADD_SPACE_STEP))
        return self.commit(replace(self._live, padding=grown))

    def set_padding(
        self,
        top: float | None = None,
        right: float | None = None,
        bottom: float | None = None,
        left: float | None = None,
    ) -> Padding:
        current = self._live.padding

        def side(value: float | None, fallback: float) -> float:
            return fallback if value is None or not is_finite(value) else value

        padding = clamp_padding(
            Padding(
                top=side(top, current.top),
                right=side(right, current.right),
                bottom=side(bottom, current.bottom),
                left=side(left, current.left),
            )
        )

        self.commit(replace(self._live, padding=padding))
        return padding

    def set_background_color(self, color: str) -> bool:
        if not is_valid_color(color):
            logger.debug("Ignoring invalid background color %r", color)
            return False
        return self.commit(replace(self._live, background_color=color))

    # --------- history ---------
    def undo(self) -> EditorState:
        self._live = self.history.undo()
        return self._live

    def redo(self) -> EditorState:
        self._live = self.history.redo()
        return self._live

    # --------- selection ---------
    def select(self, layer_id: str | None) -> Selection:
        kind = self._live.kind_of(layer_id) if layer_id else None
        if kind in (LayerKind.TEXT, LayerKind.IMAGE):
            self._selection = Selection(kind, layer_id)
        else:
            self._selection = NO_SELECTION
        return self._selection

    def clear_selection(self) -> None:
        self._selection = NO_SELECTION

    def begin_text_edit(self, text_id: str) -> bool:
        if self._live.find_text(text_id) is None:
            return False
        self._selection = Selection(LayerKind.TEXT, text_id, editing=True)
        return True

    def end_text_edit(self) -> None:
        if self._selection.editing:
            self._selection = replace(self._selection, editing=False)

    def get_selected_text(self) -> TextItem | None:
        if not self._selection.is_text():
            return None
        return self._live.find_text(self._selection.layer_id)

    def get_selected_image(self) -> ImageItem | None:
        if not self._selection.is_image():
            return None
        return self._live.find_image(self._selection.layer_id)

    def nudge_selected(self, dx: float, dy: float) -> bool:
        if not is_finite(dx, dy):
            return False
        frame = self.frame
        image = self.get_selected_image()
        if image is not None:
            x, y = clamp_image_position(image.x + dx, image.y + dy, image.w, image.h, frame)
            return self.commit(self._live.map_image(image.id, lambda it: replace(it, x=x, y=y)))
        text = self.get_selected_text()
        if text is not None:
            x, y = clamp_text_box(text.x + dx, text.y + dy, self.measurer.measure(text), frame)
            return self.commit(self._live.map_text(text.id, lambda t: replace(t, x=x, y=y)))
        return False

    def remove_selected(self) -> bool:
        if self._selection.empty:
            return False
        if self._selection.is_text() and self._selection.editing:
            return False
        return self.remove_layer(self._selection.layer_id)

    def wheel_resize_selected(self, delta_y: float) -> bool:
        """One wheel tick: scroll down shrinks by 5 %, up grows by 5 %."""
        if not is_finite(delta_y):
            return False
        factor = 1.0 - WHEEL_STEP if delta_y > 0 else 1.0 + WHEEL_STEP
        image = self.get_selected_image()
        if image is not None:
            return self.scale_image(image.id, factor)
        text = self.get_selected_text()
        if text is not None:
            size = clamp_text_size(text.size * factor)
            return self.commit(self._live.map_text(text.id, lambda t: replace(t, size=size)))
        return False

    # --------- pointer helpers ---------
    def pointer_to_content(self, client_x: float, client_y: float, rect: CanvasRect) -> Point:
        frame = self.frame
        x, y = to_content_space(
            client_x,
            client_y,
            rect,
            Size(frame.width, frame.height),
            self._live.rotation_deg,
            display=self.display_size(),
        )
        return Point(x, y)

    def hit_test(self, point: Point, kinds: tuple[LayerKind, ...] = (LayerKind.TEXT, LayerKind.IMAGE)) -> Hit | None:
        return hit_test(point, self._live, self.measurer, kinds, self.handles)

    def new_stroke_id(self) -> str:
        return self._new_id()

    # --------- rendering / export ---------
    def scene(self) -> Scene:
        return Scene(state=self._live, frame=self.frame, base=self._base, rasters=dict(self._rasters))

    def render_preview(self, guides: bool = True) -> Image.Image:
        return self.compositor.render_preview(self.scene(), self._selection, guides=guides)

    def export_image(self) -> Image.Image | None:
        return self.compositor.render_export(self.scene())

    def export_raster(self, fmt: RasterFormat | str = RasterFormat.PNG) -> bytes | None:
        """Encoded export, or ``None`` when no template is loaded."""
        fmt = RasterFormat.parse(fmt)
        image = self.export_image()
        if image is None:
            return None
        return encode_raster(image, fmt)

    async def export_raster_async(self, fmt: RasterFormat | str = RasterFormat.PNG) -> bytes | None:
        fmt = RasterFormat.parse(fmt)
        scene = self.scene()

        def _work() -> bytes | None:
            image = self.compositor.render_export(scene)
            return None if image is None else encode_raster(image, fmt)

        return await asyncio.to_thread(_work)

    def export_data_url(self, fmt: RasterFormat | str = RasterFormat.PNG) -> str | None:
        fmt = RasterFormat.parse(fmt)
        payload = self.export_raster(fmt)
        return None if payload is None else to_data_url(payload, fmt)

    # --------- save boundary ---------
    def build_save_payload(
        self, category: str, labels: Iterable[str] = (), fmt: RasterFormat | str = RasterFormat.PNG
    ) -> SavePayload | None:
        fmt = RasterFormat.parse(fmt)
        raster = self.export_raster(fmt)
        if raster is None:
            return None
        return SavePayload(raster=raster, category=category, labels=tuple(labels), format=fmt)

    def save(self, payload: SavePayload) -> str:
        """Hand an encoded raster to the persistence collaborator; returns its record id."""
        if self.publisher is None:
            raise RuntimeError("No publisher configured for this editor")
        record_id = self.publisher(payload)
        logger.info("Saved %d-byte %s raster as %s", len(payload.raster), payload.format.value, record_id)
        return record_id

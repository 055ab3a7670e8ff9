from __future__ import annotations

import base64
import math
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import Mapping

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from memelytics.domain.entities.content_frame import ContentFrame, FramePolicy
from memelytics.domain.entities.editor_state import EditorState, ImageItem, Stroke, TextItem
from memelytics.domain.entities.selection import NO_SELECTION, Selection
from memelytics.domain.services.geometry import rotate_point
from memelytics.domain.services.hit_testing import DEFAULT_HANDLES, HandleGeometry, text_center
from memelytics.domain.services.text_metrics import TextMeasurer

NEUTRAL_FILL = "#f8f8f8"
PLACEHOLDER_TEXT = "Upload an image or GIF to start"
PLACEHOLDER_COLOR = "#666666"
IMAGE_GUIDE_COLOR = "#3b82f6"
TEXT_GUIDE_COLOR = "#ef4444"
CHECKER_CELL = 8
CHECKER_LIGHT = (255, 255, 255, 255)
CHECKER_DARK = (204, 204, 204, 255)
JPEG_QUALITY = 95


class RasterFormat(str, Enum):
    PNG = "png"  # lossless
    JPEG = "jpeg"  # lossy

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def parse(cls, value: str | RasterFormat) -> RasterFormat:
        if isinstance(value, RasterFormat):
            return value
        name = str(value).lower().lstrip(".")
        if name == "jpg":
            name = "jpeg"
        try:
            return cls(name)
        except ValueError as exc:
            raise ValueError(f"Unsupported raster format: {value}") from exc


@dataclass(frozen=True)
class Scene:
    """Everything the renderer needs: the snapshot plus the rasters it references."""

    state: EditorState
    frame: ContentFrame
    base: Image.Image | None = None
    rasters: Mapping[str, Image.Image] = field(default_factory=dict)


def checkerboard(width: int, height: int, cell: int = CHECKER_CELL) -> Image.Image:
    ys, xs = np.indices((height, width))
    light = ((xs // cell) + (ys // cell)) % 2 == 0
    arr = np.where(
        light[..., None],
        np.array(CHECKER_LIGHT, dtype=np.uint8),
        np.array(CHECKER_DARK, dtype=np.uint8),
    ).astype(np.uint8)
    return Image.fromarray(arr)


def encode_raster(image: Image.Image, fmt: RasterFormat) -> bytes:
    buf = BytesIO()
    if fmt is RasterFormat.JPEG:
        image.convert("RGB").save(buf, format="JPEG", quality=JPEG_QUALITY)
    else:
        image.save(buf, format="PNG")
    return buf.getvalue()


def to_data_url(payload: bytes, fmt: RasterFormat) -> str:
    return f"data:{fmt.mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


def composite_at(canvas: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    """Alpha-composite ``tile`` onto ``canvas`` at (left, top), clipping at every edge."""
    src_x = max(0, -left)
    src_y = max(0, -top)
    dst_x = max(0, left)
    dst_y = max(0, top)
    w = min(tile.width - src_x, canvas.width - dst_x)
    h = min(tile.height - src_y, canvas.height - dst_y)
    if w <= 0 or h <= 0:
        return
    piece = tile.crop((src_x, src_y, src_x + w, src_y + h))
    canvas.alpha_composite(piece, dest=(dst_x, dst_y))


class Compositor:
    """Deterministic snapshot -> pixels renderer.

    Preview and export share the same layer drawing; they differ only in the
    selection guides, the rotation margins, and (under the fixed frame policy)
    the export bounds check.
    """

    def __init__(self, measurer: TextMeasurer, handles: HandleGeometry = DEFAULT_HANDLES) -> None:
        self.measurer = measurer
        self.handles = handles

    # --------- public entry points ---------
    def render_preview(self, scene: Scene, selection: Selection = NO_SELECTION, guides: bool = True) -> Image.Image:
        frame = scene.frame
        if scene.base is None:
            return self._placeholder(frame)
        content = self.compose(scene, for_export=False)
        if guides and not selection.empty:
            self._draw_guides(content, scene.state, selection)
        rotation = scene.state.rotation_deg % 360.0
        if rotation == 0:
            return content
        if frame.allows_free_rotation:
            rotated = content.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)
            board = checkerboard(rotated.width, rotated.height)
            board.alpha_composite(rotated)
            return board
        backdrop = Image.new("RGBA", content.size, NEUTRAL_FILL)
        backdrop.alpha_composite(content.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=False))
        return backdrop

    def render_export(self, scene: Scene) -> Image.Image | None:
        if scene.base is None:
            return None
        content = self.compose(scene, for_export=True)
        rotation = scene.state.rotation_deg % 360.0
        if rotation == 0:
            return content
        rotated = content.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=scene.frame.allows_free_rotation)
        backdrop = Image.new("RGBA", rotated.size, scene.state.background_color)
        backdrop.alpha_composite(rotated)
        return backdrop

    def compose(self, scene: Scene, for_export: bool) -> Image.Image:
        state = scene.state
        frame = scene.frame
        # out-of-frame layers only vanish from fixed-frame exports
        bounded = for_export and frame.policy is FramePolicy.FIXED
        canvas = Image.new("RGBA", (frame.width, frame.height), state.background_color)
        if scene.base is not None:
            composite_at(canvas, scene.base.convert("RGBA"), frame.base_x, frame.base_y)
        for item in state.images:
            raster = scene.rasters.get(item.id)
            if raster is None:
                continue
            if bounded and not frame.contains_box(item.x, item.y, item.w, item.h):
                continue
            self._draw_image(canvas, item, raster)
        for text in state.texts:
            if bounded:
                box = self.measurer.measure(text)
                if not frame.contains_box(text.x, text.y - box.h, box.w, box.h):
                    continue
            self._draw_text(canvas, text)
        self._draw_strokes(canvas, state.strokes, frame if bounded else None)
        return canvas

    # --------- layers ---------
    @staticmethod
    def _draw_image(canvas: Image.Image, item: ImageItem, raster: Image.Image) -> None:
        size = (max(1, round(item.w)), max(1, round(item.h)))
        tile = raster.convert("RGBA")
        if tile.size != size:
            tile = tile.resize(size, resample=Image.Resampling.LANCZOS)
        composite_at(canvas, tile, round(item.x), round(item.y))

    def _draw_text(self, canvas: Image.Image, item: TextItem) -> None:
        box = self.measurer.measure(item)
        font = self.measurer.font(item.font, item.size)
        pad = item.size
        tile = Image.new("RGBA", (math.ceil(box.w + 2 * pad), math.ceil(box.h + 2 * pad)), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        left = tile.width / 2 - box.w / 2
        middle = tile.height / 2
        if isinstance(font, ImageFont.FreeTypeFont):
            draw.text((left, middle), item.text or " ", font=font, fill=item.color, anchor="lm")
        else:  # bitmap fallback font has no anchor support
            draw.text((left, middle - box.h / 2), item.text or " ", font=font, fill=item.color)
        if item.rotation_deg % 360.0:
            tile = tile.rotate(-item.rotation_deg, resample=Image.Resampling.BICUBIC, expand=True)
        cx, cy = text_center(item, box)
        composite_at(canvas, tile, round(cx - tile.width / 2), round(cy - tile.height / 2))

    @staticmethod
    def _draw_strokes(canvas: Image.Image, strokes: tuple[Stroke, ...], bounds: ContentFrame | None) -> None:
        if not strokes:
            return
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for stroke in strokes:
            points = [(p.x, p.y) for p in stroke.points]
            if bounds is not None:
                points = [(x, y) for x, y in points if bounds.contains_point(x, y)]
            if not points:
                continue
            radius = stroke.size / 2
            if len(points) > 1:
                draw.line(points, fill=stroke.color, width=stroke.size, joint="curve")
                ends = (points[0], points[-1])
            else:
                ends = (points[0],)
            # round caps (and the single-point dot)
            for x, y in ends:
                draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=stroke.color)
        canvas.alpha_composite(layer)

    # --------- guides ---------
    def _draw_guides(self, canvas: Image.Image, state: EditorState, selection: Selection) -> None:
        draw = ImageDraw.Draw(canvas)
        if selection.is_image():
            item = state.find_image(selection.layer_id)
            if item is None:
                return
            corners = [
                (item.x, item.y),
                (item.x + item.w, item.y),
                (item.x + item.w, item.y + item.h),
                (item.x, item.y + item.h),
            ]
            _dashed_polygon(draw, corners, IMAGE_GUIDE_COLOR)
            half = self.handles.image_resize_half / 2
            hx, hy = item.x + item.w, item.y + item.h
            draw.rectangle((hx - half, hy - half, hx + half, hy + half), fill=IMAGE_GUIDE_COLOR)
        elif selection.is_text():
            text = state.find_text(selection.layer_id)
            if text is None:
                return
            box = self.measurer.measure(text)
            cx, cy = text_center(text, box)
            hw, hh = box.w / 2, box.h / 2

            def local(lx: float, ly: float) -> tuple[float, float]:
                return rotate_point(cx + lx, cy + ly, cx, cy, text.rotation_deg)

            _dashed_polygon(draw, [local(-hw, -hh), local(hw, -hh), local(hw, hh), local(-hw, hh)], TEXT_GUIDE_COLOR)
            dot_x, dot_y = local(0, -hh - self.handles.text_rotate_offset)
            r = self.handles.text_rotate_radius * 0.75
            draw.ellipse((dot_x - r, dot_y - r, dot_x + r, dot_y + r), fill=TEXT_GUIDE_COLOR)
            s = self.handles.text_resize_half * 0.6
            square = [local(hw - s, hh - s), local(hw + s, hh - s), local(hw + s, hh + s), local(hw - s, hh + s)]
            draw.polygon(square, fill=TEXT_GUIDE_COLOR)

    @staticmethod
    def _placeholder(frame: ContentFrame) -> Image.Image:
        image = Image.new("RGBA", (frame.width, frame.height), NEUTRAL_FILL)
        draw = ImageDraw.Draw(image)
        draw.text((16, 14), PLACEHOLDER_TEXT, font=ImageFont.load_default(size=14), fill=PLACEHOLDER_COLOR)
        return image


def _dashed_polygon(
    draw: ImageDraw.ImageDraw, corners: list[tuple[float, float]], color: str, dash: float = 4, gap: float = 3
) -> None:
    for i, (x0, y0) in enumerate(corners):
        x1, y1 = corners[(i + 1) % len(corners)]
        length = math.hypot(x1 - x0, y1 - y0)
        if length == 0:
            continue
        ux, uy = (x1 - x0) / length, (y1 - y0) / length
        pos = 0.0
        while pos < length:
            end = min(pos + dash, length)
            draw.line((x0 + ux * pos, y0 + uy * pos, x0 + ux * end, y0 + uy * end), fill=color, width=1)
            pos = end + gap

"""Pure clamping and placement rules shared by the editor API and gestures.

Every function takes plain values (or frozen layers) plus the content frame and
returns new values. Nothing here raises for out-of-range input: values
saturate at their documented bounds.
"""
from __future__ import annotations

import math
from dataclasses import replace

from PIL import ImageColor

from memelytics.domain.entities.content_frame import ContentFrame
from memelytics.domain.entities.editor_state import (
    MAX_BRUSH_SIZE,
    MAX_PADDING,
    MAX_TEXT_SIZE,
    MIN_BRUSH_SIZE,
    MIN_IMAGE_EDGE,
    MIN_TEXT_SIZE,
    ImageItem,
    Padding,
    Point,
    TextItem,
)
from memelytics.domain.services.geometry import Size, clamp, is_finite, normalize_deg


def clamp_text_size(size: float) -> int:
    return int(clamp(round(size), MIN_TEXT_SIZE, MAX_TEXT_SIZE))


def clamp_brush_size(size: float) -> int:
    return int(clamp(round(size), MIN_BRUSH_SIZE, MAX_BRUSH_SIZE))


def clamp_padding_side(value: float) -> int:
    return int(clamp(round(value), 0, MAX_PADDING))


def clamp_padding(padding: Padding) -> Padding:
    return Padding(
        top=clamp_padding_side(padding.top),
        right=clamp_padding_side(padding.right),
        bottom=clamp_padding_side(padding.bottom),
        left=clamp_padding_side(padding.left),
    )


def is_valid_color(color: str) -> bool:
    try:
        ImageColor.getrgb(color)
    except (ValueError, AttributeError):
        return False
    return True


def clamp_point(x: float, y: float, frame: ContentFrame) -> Point:
    return Point(clamp(x, 0, frame.width), clamp(y, 0, frame.height))


def clamp_text_anchor(x: float, y: float, frame: ContentFrame) -> tuple[float, float]:
    """Keep the anchor itself inside the frame (the box may still overflow)."""
    return clamp(x, 0, frame.width), clamp(y, 0, frame.height)


def clamp_text_box(x: float, y: float, box: Size, frame: ContentFrame) -> tuple[float, float]:
    """Keep the whole text box inside the frame; ``y`` is the box bottom."""
    new_x = clamp(x, 0, max(0.0, frame.width - box.w))
    new_y = clamp(y, min(box.h, frame.height), frame.height)
    return new_x, new_y


def clamp_image_position(x: float, y: float, w: float, h: float, frame: ContentFrame) -> tuple[float, float]:
    return clamp(x, 0, max(0.0, frame.width - w)), clamp(y, 0, max(0.0, frame.height - h))


def fit_image_box(item: ImageItem, w: float, h: float, frame: ContentFrame) -> ImageItem:
    """Apply a new box size from the item's anchor.

    Each edge is floored at ``MIN_IMAGE_EDGE`` and then capped so the box ends
    inside the frame. When the anchor is too close to the edge for the minimum
    size, the anchor moves back instead.
    """
    min_w = min(MIN_IMAGE_EDGE, float(frame.width))
    min_h = min(MIN_IMAGE_EDGE, float(frame.height))
    new_w = max(min_w, min(max(min_w, w), frame.width - item.x))
    new_h = max(min_h, min(max(min_h, h), frame.height - item.y))
    new_x = min(item.x, frame.width - new_w)
    new_y = min(item.y, frame.height - new_h)
    return replace(item, x=max(0.0, new_x), y=max(0.0, new_y), w=new_w, h=new_h)


def scale_image_item(item: ImageItem, factor: float, frame: ContentFrame) -> ImageItem:
    if not is_finite(factor):
        return item
    factor = max(float(factor), 0.0)
    return fit_image_box(item, item.w * factor, item.h * factor, frame)


def place_new_image(image_id: str, natural: tuple[int, int], frame: ContentFrame) -> ImageItem:
    """Scale a freshly decoded image down to fit the frame and center it.

    Images are never upscaled past their natural resolution.
    """
    nat_w, nat_h = max(1, natural[0]), max(1, natural[1])
    scale = min(frame.width / nat_w, frame.height / nat_h, 1.0)
    w = max(min(MIN_IMAGE_EDGE, frame.width), nat_w * scale)
    h = max(min(MIN_IMAGE_EDGE, frame.height), nat_h * scale)
    x = (frame.width - w) / 2
    y = (frame.height - h) / 2
    return ImageItem(id=image_id, x=max(0.0, x), y=max(0.0, y), w=w, h=h)


def natural_fit_from_anchor(item: ImageItem, natural: tuple[int, int], frame: ContentFrame) -> ImageItem:
    """Restore the natural aspect and size, shrunk to fit from the current anchor."""
    nat_w, nat_h = max(1, natural[0]), max(1, natural[1])
    room_w = max(frame.width - item.x, 1e-9)
    room_h = max(frame.height - item.y, 1e-9)
    scale = min(room_w / nat_w, room_h / nat_h, 1.0)
    return fit_image_box(item, nat_w * scale, nat_h * scale, frame)


def _finite_change(changes: dict, key: str) -> float | None:
    value = changes.get(key)
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def sanitize_text_changes(current: TextItem, changes: dict, frame: ContentFrame) -> TextItem:
    """Merge partial text fields into ``current`` with every field clamped.

    Non-finite numbers are dropped and leave the current value in place.
    """
    fields = {}
    if "text" in changes and changes["text"] is not None:
        fields["text"] = str(changes["text"])
    if "font" in changes and changes["font"]:
        fields["font"] = str(changes["font"])
    if "color" in changes and changes["color"] and is_valid_color(str(changes["color"])):
        fields["color"] = str(changes["color"])
    size = _finite_change(changes, "size")
    if size is not None:
        fields["size"] = clamp_text_size(size)
    rotation = _finite_change(changes, "rotation_deg")
    if rotation is not None:
        fields["rotation_deg"] = normalize_deg(rotation)
    x = _finite_change(changes, "x")
    y = _finite_change(changes, "y")
    fields["x"], fields["y"] = clamp_text_anchor(
        current.x if x is None else x, current.y if y is None else y, frame
    )
    return replace(current, **fields)



def swap_forward(items: tuple, layer_id: str) -> tuple:
    """Swap the layer with its next neighbour; the last one stays put."""
    idx = next((i for i, it in enumerate(items) if it.id == layer_id), -1)
    if idx < 0 or idx == len(items) - 1:
        return items
    out = list(items)
    out[idx], out[idx + 1] = out[idx + 1], out[idx]
    return tuple(out)


def swap_backward(items: tuple, layer_id: str) -> tuple:
    """Swap the layer with its previous neighbour; the first one stays put."""
    idx = next((i for i, it in enumerate(items) if it.id == layer_id), -1)
    if idx <= 0:
        return items
    out = list(items)
    out[idx], out[idx - 1] = out[idx - 1], out[idx]
    return tuple(out)

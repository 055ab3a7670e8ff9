from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from memelytics.domain.entities.editor_state import (
    EditorState,
    ImageItem,
    LayerKind,
    Point,
    TextItem,
)
from memelytics.domain.services.geometry import Size, rotate_point
from memelytics.domain.services.text_metrics import TextMeasurer


class HitZone(str, Enum):
    BODY = "body"
    ROTATE = "rotate"
    RESIZE = "resize"


@dataclass(frozen=True)
class HandleGeometry:
    """Handle sizes in content units. Guides are drawn from the same values."""

    text_rotate_offset: float = 16.0  # distance above the top edge
    text_rotate_radius: float = 8.0
    text_resize_half: float = 10.0
    image_resize_half: float = 12.0


DEFAULT_HANDLES = HandleGeometry()


@dataclass(frozen=True)
class Hit:
    kind: LayerKind
    layer_id: str
    zone: HitZone
    # text hits carry the box they were tested against
    center: Point | None = None
    box: Size | None = None


def text_center(item: TextItem, box: Size) -> tuple[float, float]:
    return item.x + box.w / 2, item.y - box.h / 2


def hit_test_image_stack(
    point: Point, images: Iterable[ImageItem], handles: HandleGeometry = DEFAULT_HANDLES
) -> Hit | None:
    # front-most image wins, so walk the z-order from the top
    for item in reversed(tuple(images)):
        inside = item.x <= point.x <= item.x + item.w and item.y <= point.y <= item.y + item.h
        if not inside:
            continue
        on_resize = (
            abs(point.x - (item.x + item.w)) <= handles.image_resize_half
            and abs(point.y - (item.y + item.h)) <= handles.image_resize_half
        )
        return Hit(LayerKind.IMAGE, item.id, HitZone.RESIZE if on_resize else HitZone.BODY)
    return None


def hit_test_text(
    point: Point,
    item: TextItem,
    measurer: TextMeasurer,
    handles: HandleGeometry = DEFAULT_HANDLES,
) -> Hit | None:
    box = measurer.measure(item)
    cx, cy = text_center(item, box)
    # into the text's own unrotated frame, origin at the box center
    lx, ly = rotate_point(point.x, point.y, cx, cy, -item.rotation_deg)
    lx -= cx
    ly -= cy
    half_w = box.w / 2
    half_h = box.h / 2

    rotate_y = -half_h - handles.text_rotate_offset
    if math.hypot(lx, ly - rotate_y) <= handles.text_rotate_radius:
        zone = HitZone.ROTATE
    elif abs(lx - half_w) <= handles.text_resize_half and abs(ly - half_h) <= handles.text_resize_half:
        zone = HitZone.RESIZE
    elif -half_w <= lx <= half_w and -half_h <= ly <= half_h:
        zone = HitZone.BODY
    else:
        return None
    return Hit(LayerKind.TEXT, item.id, zone, center=Point(cx, cy), box=box)


def hit_test_text_stack(
    point: Point,
    texts: Iterable[TextItem],
    measurer: TextMeasurer,
    handles: HandleGeometry = DEFAULT_HANDLES,
) -> Hit | None:
    for item in reversed(tuple(texts)):
        hit = hit_test_text(point, item, measurer, handles)
        if hit is not None:
            return hit
    return None


def hit_test(
    point: Point,
    state: EditorState,
    measurer: TextMeasurer,
    kinds: tuple[LayerKind, ...] = (LayerKind.TEXT, LayerKind.IMAGE),
    handles: HandleGeometry = DEFAULT_HANDLES,
) -> Hit | None:
    """Find the top-most layer under ``point``.

    Texts render above every image, so they are tested first when both kinds
    are requested.
    """
    if LayerKind.TEXT in kinds:
        hit = hit_test_text_stack(point, state.texts, measurer, handles)
        if hit is not None:
            return hit
    if LayerKind.IMAGE in kinds:
        return hit_test_image_stack(point, state.images, handles)
    return None

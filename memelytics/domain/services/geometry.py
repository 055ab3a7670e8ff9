"""Coordinate conversions between the on-screen canvas and content space.

Content space has its origin at the top-left of the content frame, y down.
The canvas rotation is applied about the frame center at render time only, so
every pointer position has to go through ``to_content_space`` before it is
compared against layer geometry.
"""
from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Size:
    w: float
    h: float


@dataclass(frozen=True)
class CanvasRect:
    """Where the rendered canvas sits on screen (client pixels)."""

    left: float
    top: float
    width: float
    height: float


def is_finite(*values: float) -> bool:
    return all(math.isfinite(float(v)) for v in values)


def normalize_deg(deg: float) -> float:
    deg = float(deg)
    if not math.isfinite(deg):
        return 0.0
    return deg % 360.0


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


# Rotate (x, y) about (cx, cy). Positive angles turn clockwise on a y-down screen.
def rotate_point(x: float, y: float, cx: float, cy: float, deg: float) -> tuple[float, float]:
    rad = math.radians(deg)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    dx = x - cx
    dy = y - cy
    return cx + dx * cos_a - dy * sin_a, cy + dx * sin_a + dy * cos_a


def angle_deg(cx: float, cy: float, px: float, py: float) -> float:
    """Angle of the vector center->point in degrees, screen convention."""
    return math.degrees(math.atan2(py - cy, px - cx))


def rotated_bounds(width: int, height: int, deg: float) -> tuple[int, int]:
    """Pixel size of a ``width`` x ``height`` buffer rotated by ``deg`` with expansion.

    Mirrors the bounding box Pillow computes for ``Image.rotate(expand=True)``
    so that display and pointer mapping agree with the rendered preview.
    """
    pil_angle = (-deg) % 360.0
    if pil_angle in (0.0, 180.0):
        return width, height
    if pil_angle in (90.0, 270.0):
        return height, width
    angle = -math.radians(pil_angle)
    a = round(math.cos(angle), 15)
    b = round(math.sin(angle), 15)
    d = round(-math.sin(angle), 15)
    e = round(math.cos(angle), 15)
    cx = width / 2.0
    cy = height / 2.0
    c = a * -cx + b * -cy + cx
    f = d * -cx + e * -cy + cy
    xs = []
    ys = []
    for x, y in ((0, 0), (width, 0), (width, height), (0, height)):
        xs.append(a * x + b * y + c)
        ys.append(d * x + e * y + f)
    new_w = math.ceil(max(xs)) - math.floor(min(xs))
    new_h = math.ceil(max(ys)) - math.floor(min(ys))
    return new_w, new_h


def to_content_space(
    pointer_x: float,
    pointer_y: float,
    rect: CanvasRect,
    content: Size,
    rotation_deg: float,
    display: Size | None = None,
) -> tuple[float, float]:
    """Map a client pointer position to content space.

    Args:
        pointer_x, pointer_y: Client coordinates of the pointer
        rect: On-screen rectangle the canvas is drawn into
        content: Content frame size
        rotation_deg: Canvas rotation
        display: Pixel size of the rendered buffer shown in ``rect``. Defaults
            to the content size; the padded policy renders into the rotated
            bounding box instead.

    Returns:
        Tuple of (x, y) in content space
    """
    display = display or content
    scale_x = display.w / rect.width
    scale_y = display.h / rect.height
    px = (pointer_x - rect.left) * scale_x
    py = (pointer_y - rect.top) * scale_y
    # relative to the display center, undo the canvas rotation, back to content
    rx, ry = rotate_point(px, py, display.w / 2, display.h / 2, -rotation_deg)
    return rx - display.w / 2 + content.w / 2, ry - display.h / 2 + content.h / 2


def to_screen_space(
    content_x: float,
    content_y: float,
    rect: CanvasRect,
    content: Size,
    rotation_deg: float,
    display: Size | None = None,
) -> tuple[float, float]:
    """Inverse of ``to_content_space``."""
    display = display or content
    dx = content_x - content.w / 2 + display.w / 2
    dy = content_y - content.h / 2 + display.h / 2
    px, py = rotate_point(dx, dy, display.w / 2, display.h / 2, rotation_deg)
    return rect.left + px * rect.width / display.w, rect.top + py * rect.height / display.h

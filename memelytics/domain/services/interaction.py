"""Gesture state machine for drag, rotate, resize and freehand drawing.

A gesture starts on pointer-down (after a successful hit-test, or with the
draw tool) and ends on pointer-up or capture loss. While it runs, ``update``
maps each pointer position to a new working ``EditorState``; the caller shows
that state live and commits only the final one.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum

from memelytics.domain.entities.content_frame import ContentFrame
from memelytics.domain.entities.editor_state import (
    MIN_IMAGE_EDGE,
    EditorState,
    LayerKind,
    Point,
    Stroke,
)
from memelytics.domain.services.geometry import angle_deg, clamp
from memelytics.domain.services.hit_testing import Hit, HitZone, text_center
from memelytics.domain.services.layer_ops import (
    clamp_image_position,
    clamp_point,
    clamp_text_box,
    clamp_text_size,
    fit_image_box,
)
from memelytics.domain.services.text_metrics import TextMeasurer

IMAGE_SCALE_RANGE = (0.1, 10.0)
TEXT_SCALE_RANGE = (0.2, 10.0)


class InteractionMode(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    ROTATING = "rotating"
    RESIZING = "resizing"
    DRAWING = "drawing"


@dataclass(frozen=True)
class GestureSession:
    mode: InteractionMode
    kind: LayerKind
    layer_id: str
    offset_x: float = 0.0
    offset_y: float = 0.0
    center_x: float = 0.0
    center_y: float = 0.0
    start_angle: float = 0.0
    initial_rotation: float = 0.0
    initial_w: float = 0.0
    initial_h: float = 0.0
    initial_size: int = 0


class GestureController:
    def __init__(self, measurer: TextMeasurer) -> None:
        self.measurer = measurer
        self.session: GestureSession | None = None

    @property
    def mode(self) -> InteractionMode:
        return self.session.mode if self.session else InteractionMode.IDLE

    @property
    def active(self) -> bool:
        return self.session is not None

    def begin(self, hit: Hit, point: Point, state: EditorState) -> GestureSession | None:
        """Enter a transform mode for ``hit``. Returns ``None`` if the layer is gone."""
        if hit.kind is LayerKind.IMAGE:
            item = state.find_image(hit.layer_id)
            if item is None:
                return None
            if hit.zone is HitZone.RESIZE:
                session = GestureSession(
                    InteractionMode.RESIZING, hit.kind, item.id, initial_w=item.w, initial_h=item.h
                )
            else:
                session = GestureSession(
                    InteractionMode.DRAGGING,
                    hit.kind,
                    item.id,
                    offset_x=point.x - item.x,
                    offset_y=point.y - item.y,
                )
        elif hit.kind is LayerKind.TEXT:
            text = state.find_text(hit.layer_id)
            if text is None:
                return None
            box = self.measurer.measure(text)
            cx, cy = text_center(text, box)
            if hit.zone is HitZone.ROTATE:
                session = GestureSession(
                    InteractionMode.ROTATING,
                    hit.kind,
                    text.id,
                    center_x=cx,
                    center_y=cy,
                    start_angle=angle_deg(cx, cy, point.x, point.y),
                    initial_rotation=text.rotation_deg,
                )
            elif hit.zone is HitZone.RESIZE:
                session = GestureSession(
                    InteractionMode.RESIZING,
                    hit.kind,
                    text.id,
                    initial_w=box.w,
                    initial_h=box.h,
                    initial_size=text.size,
                )
            else:
                session = GestureSession(
                    InteractionMode.DRAGGING,
                    hit.kind,
                    text.id,
                    offset_x=point.x - text.x,
                    offset_y=point.y - text.y,
                )
        else:
            return None
        self.session = session
        return session

    def begin_stroke(
        self, stroke_id: str, point: Point, color: str, size: int, state: EditorState, frame: ContentFrame
    ) -> EditorState:
        self.session = GestureSession(InteractionMode.DRAWING, LayerKind.STROKE, stroke_id)
        stroke = Stroke(id=stroke_id, points=(clamp_point(point.x, point.y, frame),), color=color, size=size)
        return replace(state, strokes=state.strokes + (stroke,))

    def update(self, point: Point, state: EditorState, frame: ContentFrame) -> EditorState:
        session = self.session
        if session is None:
            return state
        if session.mode is InteractionMode.DRAWING:
            return self._extend_stroke(session, point, state, frame)
        if session.kind is LayerKind.IMAGE:
            if session.mode is InteractionMode.DRAGGING:
                return self._drag_image(session, point, state, frame)
            if session.mode is InteractionMode.RESIZING:
                return self._resize_image(session, point, state, frame)
        if session.kind is LayerKind.TEXT:
            if session.mode is InteractionMode.DRAGGING:
                return self._drag_text(session, point, state, frame)
            if session.mode is InteractionMode.ROTATING:
                return self._rotate_text(session, point, state)
            if session.mode is InteractionMode.RESIZING:
                return self._resize_text(session, point, state)
        return state

    def finish(self) -> GestureSession | None:
        session, self.session = self.session, None
        return session

    # --------- per-mode updates ---------
    @staticmethod
    def _extend_stroke(session: GestureSession, point: Point, state: EditorState, frame: ContentFrame) -> EditorState:
        pt = clamp_point(point.x, point.y, frame)
        return state.map_stroke(session.layer_id, lambda s: replace(s, points=s.points + (pt,)))

    @staticmethod
    def _drag_image(session: GestureSession, point: Point, state: EditorState, frame: ContentFrame) -> EditorState:
        item = state.find_image(session.layer_id)
        if item is None:
            return state
        x, y = clamp_image_position(
            point.x - session.offset_x, point.y - session.offset_y, item.w, item.h, frame
        )
        return state.map_image(item.id, lambda it: replace(it, x=x, y=y))

    @staticmethod
    def _resize_image(session: GestureSession, point: Point, state: EditorState, frame: ContentFrame) -> EditorState:
        item = state.find_image(session.layer_id)
        if item is None or session.initial_w <= 0 or session.initial_h <= 0:
            return state
        dx = max(MIN_IMAGE_EDGE, point.x - item.x)
        dy = max(MIN_IMAGE_EDGE, point.y - item.y)
        # smaller axis ratio keeps the aspect and stops one axis overshooting
        scale = clamp(min(dx / session.initial_w, dy / session.initial_h), *IMAGE_SCALE_RANGE)
        resized = fit_image_box(item, session.initial_w * scale, session.initial_h * scale, frame)
        return state.map_image(item.id, lambda _: resized)

    def _drag_text(self, session: GestureSession, point: Point, state: EditorState, frame: ContentFrame) -> EditorState:
        text = state.find_text(session.layer_id)
        if text is None:
            return state
        box = self.measurer.measure(text)
        x, y = clamp_text_box(point.x - session.offset_x, point.y - session.offset_y, box, frame)
        return state.map_text(text.id, lambda t: replace(t, x=x, y=y))

    @staticmethod
    def _rotate_text(session: GestureSession, point: Point, state: EditorState) -> EditorState:
        current = angle_deg(session.center_x, session.center_y, point.x, point.y)
        rotation = (session.initial_rotation + current - session.start_angle) % 360.0
        return state.map_text(session.layer_id, lambda t: replace(t, rotation_deg=rotation))

    @staticmethod
    def _resize_text(session: GestureSession, point: Point, state: EditorState) -> EditorState:
        text = state.find_text(session.layer_id)
        diagonal = math.hypot(session.initial_w, session.initial_h)
        if text is None or diagonal <= 0:
            return state
        ratio = math.hypot(point.x - text.x, point.y - text.y) / diagonal
        scale = clamp(ratio, *TEXT_SCALE_RANGE)
        size = clamp_text_size(session.initial_size * scale)
        return state.map_text(text.id, lambda t: replace(t, size=size))

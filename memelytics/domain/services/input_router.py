"""Pointer, keyboard and wheel dispatch onto a ``MemeEditor``.

The router owns the gesture session; the editor owns selection and history.
Every gesture ends in exactly one ``MemeEditor.commit``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from memelytics.domain.entities.editor_state import LayerKind, Point
from memelytics.domain.services.geometry import CanvasRect, is_finite
from memelytics.domain.services.interaction import GestureController, InteractionMode
from memelytics.domain.services.meme_editor import EditorTool, MemeEditor

logger = logging.getLogger(__name__)

NUDGE_STEP = 1
NUDGE_STEP_FAST = 10
ARROW_KEYS = {
    "ArrowLeft": (-1, 0),
    "ArrowRight": (1, 0),
    "ArrowUp": (0, -1),
    "ArrowDown": (0, 1),
}
WHEEL_TOOLS = {
    EditorTool.TEXT: LayerKind.TEXT,
    EditorTool.IMAGE: LayerKind.IMAGE,
}


class PointerKind(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"
    CANCEL = "cancel"  # capture loss


@dataclass(frozen=True)
class PointerEvent:
    kind: PointerKind
    client_x: float
    client_y: float
    rect: CanvasRect


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def chord(self) -> bool:
        return self.ctrl or self.meta


@dataclass(frozen=True)
class WheelEvent:
    delta_y: float


def _kinds_for(tool: EditorTool) -> tuple[LayerKind, ...]:
    if tool is EditorTool.TEXT:
        return (LayerKind.TEXT,)
    if tool is EditorTool.IMAGE:
        return (LayerKind.IMAGE,)
    return (LayerKind.TEXT, LayerKind.IMAGE)


class InputRouter:
    def __init__(self, editor: MemeEditor) -> None:
        self.editor = editor
        self.gestures = GestureController(editor.measurer)

    @property
    def mode(self) -> InteractionMode:
        return self.gestures.mode

    # --------- pointer ---------
    def handle_pointer(self, event: PointerEvent) -> bool:
        """Returns True when the event changed the live or committed state."""
        kind = PointerKind(event.kind)
        if kind in (PointerKind.DOWN, PointerKind.MOVE) and not is_finite(event.client_x, event.client_y):
            return False
        if kind is PointerKind.DOWN:
            return self._pointer_down(event)
        if kind is PointerKind.MOVE:
            return self._pointer_move(event)
        return self._pointer_up()

    def _pointer_down(self, event: PointerEvent) -> bool:
        editor = self.editor
        if self.gestures.active:
            # a second press without a release: close the open gesture first
            self._pointer_up()
        point = editor.pointer_to_content(event.client_x, event.client_y, event.rect)

        if editor.tool is EditorTool.DRAW:
            if not editor.has_template:
                return False
            color, size = editor.brush
            live = self.gestures.begin_stroke(
                editor.new_stroke_id(), point, color, size, editor.state, editor.frame
            )
            editor.show_live(live)
            return True

        hit = editor.hit_test(point, _kinds_for(editor.tool))
        if hit is None:
            editor.clear_selection()
            return False
        if self.gestures.begin(hit, point, editor.state) is None:
            return False
        if editor.selection.layer_id != hit.layer_id:
            editor.select(hit.layer_id)
        logger.debug("Gesture %s on %s", self.gestures.mode.value, hit.layer_id)
        return True

    def _pointer_move(self, event: PointerEvent) -> bool:
        if not self.gestures.active:
            return False
        editor = self.editor
        point = editor.pointer_to_content(event.client_x, event.client_y, event.rect)
        live = self.gestures.update(point, editor.state, editor.frame)
        if live == editor.state:
            return False
        editor.show_live(live)
        return True

    def _pointer_up(self) -> bool:
        if self.gestures.finish() is None:
            return False
        return self.editor.commit()

    # --------- keyboard ---------
    def handle_key(self, event: KeyEvent) -> bool:
        editor = self.editor
        if not editor.has_template:
            return False
        key = event.key
        if event.chord and key.lower() == "z":
            self._cancel_gesture()
            if event.shift:
                editor.redo()
            else:
                editor.undo()
            return True
        if event.chord and key.lower() == "y":
            self._cancel_gesture()
            editor.redo()
            return True
        if key == "Escape":
            editor.clear_selection()
            return True
        if self.gestures.active and (key in ("Delete", "Backspace") or key in ARROW_KEYS):
            # the open gesture owns the live state until release
            return False
        if key in ("Delete", "Backspace"):
            return editor.remove_selected()
        if key in ARROW_KEYS:
            step = NUDGE_STEP_FAST if event.shift else NUDGE_STEP
            dx, dy = ARROW_KEYS[key]
            return editor.nudge_selected(dx * step, dy * step)
        return False

    # --------- wheel ---------
    def handle_wheel(self, event: WheelEvent) -> bool:
        """Resize the selection, but only under the tool that owns its layer kind."""
        if event.delta_y == 0 or self.gestures.active:
            return False
        editor = self.editor
        kind = WHEEL_TOOLS.get(editor.tool)
        if kind is None or editor.selection.kind is not kind:
            return False
        return editor.wheel_resize_selected(event.delta_y)

    def _cancel_gesture(self) -> None:
        if self.gestures.finish() is not None:
            self.editor.discard_live()

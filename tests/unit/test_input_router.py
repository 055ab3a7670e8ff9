from __future__ import annotations

import pytest

from memelytics.domain.entities.editor_state import Point
from memelytics.domain.entities.selection import NO_SELECTION
from memelytics.domain.services.geometry import CanvasRect
from memelytics.domain.services.input_router import (
    InputRouter,
    KeyEvent,
    PointerEvent,
    PointerKind,
    WheelEvent,
)
from memelytics.domain.services.interaction import InteractionMode
from memelytics.domain.services.meme_editor import EditorTool, MemeEditor

RECT = CanvasRect(0, 0, 400, 300)


def pointer(kind: str, x: float, y: float, rect: CanvasRect = RECT) -> PointerEvent:
    return PointerEvent(PointerKind(kind), x, y, rect)


@pytest.fixture()
def editor(measurer, solid_image):
    ed = MemeEditor(measurer=measurer)
    ed.install_template(solid_image(400, 300))
    return ed


@pytest.fixture()
def router(editor):
    return InputRouter(editor)


@pytest.fixture()
def image_id(editor, solid_image):
    # 100x50 box at (150, 125)
    (image_id,) = editor.add_images([solid_image(100, 50)])
    return image_id


class TestPointer:
    def test_drag_commits_one_entry(self, editor, router, image_id):
        before = len(editor.history)
        assert router.handle_pointer(pointer("down", 170, 140))
        assert router.mode is InteractionMode.DRAGGING
        router.handle_pointer(pointer("move", 190, 150))
        router.handle_pointer(pointer("move", 200, 160))
        assert editor.committed.find_image(image_id).x == 150

        assert router.handle_pointer(pointer("up", 200, 160))
        item = editor.state.find_image(image_id)
        assert (item.x, item.y) == (180, 145)
        assert len(editor.history) == before + 1
        assert router.mode is InteractionMode.IDLE

        editor.undo()
        assert editor.state.find_image(image_id).x == 150

    def test_click_without_motion_commits_nothing(self, editor, router, image_id):
        before = len(editor.history)
        router.handle_pointer(pointer("down", 170, 140))
        assert router.handle_pointer(pointer("up", 170, 140)) is False
        assert len(editor.history) == before

    def test_capture_loss_ends_gesture(self, editor, router, image_id):
        router.handle_pointer(pointer("down", 170, 140))
        router.handle_pointer(pointer("move", 180, 140))
        assert router.handle_pointer(pointer("cancel", 0, 0))
        assert editor.committed.find_image(image_id).x == 160

    def test_scaled_rect_maps_to_content(self, editor, router, image_id):
        half = CanvasRect(10, 20, 200, 150)
        router.handle_pointer(pointer("down", 10 + 85, 20 + 70, half))
        router.handle_pointer(pointer("move", 10 + 95, 20 + 70, half))
        router.handle_pointer(pointer("up", 10 + 95, 20 + 70, half))
        assert editor.state.find_image(image_id).x == 170

    def test_miss_clears_selection(self, editor, router, image_id):
        assert editor.get_selected_image() is not None
        assert router.handle_pointer(pointer("down", 5, 5)) is False
        assert editor.selection == NO_SELECTION

    def test_press_selects_hit_layer(self, editor, router, image_id):
        editor.clear_selection()
        router.handle_pointer(pointer("down", 170, 140))
        assert editor.get_selected_image().id == image_id

    def test_text_tool_ignores_images(self, editor, router, image_id):
        editor.set_tool(EditorTool.TEXT)
        assert router.handle_pointer(pointer("down", 170, 140)) is False
        assert editor.selection == NO_SELECTION

    def test_draw_tool_records_clamped_stroke(self, editor, router):
        editor.set_tool("draw")
        editor.set_brush(color="#ff0000", size=4)
        assert router.handle_pointer(pointer("down", 10, 10))
        router.handle_pointer(pointer("move", 20, 20))
        router.handle_pointer(pointer("move", 30, -5))
        assert editor.committed.strokes == ()
        assert router.handle_pointer(pointer("up", 30, -5))

        (stroke,) = editor.state.strokes
        assert stroke.points[0] == Point(10, 10)
        assert stroke.points[-1] == Point(30, 0)
        assert (stroke.color, stroke.size) == ("#ff0000", 4)

    def test_draw_needs_template(self, measurer):
        editor = MemeEditor(measurer=measurer)
        editor.set_tool("draw")
        assert InputRouter(editor).handle_pointer(pointer("down", 10, 10)) is False
        assert editor.state.strokes == ()


    def test_non_finite_pointer_is_ignored(self, editor, router, image_id):
        before = len(editor.history)
        assert router.handle_pointer(pointer("down", float("nan"), 140)) is False
        assert router.mode is InteractionMode.IDLE
        router.handle_pointer(pointer("down", 170, 140))
        assert router.handle_pointer(pointer("move", float("inf"), 150)) is False
        assert router.handle_pointer(pointer("up", 170, 140)) is False
        assert len(editor.history) == before


class TestKeys:

    def test_undo_redo_chords(self, editor, router):
        text_id = editor.add_text()
        assert router.handle_key(KeyEvent("z", ctrl=True))
        assert editor.state.texts == ()
        assert router.handle_key(KeyEvent("Z", meta=True, shift=True))
        assert editor.state.find_text(text_id) is not None
        editor.undo()
        assert router.handle_key(KeyEvent("y", ctrl=True))
        assert editor.state.find_text(text_id) is not None

    def test_undo_during_gesture_drops_live_state(self, editor, router, image_id):
        router.handle_pointer(pointer("down", 170, 140))
        router.handle_pointer(pointer("move", 200, 160))
        router.handle_key(KeyEvent("z", ctrl=True))
        assert router.mode is InteractionMode.IDLE
        assert editor.state == editor.committed
        assert editor.state.images == ()

    def test_escape_clears_selection(self, editor, router, image_id):
        assert router.handle_key(KeyEvent("Escape"))
        assert editor.selection == NO_SELECTION

    def test_delete_removes_selection(self, editor, router, image_id):
        assert router.handle_key(KeyEvent("Delete"))
        assert editor.state.images == ()

    def test_backspace_kept_for_text_editing(self, editor, router):
        text_id = editor.add_text()
        assert router.handle_key(KeyEvent("Backspace")) is False
        assert editor.state.find_text(text_id) is not None

    def test_arrow_nudges(self, editor, router, image_id):
        assert router.handle_key(KeyEvent("ArrowRight"))
        assert router.handle_key(KeyEvent("ArrowDown", shift=True))
        item = editor.state.find_image(image_id)
        assert (item.x, item.y) == (151, 135)

    def test_arrows_move_text_in_edit_mode(self, editor, router):
        text_id = editor.add_text()
        assert editor.selection.editing
        assert router.handle_key(KeyEvent("ArrowRight"))
        assert router.handle_key(KeyEvent("ArrowDown", shift=True))
        item = editor.state.find_text(text_id)
        assert (item.x, item.y) == (201, 160)

    def test_editing_keys_ignored_during_drag(self, editor, router, image_id):
        before = len(editor.history)
        router.handle_pointer(pointer("down", 170, 140))
        router.handle_pointer(pointer("move", 190, 150))
        assert router.handle_key(KeyEvent("ArrowRight")) is False
        assert router.handle_key(KeyEvent("Delete")) is False
        assert len(editor.history) == before

        router.handle_pointer(pointer("up", 190, 150))
        item = editor.state.find_image(image_id)
        assert (item.x, item.y) == (170, 135)
        assert len(editor.history) == before + 1


    def test_keys_need_template(self, measurer):
        editor = MemeEditor(measurer=measurer)
        assert InputRouter(editor).handle_key(KeyEvent("z", ctrl=True)) is False


class TestWheel:
    def test_wheel_scales_selection(self, editor, router, image_id):
        editor.set_tool(EditorTool.IMAGE)
        assert router.handle_wheel(WheelEvent(1))
        assert editor.state.find_image(image_id).w == pytest.approx(95)
        assert router.handle_wheel(WheelEvent(0)) is False

    def test_wheel_resizes_text_under_text_tool(self, editor, router):
        text_id = editor.add_text()
        editor.set_tool(EditorTool.TEXT)
        size = editor.state.find_text(text_id).size
        assert router.handle_wheel(WheelEvent(-1))
        assert editor.state.find_text(text_id).size > size

    @pytest.mark.parametrize("tool", [EditorTool.NONE, EditorTool.TEXT, EditorTool.DRAW, EditorTool.ROTATE])
    def test_wheel_needs_matching_tool(self, editor, router, image_id, tool):
        editor.set_tool(tool)
        assert router.handle_wheel(WheelEvent(1)) is False
        assert editor.state.find_image(image_id).w == 100

    def test_wheel_ignored_during_gesture(self, editor, router, image_id):
        editor.set_tool(EditorTool.IMAGE)
        router.handle_pointer(pointer("down", 170, 140))
        assert router.handle_wheel(WheelEvent(-1)) is False


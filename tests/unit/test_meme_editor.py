from __future__ import annotations

import asyncio
from unittest.mock import Mock

import numpy as np
import pytest

from memelytics.domain.entities.content_frame import FramePolicy
from memelytics.domain.entities.editor_state import LayerKind
from memelytics.domain.entities.selection import NO_SELECTION, Selection
from memelytics.domain.services.compositor import RasterFormat
from memelytics.domain.services.image_decoder import ImageDecoder
from memelytics.domain.services.meme_editor import EditorTool, MemeEditor, SavePayload

BLUE = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
RED = (255, 0, 0, 255)


class GatedDecoder(ImageDecoder):
    """Decoder whose results can be held back until a gate opens."""

    def __init__(self):
        super().__init__()
        self.gates: dict[bytes, asyncio.Event] = {}

    async def decode(self, source):
        gate = self.gates.get(source)
        if gate is not None:
            await gate.wait()
        return await super().decode(source)


@pytest.fixture()
def editor(measurer, solid_image):
    ed = MemeEditor(measurer=measurer)
    ed.install_template(solid_image(400, 300, BLUE))
    return ed


@pytest.fixture()
def padded_editor(measurer, solid_image):
    ed = MemeEditor(FramePolicy.PADDED, measurer=measurer)
    ed.install_template(solid_image(400, 300, BLUE))
    return ed


class TestTemplates:
    def test_placeholder_frame_before_template(self, measurer):
        ed = MemeEditor(measurer=measurer)
        assert not ed.has_template
        assert (ed.frame.width, ed.frame.height) == (800, 600)
        assert ed.export_raster() is None
        assert ed.export_data_url() is None

    def test_load_template_from_bytes(self, measurer, png_bytes):
        loaded = []
        ed = MemeEditor(measurer=measurer, on_template_load=loaded.append)
        assert asyncio.run(ed.load_template(png_bytes(40, 30)))
        assert (ed.frame.width, ed.frame.height) == (40, 30)
        assert loaded == [ed]
        assert not ed.can_undo

    def test_failed_decode_installs_nothing(self, editor):
        text_id = editor.add_text()
        assert asyncio.run(editor.load_template(b"definitely not an image")) is False
        assert editor.has_template
        assert editor.state.find_text(text_id) is not None

    def test_stale_template_decode_is_discarded(self, measurer, png_bytes):
        slow = png_bytes(10, 10)
        fast = png_bytes(20, 20)

        async def scenario():
            decoder = GatedDecoder()
            gate = asyncio.Event()
            decoder.gates[slow] = gate
            ed = MemeEditor(measurer=measurer, decoder=decoder)
            first = asyncio.create_task(ed.load_template(slow))
            await asyncio.sleep(0)
            assert await ed.load_template(fast)
            gate.set()
            return ed, await first

        ed, first_result = asyncio.run(scenario())
        assert first_result is False
        assert (ed.frame.width, ed.frame.height) == (20, 20)

    def test_overlay_decode_from_superseded_template_is_dropped(self, editor, png_bytes):
        overlay = png_bytes(12, 12)

        async def scenario():
            decoder = GatedDecoder()
            gate = asyncio.Event()
            decoder.gates[overlay] = gate
            editor.decoder = decoder
            pending = asyncio.create_task(editor.add_image_sources([overlay]))
            await asyncio.sleep(0)
            assert await editor.load_template(png_bytes(50, 50))
            gate.set()
            return await pending

        assert asyncio.run(scenario()) == []
        assert editor.state.images == ()

    def test_loading_template_resets_layers_and_history(self, editor, solid_image):
        editor.add_text()
        editor.install_template(solid_image(100, 100))
        assert editor.state.texts == ()
        assert not editor.can_undo
        assert editor.selection == NO_SELECTION


class TestTextLayers:
    def test_gm_scenario(self, editor):
        text_id = editor.add_text()
        item = editor.state.find_text(text_id)
        assert (item.x, item.y, item.size, item.text) == (200, 150, 20, "")
        assert editor.selection == Selection(LayerKind.TEXT, text_id, editing=True)

        assert editor.update_text(text_id, text="GM")
        assert editor.state.find_text(text_id).text == "GM"

        editor.undo()
        assert editor.state.find_text(text_id).text == ""
        editor.redo()
        assert editor.state.find_text(text_id).text == "GM"

    def test_update_unknown_text_is_noop(self, editor):
        before = len(editor.history)
        assert editor.update_text("missing", text="x") is False
        assert len(editor.history) == before

    def test_unchanged_update_does_not_commit(self, editor):
        text_id = editor.add_text()
        before = len(editor.history)
        assert editor.update_text(text_id, text="") is False
        assert len(editor.history) == before

    def test_update_text_clamps_fields(self, editor):
        text_id = editor.add_text()
        editor.update_text(text_id, size=1000, color="not-a-color", x=-50, y=9999, rotation_deg=-90)
        item = editor.state.find_text(text_id)
        assert item.size == 256
        assert item.color == "#000000"
        assert (item.x, item.y) == (0, 300)
        assert item.rotation_deg == 270

    def test_wide_text_at_right_edge_is_dropped_from_export_but_outlined(self, editor):
        blank = np.asarray(editor.export_image())
        text_id = editor.add_text()
        editor.update_text(text_id, text="a very wide caption", x=399, y=150)
        assert editor.state.find_text(text_id).x == 399
        assert np.array_equal(np.asarray(editor.export_image()), blank)
        # still part of the live canvas, where its selection outline is drawn
        assert not np.array_equal(np.asarray(editor.render_preview()), blank)

    def test_text_crossing_right_edge_shows_in_preview_only(self, editor):
        blank_preview = np.asarray(editor.render_preview(guides=False))
        blank_export = np.asarray(editor.export_image())
        text_id = editor.add_text()
        # 160 px box anchored 30 px from the right edge
        editor.update_text(text_id, text="MMMMMMMM", size=40, x=370, y=150)
        assert not np.array_equal(np.asarray(editor.render_preview(guides=False)), blank_preview)
        assert np.array_equal(np.asarray(editor.export_image()), blank_export)

    def test_non_finite_numbers_leave_text_unchanged(self, editor):
        text_id = editor.add_text()
        before = len(editor.history)
        inf, nan = float("inf"), float("nan")
        assert editor.update_text(text_id, rotation_deg=inf) is False
        assert editor.update_text(text_id, size=nan, x=-inf, y=nan) is False
        item = editor.state.find_text(text_id)
        assert (item.x, item.y, item.size, item.rotation_deg) == (200, 150, 20, 0)
        assert len(editor.history) == before
        editor.render_preview()

    def test_text_edit_mode_round_trip(self, editor):

        text_id = editor.add_text()
        editor.end_text_edit()
        assert editor.selection == Selection(LayerKind.TEXT, text_id)
        assert editor.begin_text_edit(text_id)
        assert editor.selection.editing
        assert editor.begin_text_edit("missing") is False


class TestImageLayers:
    def test_new_images_fit_without_upscaling(self, editor, solid_image):
        small, big = editor.add_images([solid_image(100, 50), solid_image(800, 600)])
        s = editor.state.find_image(small)
        b = editor.state.find_image(big)
        assert (s.x, s.y, s.w, s.h) == (150, 125, 100, 50)
        assert (b.x, b.y, b.w, b.h) == (0, 0, 400, 300)
        assert editor.selection == Selection(LayerKind.IMAGE, big)

    def test_add_image_sources_skips_failures(self, editor, png_bytes):
        ids = asyncio.run(editor.add_image_sources([b"garbage", png_bytes(10, 10)]))
        assert len(ids) == 1
        assert editor.state.images[0].id == ids[0]

    def test_send_backward_two_images(self, editor, solid_image):
        a, b = editor.add_images([solid_image(10, 10, GREEN), solid_image(10, 10, RED)])
        assert [i.id for i in editor.state.images] == [a, b]
        assert editor.send_backward(b)
        assert [i.id for i in editor.state.images] == [b, a]

    def test_z_order_ends_are_noops(self, editor, solid_image):
        a, b, c = editor.add_images([solid_image(10, 10)] * 3)
        before = len(editor.history)
        assert editor.bring_forward(c) is False
        assert editor.send_backward(a) is False
        assert len(editor.history) == before
        assert editor.bring_forward(a)
        assert [i.id for i in editor.state.images] == [b, a, c]

    def test_text_z_order_swaps_too(self, editor):
        first = editor.add_text()
        second = editor.add_text()
        assert editor.send_backward(second)
        assert [t.id for t in editor.state.texts] == [second, first]

    def test_scale_round_trip_restores_size(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(100, 50)])
        editor.scale_image(image_id, 2)
        editor.scale_image(image_id, 0.5)
        item = editor.state.find_image(image_id)
        assert (item.w, item.h) == (100, 50)

    def test_scale_hitting_frame_is_not_reversible(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(100, 50)])
        editor.scale_image(image_id, 10)
        editor.scale_image(image_id, 0.1)
        item = editor.state.find_image(image_id)
        assert (item.w, item.h) != (100, 50)

    def test_non_finite_scale_is_ignored(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(100, 50)])
        before = len(editor.history)
        assert editor.scale_image(image_id, float("nan")) is False
        assert editor.scale_image(image_id, float("inf")) is False
        item = editor.state.find_image(image_id)
        assert (item.w, item.h) == (100, 50)
        assert len(editor.history) == before

    def test_reset_size_restores_natural_box(self, editor, solid_image):

        (image_id,) = editor.add_images([solid_image(100, 50)])
        editor.scale_image(image_id, 2)
        assert editor.reset_size(image_id)
        item = editor.state.find_image(image_id)
        assert (item.w, item.h) == (100, 50)

    def test_remove_and_undo_keeps_raster(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(50, 50, GREEN)])
        assert editor.remove_layer(image_id)
        assert editor.selection == NO_SELECTION
        assert editor.remove_layer(image_id) is False
        editor.undo()
        assert editor.state.find_image(image_id) is not None
        item = editor.state.find_image(image_id)
        pixel = np.asarray(editor.export_image())[int(item.y) + 5, int(item.x) + 5]
        assert tuple(int(v) for v in pixel) == GREEN


class TestCanvas:
    def test_rotate_canvas_wraps(self, editor):
        assert editor.rotate_canvas_by(-90) == 270
        assert editor.rotate_canvas_by(180) == 90
        editor.undo()
        assert editor.state.rotation_deg == 270

    def test_add_space_only_for_padded_frames(self, editor, padded_editor):
        assert editor.add_space() is False
        assert padded_editor.add_space()
        assert padded_editor.frame.height == 400
        for _ in range(30):
            padded_editor.add_space()
        assert padded_editor.state.padding.bottom == 2000

    def test_set_padding_clamps(self, padded_editor):
        padding = padded_editor.set_padding(top=-5, left=5000)
        assert (padding.top, padding.left) == (0, 2000)
        assert padded_editor.frame.base_x == 2000

    def test_invalid_background_color_is_ignored(self, editor):
        assert editor.set_background_color("#123456")
        assert editor.set_background_color("nope") is False
        assert editor.state.background_color == "#123456"

    def test_non_finite_rotation_is_ignored(self, padded_editor):
        before = len(padded_editor.history)
        assert padded_editor.rotate_canvas_by(float("inf")) == 0
        assert padded_editor.rotate_canvas_by(float("nan")) == 0
        assert len(padded_editor.history) == before
        size = padded_editor.display_size()
        assert (size.w, size.h) == (400, 300)
        padded_editor.render_preview()

    def test_non_finite_padding_sides_are_ignored(self, padded_editor):
        padding = padded_editor.set_padding(top=float("nan"), bottom=float("inf"), left=10)
        assert (padding.top, padding.bottom, padding.left) == (0, 0, 10)

    def test_padded_display_size_follows_rotation(self, padded_editor):

        padded_editor.rotate_canvas_by(90)
        size = padded_editor.display_size()
        assert (size.w, size.h) == (300, 400)

    def test_clear_strokes(self, editor):
        assert editor.clear_strokes() is False


class TestToolsAndSelection:
    def test_set_tool_validates(self, editor):
        assert editor.set_tool("draw") is EditorTool.DRAW
        with pytest.raises(ValueError):
            editor.set_tool("lasso")

    def test_set_brush_clamps_and_ignores_bad_colors(self, editor):
        assert editor.set_brush(color="#00ff00", size=500) == ("#00ff00", 128)
        assert editor.set_brush(color="bogus", size=0) == ("#00ff00", 1)
        assert editor.set_brush(size=float("nan")) == ("#00ff00", 1)


    def test_select_and_getters(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(10, 10)])
        text_id = editor.add_text()
        assert editor.get_selected_text().id == text_id
        assert editor.get_selected_image() is None
        editor.select(image_id)
        assert editor.get_selected_image().id == image_id
        assert editor.get_selected_text() is None
        editor.select("missing")
        assert editor.selection == NO_SELECTION

    def test_remove_selected_respects_text_edit_mode(self, editor):
        text_id = editor.add_text()
        assert editor.remove_selected() is False
        editor.end_text_edit()
        assert editor.remove_selected()
        assert editor.state.find_text(text_id) is None

    def test_nudge_and_wheel(self, editor, solid_image):
        (image_id,) = editor.add_images([solid_image(100, 50)])
        assert editor.nudge_selected(10, 0)
        assert editor.state.find_image(image_id).x == 160
        assert editor.wheel_resize_selected(1)
        assert editor.state.find_image(image_id).w == pytest.approx(95)
        text_id = editor.add_text()
        assert editor.wheel_resize_selected(-1)
        assert editor.state.find_text(text_id).size == 21
        assert editor.nudge_selected(float("inf"), 0) is False
        assert editor.wheel_resize_selected(float("nan")) is False
        assert editor.state.find_text(text_id).size == 21



class TestExportAndSave:
    def test_export_formats(self, editor):
        png = editor.export_raster("png")
        jpeg = editor.export_raster(RasterFormat.JPEG)
        assert png.startswith(b"\x89PNG")
        assert jpeg.startswith(b"\xff\xd8")
        assert editor.export_data_url("jpg").startswith("data:image/jpeg;base64,")
        assert asyncio.run(editor.export_raster_async("png")) == png

    def test_save_requires_publisher(self, editor):
        payload = editor.build_save_payload("meme")
        with pytest.raises(RuntimeError):
            editor.save(payload)

    def test_save_hands_payload_to_publisher(self, editor):
        publisher = Mock(return_value="meme-1")
        editor.publisher = publisher
        payload = editor.build_save_payload("meme", ["gm", "wagmi"])
        assert editor.save(payload) == "meme-1"
        sent = publisher.call_args.args[0]
        assert isinstance(sent, SavePayload)
        assert sent.category == "meme"
        assert sent.labels == ("gm", "wagmi")
        assert sent.raster.startswith(b"\x89PNG")

    def test_no_payload_without_template(self, measurer):
        assert MemeEditor(measurer=measurer).build_save_payload("meme") is None

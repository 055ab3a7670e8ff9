from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from memelytics.domain.services.meme_editor import MemeEditor

# synchronous editing operations reachable by name, with their accepted arguments
COMMANDS: dict[str, frozenset[str]] = {
    "set_tool": frozenset({"tool"}),
    "set_brush": frozenset({"color", "size"}),
    "add_text": frozenset(),
    "update_text": frozenset({"text_id", "text", "x", "y", "size", "color", "font", "rotation_deg"}),
    "begin_text_edit": frozenset({"text_id"}),
    "end_text_edit": frozenset(),
    "remove_layer": frozenset({"layer_id"}),
    "scale_image": frozenset({"image_id", "factor"}),
    "reset_size": frozenset({"image_id"}),
    "bring_forward": frozenset({"layer_id"}),
    "send_backward": frozenset({"layer_id"}),
    "rotate_canvas_by": frozenset({"delta_deg"}),
    "add_space": frozenset(),
    "set_padding": frozenset({"top", "right", "bottom", "left"}),
    "set_background_color": frozenset({"color"}),
    "clear_strokes": frozenset(),
    "select": frozenset({"layer_id"}),
    "clear_selection": frozenset(),
    "undo": frozenset(),
    "redo": frozenset(),
}


def _plain(value: Any) -> Any:
    """Reduce editor return values to JSON friendly data."""
    if isinstance(value, (bool, int, float, str)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "value"):  # enums
        return value.value
    # states, selections and padding are reported through the state payload
    return None


@dataclass
class ApplyEditorCommandUseCase:
    editor: MemeEditor

    def execute(self, command: str, args: dict[str, Any] | None = None) -> Any:
        """
        Run one named editing operation.

        Raises:
            ValueError: For unknown commands, unexpected or missing arguments
        """
        args = dict(args or {})
        allowed = COMMANDS.get(command)
        if allowed is None:
            raise ValueError(f"Unknown command: {command}")
        unexpected = set(args) - allowed
        if unexpected:
            raise ValueError(f"Unexpected arguments for {command}: {', '.join(sorted(unexpected))}")
        operation = getattr(self.editor, command)
        try:
            if command == "update_text":
                text_id = args.pop("text_id")
                return _plain(operation(text_id, **args))
            return _plain(operation(**args))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid arguments for {command}: {exc}") from exc

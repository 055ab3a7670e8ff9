from __future__ import annotations

from dataclasses import dataclass

from memelytics.domain.entities.editor_state import LayerKind


@dataclass(frozen=True)
class Selection:
    """The single selected layer, if any. Lives beside the snapshot, not in it."""

    kind: LayerKind | None = None
    layer_id: str | None = None
    editing: bool = False  # inline text-edit mode

    @property
    def empty(self) -> bool:
        return self.layer_id is None

    def is_text(self, layer_id: str | None = None) -> bool:
        return self.kind is LayerKind.TEXT and (layer_id is None or self.layer_id == layer_id)

    def is_image(self, layer_id: str | None = None) -> bool:
        return self.kind is LayerKind.IMAGE and (layer_id is None or self.layer_id == layer_id)


NO_SELECTION = Selection()

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from memelytics.domain.entities.editor_state import EditorState
from memelytics.domain.services.meme_editor import MemeEditor


class CreateSessionRequest(BaseModel):
    policy: Literal["fixed", "padded"] | None = Field(
        None, description="Content frame policy; defaults to MEMELYTICS_FRAME_POLICY"
    )


REMOTE_SCHEMES = ("http://", "https://", "data:image/")


def _remote_only(url: str) -> str:
    # local paths are never accepted from clients
    if not url.startswith(REMOTE_SCHEMES):
        raise ValueError("Only http(s) and data:image URLs are accepted")
    return url


class TemplateUrlRequest(BaseModel):
    url: str = Field(..., description="http(s) or data: URL of the template image")

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _remote_only(value)


class AddImagesRequest(BaseModel):
    urls: list[str] = Field(..., min_length=1, description="http(s) or data: URLs of overlay images")

    @field_validator("urls")
    @classmethod
    def _check_urls(cls, value: list[str]) -> list[str]:
        return [_remote_only(u) for u in value]


class RectModel(BaseModel):
    """On-screen rectangle the preview is displayed in (client pixels)."""
    left: float = 0.0
    top: float = 0.0
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class InputEventModel(BaseModel):
    """One pointer, key or wheel event.

    Pointer events need ``kind``, ``client_x``, ``client_y`` and ``rect``; key
    events need ``key``; wheel events need ``delta_y``.
    """
    type: Literal["pointer", "key", "wheel"]
    kind: Literal["down", "move", "up", "cancel"] | None = None
    client_x: float = 0.0
    client_y: float = 0.0
    rect: RectModel | None = None
    key: str | None = None
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False
    delta_y: float = 0.0


class InputEventsRequest(BaseModel):
    events: list[InputEventModel] = Field(..., min_length=1)


class InputEventsResponse(BaseModel):
    handled: list[bool] = Field(..., description="Per event: whether it changed the editor")
    state: EditorStateResponse


class CommandRequest(BaseModel):
    command: str = Field(..., description="Editing API operation name", examples=["add_text"])
    args: dict[str, Any] = Field(default_factory=dict, description="Keyword arguments of the operation")


class CommandResponse(BaseModel):
    result: Any = Field(None, description="Return value of the operation (ids, booleans)")
    state: EditorStateResponse


class SaveFromEditorRequest(BaseModel):
    category: str = Field(..., min_length=1, examples=["meme"])
    tags: list[str] = Field(default_factory=list)
    format: Literal["png", "jpeg", "jpg"] = "png"


class TextLayer(BaseModel):
    id: str
    text: str
    x: float
    y: float
    size: int
    color: str
    font: str
    rotation_deg: float


class ImageLayer(BaseModel):
    id: str
    x: float
    y: float
    w: float
    h: float


class StrokeLayer(BaseModel):
    id: str
    color: str
    size: int
    points: list[tuple[float, float]]


class SelectionModel(BaseModel):
    kind: str | None = None
    layer_id: str | None = None
    editing: bool = False


class EditorStateResponse(BaseModel):
    session_id: str
    policy: str
    has_template: bool
    frame: tuple[int, int] = Field(..., description="Content frame (width, height)")
    display: tuple[int, int] = Field(..., description="Preview buffer (width, height)")
    rotation_deg: float
    background_color: str
    padding: dict[str, int]
    texts: list[TextLayer]
    images: list[ImageLayer]
    strokes: list[StrokeLayer]
    selection: SelectionModel
    tool: str
    brush: dict[str, Any]
    can_undo: bool
    can_redo: bool

    @classmethod
    def from_editor(cls, session_id: str, editor: MemeEditor) -> EditorStateResponse:
        state: EditorState = editor.state
        frame = editor.frame
        display = editor.display_size()
        selection = editor.selection
        color, size = editor.brush
        return cls(
            session_id=session_id,
            policy=editor.policy.value,
            has_template=editor.has_template,
            frame=(frame.width, frame.height),
            display=(display.w, display.h),
            rotation_deg=state.rotation_deg,
            background_color=state.background_color,
            padding={
                "top": state.padding.top,
                "right": state.padding.right,
                "bottom": state.padding.bottom,
                "left": state.padding.left,
            },
            texts=[
                TextLayer(
                    id=t.id,
                    text=t.text,
                    x=t.x,
                    y=t.y,
                    size=t.size,
                    color=t.color,
                    font=t.font,
                    rotation_deg=t.rotation_deg,
                )
                for t in state.texts
            ],
            images=[ImageLayer(id=i.id, x=i.x, y=i.y, w=i.w, h=i.h) for i in state.images],
            strokes=[
                StrokeLayer(id=s.id, color=s.color, size=s.size, points=[(p.x, p.y) for p in s.points])
                for s in state.strokes
            ],
            selection=SelectionModel(
                kind=selection.kind.value if selection.kind else None,
                layer_id=selection.layer_id,
                editing=selection.editing,
            ),
            tool=editor.tool.value,
            brush={"color": color, "size": size},
            can_undo=editor.can_undo,
            can_redo=editor.can_redo,
        )


InputEventsResponse.model_rebuild()
CommandResponse.model_rebuild()

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response

from memelytics.application.dtos.common_dto import ErrorResponse, MessageResponse
from memelytics.application.dtos.editor_dto import (
    AddImagesRequest,
    CommandRequest,
    CommandResponse,
    CreateSessionRequest,
    EditorStateResponse,
    InputEventModel,
    InputEventsRequest,
    InputEventsResponse,
    SaveFromEditorRequest,
    TemplateUrlRequest,
)
from memelytics.application.dtos.meme_dto import SaveMemeResponse
from memelytics.application.use_cases.apply_editor_command import ApplyEditorCommandUseCase
from memelytics.application.use_cases.save_meme import SaveMemeUseCase
from memelytics.application.use_cases.upload_asset import max_upload_bytes
from memelytics.domain.services.compositor import RasterFormat, encode_raster
from memelytics.domain.services.geometry import CanvasRect
from memelytics.domain.services.input_router import (
    InputRouter,
    KeyEvent,
    PointerEvent,
    PointerKind,
    WheelEvent,
)
from memelytics.domain.services.meme_editor import SavePayload
from memelytics.infrastructure.api.dependencies import (
    get_current_wallet,
    get_meme_repo,
    get_sessions,
    get_storage,
    get_user_repo,
)
from memelytics.infrastructure.database.repositories.meme_repository import MemeRepository
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.sessions.session_registry import EditorSession, SessionRegistry
from memelytics.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/editor/sessions",
    tags=["Canvas Editor"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing wallet session token"},
        404: {"model": ErrorResponse, "description": "Not Found - Session does not exist, expired, or belongs to another wallet"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)

NO_TEMPLATE = "No template loaded"


def _session(sessions: SessionRegistry, session_id: str, wallet) -> EditorSession:
    try:
        return sessions.get(session_id, wallet.wallet_address)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _state(session: EditorSession) -> EditorStateResponse:
    return EditorStateResponse.from_editor(session.id, session.editor)


async def _read_limited(file: UploadFile) -> bytes:
    limit = max_upload_bytes()
    data = await file.read(limit + 1)
    if not data:
        raise HTTPException(status_code=400, detail="No file provided")
    if len(data) > limit:
        raise HTTPException(status_code=400, detail=f"File size exceeds {limit // (1024 * 1024)}MB")
    return data


def _dispatch(router_: InputRouter, event: InputEventModel) -> bool:
    if event.type == "pointer":
        if event.kind is None or event.rect is None:
            raise ValueError("Pointer events need kind and rect")
        rect = CanvasRect(
            left=event.rect.left, top=event.rect.top, width=event.rect.width, height=event.rect.height
        )
        return router_.handle_pointer(PointerEvent(PointerKind(event.kind), event.client_x, event.client_y, rect))
    if event.type == "key":
        if not event.key:
            raise ValueError("Key events need key")
        return router_.handle_key(
            KeyEvent(key=event.key, ctrl=event.ctrl, meta=event.meta, shift=event.shift, alt=event.alt)
        )
    return router_.handle_wheel(WheelEvent(delta_y=event.delta_y))


@router.post(
    "",
    response_model=EditorStateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open Editor Session",
    description="""
    Start a new canvas editing session owned by the signed-in wallet.

    **Frame policies:**
    - `fixed`: the canvas is the template's natural size
    - `padded`: the template plus an adjustable padding box; canvas rotation
      expands the preview
    """,
)
async def create_session(
    payload: CreateSessionRequest | None = None,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = sessions.create(wallet.wallet_address, payload.policy if payload else None)
    return _state(session)


@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    summary="Close Editor Session",
)
async def delete_session(
    session_id: str,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    sessions.delete(session.id)
    return MessageResponse(message="Session closed")


@router.get(
    "/{session_id}",
    response_model=EditorStateResponse,
    summary="Get Editor State",
    description="Layers, selection, tool, frame and undo/redo availability of the session.",
)
async def get_state(
    session_id: str,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    return _state(_session(sessions, session_id, wallet))


@router.post(
    "/{session_id}/template",
    response_model=EditorStateResponse,
    summary="Load Template From File",
    description="""
    Decode an uploaded image (first frame for animated formats) and install it
    as the base template. Layers and history are reset only when decoding
    succeeds.
    """,
    responses={400: {"description": "Bad Request - File could not be decoded"}},
)
async def load_template_file(
    session_id: str,
    file: UploadFile = File(..., description="Template image"),
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    data = await _read_limited(file)
    if not await session.editor.load_template(data):
        raise HTTPException(status_code=400, detail="Template could not be decoded")
    return _state(session)


@router.post(
    "/{session_id}/template/url",
    response_model=EditorStateResponse,
    summary="Load Template From URL",
    responses={400: {"description": "Bad Request - URL could not be fetched or decoded"}},
)
async def load_template_url(
    session_id: str,
    payload: TemplateUrlRequest,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    if not await session.editor.load_template(payload.url):
        raise HTTPException(status_code=400, detail="Template could not be decoded")
    return _state(session)


@router.post(
    "/{session_id}/images",
    response_model=CommandResponse,
    summary="Add Overlay Images From URLs",
    description="""
    Decode each source and append it as a front-most overlay, scaled down to
    fit the canvas (never up) and centered. Sources that fail to decode are
    skipped. `result` lists the new layer ids; the last one is selected.
    """,
)
async def add_images(
    session_id: str,
    payload: AddImagesRequest,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    ids = await session.editor.add_image_sources(payload.urls)
    return CommandResponse(result=ids, state=_state(session))


@router.post(
    "/{session_id}/images/upload",
    response_model=CommandResponse,
    summary="Add Overlay Images From Files",
)
async def upload_images(
    session_id: str,
    files: list[UploadFile] = File(..., description="Overlay images"),
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    sources = [await _read_limited(f) for f in files]
    ids = await session.editor.add_image_sources(sources)
    return CommandResponse(result=ids, state=_state(session))


@router.post(
    "/{session_id}/events",
    response_model=InputEventsResponse,
    summary="Apply Input Events",
    description="""
    Feed pointer, keyboard and wheel events in order, exactly as a browser
    would deliver them. Pointer coordinates are client pixels relative to the
    `rect` the preview is displayed in.

    A drag, rotate, resize or draw gesture becomes one undo step when its
    `up` (or `cancel`) event arrives.
    """,
    responses={400: {"description": "Bad Request - Incomplete event"}},
)
async def apply_events(
    session_id: str,
    payload: InputEventsRequest,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    try:
        handled = [_dispatch(session.router, event) for event in payload.events]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return InputEventsResponse(handled=handled, state=_state(session))


@router.post(
    "/{session_id}/commands",
    response_model=CommandResponse,
    summary="Apply Editing Command",
    description="""
    Invoke one editing operation by name, e.g. `add_text`, `update_text`,
    `scale_image`, `bring_forward`, `send_backward`, `reset_size`,
    `rotate_canvas_by`, `add_space`, `set_padding`, `set_background_color`,
    `set_tool`, `set_brush`, `undo`, `redo`.
    """,
    responses={400: {"description": "Bad Request - Unknown command or invalid arguments"}},
)
async def apply_command(
    session_id: str,
    payload: CommandRequest,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    try:
        result = ApplyEditorCommandUseCase(editor=session.editor).execute(payload.command, payload.args)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CommandResponse(result=result, state=_state(session))


@router.get(
    "/{session_id}/preview",
    summary="Render Preview",
    description="PNG of the live canvas, with selection guides unless `guides=false`.",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
async def preview(
    session_id: str,
    guides: bool = Query(True, description="Draw selection guides"),
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    image = session.editor.render_preview(guides=guides)
    return Response(content=encode_raster(image, RasterFormat.PNG), media_type="image/png")


@router.get(
    "/{session_id}/export",
    summary="Export Meme",
    description="""
    Final raster without guides. PNG is lossless, JPEG uses quality 95.
    With `as_data_url=true` the response is JSON `{"data_url": ...}`.
    """,
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "image/jpeg": {}, "application/json": {}}},
        400: {"description": "Bad Request - Unsupported format"},
        409: {"description": "Conflict - No template loaded"},
    },
)
async def export(
    session_id: str,
    format: str = Query("png", description="png or jpeg"),
    as_data_url: bool = Query(False, description="Return an embeddable data URL"),
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = _session(sessions, session_id, wallet)
    try:
        fmt = RasterFormat.parse(format)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if as_data_url:
        data_url = session.editor.export_data_url(fmt)
        if data_url is None:
            raise HTTPException(status_code=409, detail=NO_TEMPLATE)
        return JSONResponse({"data_url": data_url})
    payload = await session.editor.export_raster_async(fmt)
    if payload is None:
        raise HTTPException(status_code=409, detail=NO_TEMPLATE)
    return Response(content=payload, media_type=fmt.mime_type)


@router.post(
    "/{session_id}/save",
    response_model=SaveMemeResponse,
    summary="Save Meme From Session",
    description="Export the canvas and store it as a meme of the signed-in wallet.",
    responses={
        404: {"description": "Not Found - Session missing or the wallet has no user record"},
        409: {"description": "Conflict - No template loaded"},
    },
)
async def save_session(
    session_id: str,
    payload: SaveFromEditorRequest,
    wallet=Depends(get_current_wallet),
    sessions: SessionRegistry = Depends(get_sessions),
    storage: SupabaseStorage = Depends(get_storage),
    memes: MemeRepository = Depends(get_meme_repo),
    users: UserRepository = Depends(get_user_repo),
):
    session = _session(sessions, session_id, wallet)
    editor = session.editor
    save_payload = editor.build_save_payload(payload.category, payload.tags, payload.format)
    if save_payload is None:
        raise HTTPException(status_code=409, detail=NO_TEMPLATE)
    use_case = SaveMemeUseCase(storage=storage, memes=memes, users=users)
    saved: dict[str, str] = {}

    def publish(p: SavePayload) -> str:
        meme = use_case.execute(
            wallet_address=wallet.wallet_address,
            raster=p.raster,
            category=p.category,
            tags=p.labels,
            fmt=p.format,
        )
        saved["image_url"] = meme.image_url
        return meme.id

    editor.publisher = publish
    try:
        meme_id = editor.save(save_payload)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SaveMemeResponse(meme_id=meme_id, image_url=saved.get("image_url"))

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from memelytics.application.dtos.common_dto import HealthResponse, RootResponse
from memelytics.infrastructure.api.middlewares import add_default_middlewares
from memelytics.infrastructure.api.routes.editor_routes import router as editor_router
from memelytics.infrastructure.api.routes.meme_routes import router as meme_router
from memelytics.infrastructure.api.routes.upload_routes import local_storage_router
from memelytics.infrastructure.api.routes.upload_routes import router as upload_router
from memelytics.infrastructure.api.routes.user_routes import router as user_router
from memelytics.infrastructure.database.postgres_client import get_postgres_client

SERVICE_NAME = "memelytics"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # local PostgreSQL only: create tables on boot, release the pool on shutdown
    pg = get_postgres_client()
    if pg is not None:
        pg.apply_schema()
    yield
    if pg is not None:
        pg.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Memelytics",
        version="0.1.0",
        lifespan=lifespan,
        description="""
        ## Memelytics API

        Wallet-authenticated meme composition. A server-side canvas engine
        composites a template image with overlay images, rotatable text and
        freehand strokes, keeps a gesture-level undo/redo history, and exports
        the result pixel-identical to the preview minus selection guides.

        ### Features
        - **Canvas editor sessions**: pointer/keyboard/wheel input, named
          editing commands, PNG preview, PNG/JPEG export
        - **Memes**: save exports, list a wallet's memes, count downloads and shares
        - **Uploads**: raw template/sticker uploads to public storage

        ### Authentication
        All endpoints except root, health and user lookup require the wallet
        session token as a Bearer token:
        ```
        Authorization: Bearer <wallet-session-token>
        ```

        ### Error Responses
        - **400 Bad Request**: Invalid parameters, undecodable images, unknown commands
        - **401 Unauthorized**: Missing or invalid token
        - **404 Not Found**: Unknown user, meme or editor session
        - **409 Conflict**: Export or save without a loaded template
        - **422 Unprocessable Entity**: Validation error in request body
        - **500 Internal Server Error**: Storage or database failure
        """,
    )
    add_default_middlewares(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Basic information about the Memelytics API",
    )
    def root():
        return RootResponse(status="ok", service=SERVICE_NAME, version=app.version)

    @app.get("/health", response_model=HealthResponse, summary="Health Check")
    def health():
        return HealthResponse(status="healthy")

    app.include_router(user_router)
    app.include_router(meme_router)
    app.include_router(upload_router)
    app.include_router(editor_router)
    app.include_router(local_storage_router)
    return app


app = create_app()

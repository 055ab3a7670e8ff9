from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def add_default_middlewares(app: FastAPI) -> None:
    env = os.getenv("ENV", "development")
    if env in ("development", "staging"):
        allowed_origins = DEV_ORIGINS
    else:
        # comma separated list; the wallet frontend's own origin in production
        configured = os.getenv("CORS_ORIGINS", "")
        allowed_origins = [o.strip() for o in configured.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

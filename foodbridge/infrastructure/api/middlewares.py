from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def add_default_middlewares(app: FastAPI) -> None:
    env = os.getenv("ENV", "development")

    if env in ("development", "staging"):
        allowed_origins = DEV_ORIGINS
    else:
        # Production: the deployed frontend origin(s), comma separated
        allowed_origins = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", os.getenv("SITE_URL", "")).split(",") if origin.strip()
        ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

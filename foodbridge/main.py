from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from foodbridge.infrastructure.api.dependencies import build_synchronizer
from foodbridge.infrastructure.api.middlewares import add_default_middlewares
from foodbridge.infrastructure.api.routes.session_routes import router as session_router

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sync = build_synchronizer()
    with sync:
        app.state.session = sync
        logger.info("Session synchronizer started (user=%s)", sync.current_user.id if sync.current_user else None)
        try:
            yield
        finally:
            app.state.session = None
    logger.info("Session synchronizer closed")


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="FoodBridge Backend",
        version="0.1.0",
        description="""
        ## FoodBridge Backend API

        Session service for the FoodBridge food donation platform, connecting
        food donors with receivers such as NGOs, shelters and community
        kitchens. Supabase provides auth (password and Google OAuth) and the
        `profiles` table.

        ### Features
        - **Session sync**: Keeps the signed-in user's profile in step with the Supabase session
        - **Provisioning**: Creates a profile for every new signup
        - **Profiles**: Partial profile updates that mark the profile complete

        ### Error Responses
        - **400 Bad Request**: Constraint violation, e.g. a duplicate email
        - **401 Unauthorized**: Rejected credentials, or a missing or stale bearer token
        - **422 Unprocessable Entity**: Validation error in request body
        - **503 Service Unavailable**: Supabase or the database could not be reached
        """,
        lifespan=lifespan,
    )
    add_default_middlewares(app)

    @app.get(
        "/",
        summary="API Root",
        description="Get basic information about the FoodBridge API",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "foodbridge-backend", "version": app.version}

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the API service is running and healthy",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(session_router)
    return app


app = create_app()

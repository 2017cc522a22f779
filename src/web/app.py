"""
FastAPI application factory for the live face monitor.

Routes:
- /api/status -> pipeline status (state, message, detection count, stats)
- /api/snapshot.jpg -> latest overlay frame
- /api/stream -> MJPEG overlay stream
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Live Face Monitor",
        version="0.1.0",
        description="Live camera feed with face detection overlay",
    )

    # CORS for the dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    return app

"""FastAPI application entry point."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routes import router
from core.config import Settings, load_config
from core.errors import (
    InvalidTransition,
    NoNextRound,
    NotFoundError,
    TrackerError,
    TransportError,
    ValidationError,
)
from tracker.service import TrackerServices, open_services

ERROR_STATUS: list[tuple[type[TrackerError], int]] = [
    (NotFoundError, 404),
    (NoNextRound, 409),
    (InvalidTransition, 409),
    (ValidationError, 422),
    (TransportError, 502),
]


def error_status(error: TrackerError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    services: TrackerServices | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the app. Without ``services`` they are opened from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            app.state.services = services
            yield
            return
        loaded, tracker = load_config(settings=settings)
        async with AsyncExitStack() as stack:
            app.state.services = await stack.enter_async_context(
                open_services(loaded, tracker)
            )
            yield

    app = FastAPI(
        title="Round Tracker API",
        description="API for tracking candidate progression through interview rounds",
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # CORS middleware for dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
        return JSONResponse(
            status_code=error_status(exc),
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Round Tracker API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    app.include_router(router)
    return app


app = create_app()

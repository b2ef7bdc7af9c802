"""
PitLane: FastAPI application entrypoint.
Wires routers, middleware and exception handlers, and runs the image draft
expiry sweep for the lifetime of the process.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from pitlane.api import uploads
from pitlane.api.v1.image_drafts import limiter
from pitlane.api.v1.router import api_router
from pitlane.core.config import settings
from pitlane.core.exceptions import register_exception_handlers
from pitlane.db.session import engine
from pitlane.services.draft_registry import get_draft_registry, sweep_periodically

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Sweep expired drafts while running; close every open draft on shutdown."""
    registry = get_draft_registry()
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    sweeper = asyncio.create_task(
        sweep_periodically(registry, settings.IMAGE_DRAFT_SWEEP_INTERVAL_SECONDS)
    )
    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.APP_NAME)
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        registry.close_all()
        await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Drive logs and pitstops for car enthusiasts, with draft-based "
            "pitstop image uploads."
        ),
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # The upload route's limiter doubles as the app-wide one
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(uploads.router)

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check() -> dict[str, str]:
        return {"status": "ok", "service": settings.APP_NAME}

    return app


app = create_application()

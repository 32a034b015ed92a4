# src/notestage/main.py
"""Main entry point and composition root for the note stage service.

Process-wide collaborators (cache, blob disk, event bus, delivery transport)
are created here once and handed to request-scoped services through
``app.state``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from notestage import __version__
from notestage.api.v1 import notes_router, posts_router, timeline_router
from notestage.core.settings import settings
from notestage.federation.dispatcher import ActivityDispatcher
from notestage.federation.transport import (
    DeliveryTransport,
    LoggingDeliveryTransport,
    RelayConfig,
    RelayDeliveryTransport,
)
from notestage.services.cache import KeyValueCache
from notestage.services.events import PostEventBus
from notestage.services.markup import MarkdownRenderer
from notestage.services.storage import LocalDisk

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_transport() -> DeliveryTransport:
    """Return the relay transport when one is configured, else a logging stub."""
    if not settings.delivery_enabled:
        logger.info("No delivery relay configured; outbound activities will only be logged")
        return LoggingDeliveryTransport()
    return RelayDeliveryTransport(
        RelayConfig(
            base_url=settings.delivery_relay_url,
            shared_secret=settings.delivery_shared_secret,
            audience=settings.delivery_audience,
            issuer=settings.federation_origin,
            token_ttl_seconds=settings.delivery_token_ttl_seconds,
            timeout_seconds=settings.delivery_http_timeout_seconds,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the delivery transport when the application stops."""
    yield
    await app.state.transport.close()


# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Note publishing, federation dispatch and timelines",
    version=__version__,
    lifespan=lifespan,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(notes_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(timeline_router, prefix="/api/v1")

app.mount("/media", StaticFiles(directory=settings.media_root, check_dir=False), name="media")

# Shared collaborators
app.state.cache = KeyValueCache.from_url(settings.redis_url)
app.state.disk = LocalDisk(settings.media_root, settings.media_base_url)
app.state.renderer = MarkdownRenderer(urlparse(settings.federation_origin).netloc)
app.state.events = PostEventBus()
app.state.transport = build_transport()
app.state.dispatcher = ActivityDispatcher(
    app.state.transport,
    origin=settings.federation_origin,
    canonical_origin=settings.effective_canonical_origin,
)
app.state.dispatcher.subscribe(app.state.events)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("notestage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

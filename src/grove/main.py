# src/grove/main.py
"""Main entry point for the Grove application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from grove.api.v1 import auth_router, posts_router, users_router
from grove.core.settings import settings
from grove.repositories.post_store import get_store
from grove.services.publishing import StorageUnavailable, ensure_root

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Grove API",
    description="Tree-structured publishing: posts, comments and accounts are all posts",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    try:
        await ensure_root(get_store(), settings.root_post_id, settings.root_post_content)
    except StorageUnavailable as exc:
        # Serve anyway; reads degrade to "not found" until the backend recovers.
        logger.error("Could not create the public root post: %s", exc)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_store().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "root_post_id": settings.root_post_id,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("grove.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

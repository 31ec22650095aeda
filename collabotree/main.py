"""CollaboTree API -- Main Application Entry Point

Creates the FastAPI application, configures logging and CORS middleware,
installs the error envelope handlers and registers all API route modules
under the /api/v1 prefix.

Run with::

    uvicorn collabotree.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collabotree.api.errors import register_exception_handlers
from collabotree.core.config import settings
from collabotree.core.logging import configure_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Configure logging.

    Shutdown:
      - Dispose the shared database engine's connection pool.
    """
    configure_logging()
    logger.info("%s %s starting", settings.app_name, settings.app_version)

    yield

    from collabotree.api.deps import engine

    await engine.dispose()
    logger.info("%s stopped", settings.app_name)


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness checks."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------
# Each router already defines its own prefix (e.g. /hires, /contracts) and
# tags.  We mount them under the shared /api/v1 prefix so the full paths
# become /api/v1/hires, /api/v1/contracts, etc.
# ---------------------------------------------------------------------------

from collabotree.api.routes import (  # noqa: E402
    auth,
    contracts,
    disputes,
    hires,
    notifications,
    orders,
    reviews,
    wallet,
)

_prefix = settings.api_v1_prefix

app.include_router(auth.router, prefix=_prefix)
app.include_router(hires.router, prefix=_prefix)
app.include_router(contracts.router, prefix=_prefix)
app.include_router(orders.router, prefix=_prefix)
app.include_router(disputes.router, prefix=_prefix)
app.include_router(reviews.router, prefix=_prefix)
app.include_router(wallet.router, prefix=_prefix)
app.include_router(notifications.router, prefix=_prefix)

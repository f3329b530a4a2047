"""
FastAPI application definition.

This module creates and configures the FastAPI application instance,
including logging, middleware and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modern_search import __version__
from modern_search.api.routes import router
from modern_search.api.sessions import get_session_registry
from modern_search.backend.client import get_search_client
from modern_search.core.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting Modern Search API against {settings.SEARCH_SITE_URL or '(no site configured)'}")

    # Startup: build the session registry and its shared date formatter
    registry = get_session_registry()
    logger.info(f"Formatting refinement dates for culture {registry.date_formatter.culture}")

    yield

    # Shutdown: close the search service connection pool
    logger.info("Shutting down Modern Search API")
    await get_search_client().aclose()


app = FastAPI(
    title="Modern Search API",
    description="Keyword search with refiners, synonyms and verticals",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for web part hosts
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routes
app.include_router(router)


@app.get("/ping")
async def ping():
    """Health check endpoint."""
    return {"message": "pong"}

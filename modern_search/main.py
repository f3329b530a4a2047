"""
Application entry point.

This module serves as the main entry point for running the
search API server using uvicorn.

Usage:
    python -m modern_search.main
"""

from uvicorn import run

from modern_search.core.config import settings

if __name__ == "__main__":
    run("modern_search.api.app:app", host=settings.API_HOST, port=settings.API_PORT, reload=True)

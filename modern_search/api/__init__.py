"""
API module for HTTP interface.

This module contains the FastAPI application and route definitions
for the search pipeline.

Endpoints:
- Health check
- Paged search with refiners
- Query suggestions
- Vertical result counts
"""

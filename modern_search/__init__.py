"""
Modern Search query pipeline.

Compiles a user-facing search request into a backend keyword-query
request, enriches and paginates the raw response, and supports
synonym-based query rewriting and multi-value refinement filtering.
"""

__version__ = "0.1.0"

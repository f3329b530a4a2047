"""
Retrieval module for keyword search with refiners.

This module handles the query-time workflow:
- Placeholder token resolution in query templates
- Synonym expansion of the query text
- Refinement filter construction from selected refiner values
- Query execution, page caching and pagination
- Result mapping, facet ordering and batch enrichment

The retrieval pipeline provides a unified interface for:
- Paged searches with refiners and promoted results
- Query suggestions
- Per-vertical result counts
"""

from modern_search.retrieval.enrichment import BatchEnricher
from modern_search.retrieval.pipeline import QueryOrchestrator
from modern_search.retrieval.query_processor import build_search_query
from modern_search.retrieval.refinement_builder import RefinementCompiler, get_refinement_compiler
from modern_search.retrieval.synonyms import SynonymExpander, build_synonym_table, expand_synonyms
from modern_search.retrieval.token_resolver import TokenContext, TokenResolver, get_token_resolver

__all__ = [
    "QueryOrchestrator",
    "BatchEnricher",
    "build_search_query",
    "RefinementCompiler",
    "get_refinement_compiler",
    "SynonymExpander",
    "build_synonym_table",
    "expand_synonyms",
    "TokenContext",
    "TokenResolver",
    "get_token_resolver",
]

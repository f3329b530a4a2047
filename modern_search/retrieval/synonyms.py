"""
Synonym-based query rewriting.

Free-text terms of a keyword query are rewritten into an OR-expansion
of the term and its synonyms:

    quarterly report  ->  quarterly ("report" OR "summary" OR "review")

Structured parts of the query (property restrictions, parenthesized
groups, exclusions and boolean operators) are never expanded.

Expansion is a plain textual replacement of the first occurrence of
each matched term that lies outside the structured parts of the query;
terms are not tracked by their position in the tokenized copy.
"""

import logging
import re
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from modern_search.core.schemas import SynonymEntry

logger = logging.getLogger(__name__)

# Lowercase term -> synonyms, in configuration order
SynonymTable = Mapping[str, Tuple[str, ...]]

EMPTY_TABLE: SynonymTable = MappingProxyType({})

# Exclusions, property restrictions, parenthesized groups and operators
STRUCTURED_QUERY_PATTERN = re.compile(
    r'(-\w+)|(-"\w+.*?")|(-?\w+[:=<>]+\w+)|(-?\w+[:=<>]+".*?")|((\w+)?\(.*?\))'
    r"|(\bAND\b)|(\bOR\b)|(\bNOT\b)"
)

# Quoted phrases or whitespace-delimited words
QUERY_PART_PATTERN = re.compile(r'("[^"]+"|[^"\s]+)')


def _split_synonyms(value: str) -> List[str]:
    synonyms = [v.lower().strip().replace('"', "") for v in value.split(",")]
    return [s for s in synonyms if s]


def build_synonym_table(entries: Optional[Iterable[SynonymEntry]]) -> SynonymTable:
    """
    Build the lookup table used by SynonymExpander.

    Each term maps to its synonyms (lowercased, trimmed, unquoted). A
    two-way entry also maps every synonym to the term and the other
    synonyms. Later entries override earlier ones for the same key.

    Args:
        entries: Configured synonym entries

    Returns:
        A read-only table, rebuilt whenever the configuration changes
    """
    table: Dict[str, Tuple[str, ...]] = {}

    for entry in entries or []:
        term = entry.term.lower().strip()
        if not term:
            continue
        synonyms = _split_synonyms(entry.synonyms)
        table[term] = tuple(synonyms)

        if entry.two_ways:
            group = synonyms + [term]
            for synonym in synonyms:
                table[synonym] = tuple(s for s in group if s != synonym)

    logger.debug(f"Built synonym table with {len(table)} keys")
    return MappingProxyType(table)


def format_synonym(value: str) -> str:
    """Quote a term as a single phrase: ' "big data" ' -> '"big data"'."""
    value = value.strip().replace('"', "").strip()
    return f'"{value}"'


def format_synonyms(items: Sequence[str]) -> str:
    """Join quoted synonyms with OR, skipping empty ones."""
    return " OR ".join(format_synonym(item) for item in items if item)


def strip_structured_query(query: str) -> str:
    """Remove the parts of a query that must never be expanded."""
    return STRUCTURED_QUERY_PATTERN.sub("", query)


def _free_text_position(query: str, part: str) -> int:
    """Index of the first occurrence of `part` outside every structured span, or -1."""
    structured_spans = [match.span() for match in STRUCTURED_QUERY_PATTERN.finditer(query)]

    start = query.find(part)
    while start != -1:
        end = start + len(part)
        if not any(start < span_end and span_start < end for span_start, span_end in structured_spans):
            return start
        start = query.find(part, start + 1)
    return -1


def expand_synonyms(query: str, table: Optional[SynonymTable]) -> str:
    """
    Rewrite the free-text terms of a query with their synonyms.

    Each matched term is replaced at its first occurrence that lies outside
    the structured parts of the query, so a property restriction holding
    the same text is left untouched.

    Args:
        query: Keyword query as typed by the user
        table: Synonym lookup table (see build_synonym_table)

    Returns:
        The rewritten query; the input unchanged if no term matches
    """
    if not table or not query:
        return query

    # Terms are taken from a copy without structured parts, then replaced
    # in the query as typed
    query_parts = QUERY_PART_PATTERN.findall(strip_structured_query(query))

    for part in query_parts:
        synonyms = table.get(part.strip('"').lower())
        if not synonyms:
            continue
        position = _free_text_position(query, part)
        if position == -1:
            continue
        expansion = f"({format_synonym(part)} OR {format_synonyms(synonyms)})"
        query = query[:position] + expansion + query[position + len(part):]

    return query


class SynonymExpander:
    """Query rewriter bound to one synonym table."""

    def __init__(self, table: Optional[SynonymTable] = None):
        self.table: SynonymTable = table if table is not None else EMPTY_TABLE

    @classmethod
    def from_entries(cls, entries: Optional[Iterable[SynonymEntry]]) -> "SynonymExpander":
        return cls(build_synonym_table(entries))

    def expand(self, query: str) -> str:
        return expand_synonyms(query, self.table)

"""
Refinement filter construction from selected refiner values.

This module converts the RefinementFilter objects selected by the user
into FQL refinement conditions for the search request.
"""

import logging
from typing import List, Optional, Sequence
from urllib.parse import quote

from modern_search.core.schemas import RefinementFilter

logger = logging.getLogger(__name__)

# Marker of hex-encoded taxonomy refinement tokens
TAXONOMY_TOKEN_MARKER = "ǂǂ"

# Characters left as is by percent-encoding (same set as encodeURIComponent)
_URI_COMPONENT_SAFE = "-_.!~*'()"


class RefinementCompiler:
    """
    Builds FQL refinement conditions from selected filters.

    One condition is produced per filter, in input order:
    - single value: the token as is, e.g. Author:jdoe
    - several values: FileType:OR(docx,pdf), using the filter's operator

    Filters without values produce no condition.
    """

    def build(self, filters: Sequence[RefinementFilter], encode_tokens: bool = False) -> List[str]:
        """
        Build refinement conditions.

        Args:
            filters: Selected refinement filters
            encode_tokens: Percent-encode (UTF-8) taxonomy tokens, needed when
                the conditions travel in a GET query string

        Returns:
            One condition string per non-empty filter
        """
        conditions: List[str] = []

        for refinement_filter in filters:
            tokens = [
                self._encode_token(value.token, encode_tokens)
                for value in refinement_filter.values
            ]

            if len(tokens) > 1:
                # The operator comes from the refiner template: AND for
                # multi-value fields, OR for mutually exclusive values
                conditions.append(
                    f"{refinement_filter.filter_name}:"
                    f"{refinement_filter.operator.value}({','.join(tokens)})"
                )
            elif len(tokens) == 1:
                conditions.append(f"{refinement_filter.filter_name}:{tokens[0]}")
            else:
                logger.debug(f"Skipping refinement filter without values: {refinement_filter.filter_name}")

        return conditions

    @staticmethod
    def _encode_token(token: str, encode_tokens: bool) -> str:
        if encode_tokens and TAXONOMY_TOKEN_MARKER in token:
            return quote(token, safe=_URI_COMPONENT_SAFE)
        return token


# Module-level singleton
_refinement_compiler: Optional[RefinementCompiler] = None


def get_refinement_compiler() -> RefinementCompiler:
    """Get or create the singleton RefinementCompiler instance."""
    global _refinement_compiler
    if _refinement_compiler is None:
        _refinement_compiler = RefinementCompiler()
    return _refinement_compiler

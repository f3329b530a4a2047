"""
In-memory search sessions.

Each session owns a QueryOrchestrator, and with it the page-1 response
cache used to turn pages. Nothing is persisted: sessions are kept in a
bounded TTL cache, so idle sessions expire and the least recently used
one is dropped when the registry is full.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from cachetools import TTLCache

from modern_search.backend.client import SearchBackendClient, get_search_client
from modern_search.core.config import settings
from modern_search.core.formatting import DateFormatter
from modern_search.core.schemas import SynonymEntry
from modern_search.retrieval.pipeline import QueryOrchestrator
from modern_search.retrieval.synonyms import SynonymExpander

logger = logging.getLogger(__name__)

SynonymKey = List[Tuple[str, str, bool]]


class SessionRegistry:
    """Maps session ids to their orchestrator."""

    def __init__(
        self,
        client: Optional[SearchBackendClient] = None,
        date_formatter: Optional[DateFormatter] = None,
        max_sessions: Optional[int] = None,
        session_ttl: Optional[float] = None,
        timer: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the registry.

        Args:
            client: Search service client (default: shared client, created on first use)
            date_formatter: Formatter shared by every session (default: one for the configured culture)
            max_sessions: Maximum number of live sessions (default: from settings)
            session_ttl: Seconds a session lives after its last use (default: from settings)
            timer: Clock used for expiry, for tests
        """
        self._client = client
        self.date_formatter = date_formatter or DateFormatter()

        cache_options = {"timer": timer} if timer is not None else {}
        self._sessions: "TTLCache[str, Tuple[QueryOrchestrator, SynonymKey]]" = TTLCache(
            maxsize=max_sessions or settings.SESSION_MAX_COUNT,
            ttl=session_ttl or settings.SESSION_TTL_SECONDS,
            **cache_options,
        )

    @property
    def client(self) -> SearchBackendClient:
        if self._client is None:
            self._client = get_search_client()
        return self._client

    def __len__(self) -> int:
        self._sessions.expire()
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(
        self,
        session_id: str,
        synonyms: Optional[Sequence[SynonymEntry]] = None,
    ) -> QueryOrchestrator:
        """
        Get the orchestrator of a session, creating it on first use.

        Every call renews the session's lifetime. The session's synonym
        table is rebuilt only when the configured entries differ from the
        ones it was built from.
        """
        entries = [(s.term, s.synonyms, s.two_ways) for s in synonyms or []]
        session = self._sessions.get(session_id)

        if session is None:
            logger.info(f"Opening search session {session_id}")
            orchestrator = QueryOrchestrator(
                self.client,
                synonyms=SynonymExpander.from_entries(synonyms),
                date_formatter=self.date_formatter,
            )
        else:
            orchestrator, built_from = session
            if built_from != entries:
                orchestrator.synonyms = SynonymExpander.from_entries(synonyms)

        # Reassigning renews the expiry time
        self._sessions[session_id] = (orchestrator, entries)
        return orchestrator

    def close(self, session_id: str) -> bool:
        """Drop a session; returns whether it existed."""
        return self._sessions.pop(session_id, None) is not None


# Module-level singleton
_session_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get or create the singleton SessionRegistry instance."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry

"""
Application configuration management.

This module centralizes all configuration settings for the application,
loading values from environment variables with sensible defaults.

Configuration categories:
- Search service connection settings
- Query defaults (row limit, client type)
- Localization (culture used for dates and suggestions)
- HTTP API, search session and logging settings
"""

from dataclasses import dataclass
from dotenv import load_dotenv
import os

load_dotenv()


@dataclass
class Config:
    """
    Central configuration for the search pipeline.

    All configuration values are loaded from environment variables.
    This class serves as the single source of truth for application settings.

    Attributes:
        SEARCH_SITE_URL: Absolute URL of the site hosting the search service.
        SEARCH_REQUEST_TIMEOUT: Timeout in seconds for backend calls.
        SEARCH_DEFAULT_ROW_LIMIT: Page size used when none is configured.
        SEARCH_CLIENT_TYPE: Client type tag sent with every query.
        SEARCH_CULTURE: Culture name used for date labels and suggestions.
        SEARCH_SUGGESTION_COUNT: Number of query suggestions to request.
        SESSION_MAX_COUNT: Maximum number of search sessions kept in memory.
        SESSION_TTL_SECONDS: Idle time after which a search session is dropped.
    """

    # Search service
    SEARCH_SITE_URL: str = os.getenv("SEARCH_SITE_URL", "")
    SEARCH_REQUEST_TIMEOUT: float = float(os.getenv("SEARCH_REQUEST_TIMEOUT", "30"))

    # Query defaults
    SEARCH_DEFAULT_ROW_LIMIT: int = int(os.getenv("SEARCH_DEFAULT_ROW_LIMIT", "50"))
    SEARCH_CLIENT_TYPE: str = os.getenv("SEARCH_CLIENT_TYPE", "ContentSearchRegular")

    # Localization
    SEARCH_CULTURE: str = os.getenv("SEARCH_CULTURE", "en-US")
    SEARCH_SUGGESTION_COUNT: int = int(os.getenv("SEARCH_SUGGESTION_COUNT", "10"))

    # HTTP API
    API_HOST: str = os.getenv("API_HOST", "localhost")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Search sessions
    SESSION_MAX_COUNT: int = int(os.getenv("SESSION_MAX_COUNT", "1000"))
    SESSION_TTL_SECONDS: float = float(os.getenv("SESSION_TTL_SECONDS", "1800"))


settings = Config()

"""
Date formatting service for refinement labels.

Refiner values on date properties come back from the search service as
raw ISO 8601 datetimes (e.g. "2019-03-01T00:00:00.0000000Z"). This
module finds those substrings and replaces them with the long date of
the configured culture ("March 1, 2019" in en-US, "1 mars 2019" in
fr-FR), using the CLDR data shipped with Babel.

A DateFormatter is constructed once at startup and injected into the
components that need it.
"""

import logging
import re
from datetime import date
from typing import Optional

from babel import Locale, UnknownLocaleError
from babel.dates import format_date

from modern_search.core.config import settings

logger = logging.getLogger(__name__)

# Date and time with at least minutes, optional seconds and fraction,
# and a mandatory "Z" or +hh:mm offset.
ISO_8601_PATTERN = re.compile(
    r"(?P<year>\d{4})-(?P<month>[01]\d)-(?P<day>[0-3]\d)"
    r"T[0-2]\d:[0-5]\d(?::[0-5]\d(?:\.\d+)?)?"
    r"(?:[+-][0-2]\d:[0-5]\d|Z)"
)

FALLBACK_CULTURE = "en-US"


def parse_culture(culture: Optional[str]) -> Locale:
    """
    Parse a culture name ("fr-FR", "en_GB", "de") into a Babel locale.

    Unknown or malformed names fall back to en-US.
    """
    try:
        return Locale.parse((culture or FALLBACK_CULTURE).replace("-", "_"))
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Unknown culture {culture!r}, formatting dates as {FALLBACK_CULTURE}: {e}")
        return Locale.parse(FALLBACK_CULTURE.replace("-", "_"))


class DateFormatter:
    """
    Replaces ISO 8601 datetimes inside a string by a long date label.

    The calendar date written in the string is kept as is: no time zone
    conversion is applied, so "2019-03-01T00:00:00Z" always reads
    "March 1, 2019" in en-US whatever the offset.
    """

    def __init__(self, culture: Optional[str] = None):
        """
        Initialize the formatter.

        Args:
            culture: Culture name such as "en-US" (default: from settings)
        """
        self.culture = culture or settings.SEARCH_CULTURE
        self.locale = parse_culture(self.culture)

    def format_long_date(self, value: date) -> str:
        """Format a date the way a long date reads in the configured culture."""
        return format_date(value, format="long", locale=self.locale)

    def prettify(self, value: str) -> str:
        """
        Replace every ISO 8601 datetime found in the value.

        Args:
            value: Any string, typically a refinement label

        Returns:
            The string with each datetime replaced by its long date, or the
            input unchanged when it contains none
        """
        if not value:
            return value
        return ISO_8601_PATTERN.sub(self._replace_match, value)

    def _replace_match(self, match: "re.Match[str]") -> str:
        try:
            parsed = date(
                int(match.group("year")),
                int(match.group("month")),
                int(match.group("day")),
            )
        except ValueError:
            logger.debug(f"Not a calendar date, keeping as is: {match.group(0)}")
            return match.group(0)
        return self.format_long_date(parsed)

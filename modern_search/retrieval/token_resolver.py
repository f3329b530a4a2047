"""
Query template token substitution.

Query templates may reference the context the search runs in through
placeholder tokens:

- {Page.<field>}: a field of the list item behind the current page
- {CurrentDate}, {CurrentMonth}, {CurrentYear}: today's date parts
- {QueryString.<param>}: a parameter of the current page URL
- {PageContext.<field>}: an ambient site/page property

The template is tokenized once, every placeholder is resolved on its
own (the page item is fetched at most once per call) and the string is
rebuilt from the resolved pieces. Unknown placeholders are left as is.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlsplit

from modern_search.core.exceptions import SearchServiceError

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(
    r"\{(?:(?P<family>Page|QueryString|PageContext)\.(?P<field>[^{}]*?)"
    r"|(?P<date>CurrentDate|CurrentMonth|CurrentYear))\}",
    re.IGNORECASE,
)

# Taxonomy sub-fields whose multi-valued entries are joined with commas
TAXONOMY_SUFFIXES = ("label", "termid")

ItemLoader = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


@dataclass
class TokenContext:
    """
    Everything placeholders can be resolved against.

    Attributes:
        page_url: URL of the current page, source of {QueryString.*} values.
        page_context: Ambient site/page properties for {PageContext.*}.
        item_loader: Coroutine factory fetching the current page's list item.
        now: Clock used for the date tokens.
    """

    page_url: Optional[str] = None
    page_context: Dict[str, Any] = field(default_factory=dict)
    item_loader: Optional[ItemLoader] = None
    now: Callable[[], datetime] = datetime.now

    def query_parameters(self) -> Dict[str, str]:
        """Decoded query-string parameters of the page URL (first value wins)."""
        if not self.page_url:
            return {}
        parameters: Dict[str, str] = {}
        for key, value in parse_qsl(urlsplit(self.page_url).query, keep_blank_values=True):
            parameters.setdefault(key, value)
        return parameters


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _lookup_ignore_case(mapping: Dict[str, Any], key: str) -> Any:
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for candidate, value in mapping.items():
        if candidate.lower() == lowered:
            return value
    return None


def page_field_value(item: Dict[str, Any], field_name: str) -> str:
    """
    Read a field of the page item as a single query token.

    "Field.Label" / "Field.TermID" read that sub-field of a taxonomy
    field, joining the entries of a multi-valued field with commas.
    Values containing whitespace are wrapped in double quotes.
    """
    parts = field_name.split(".")
    if len(parts) > 1 and parts[-1].lower() in TAXONOMY_SUFFIXES:
        container = item.get(parts[0])
        sub_field = parts[1]
        if isinstance(container, list):
            value: Any = ",".join(
                _stringify(entry.get(sub_field)) for entry in container if isinstance(entry, dict)
            )
        elif isinstance(container, dict):
            value = container.get(sub_field)
        else:
            value = None
    else:
        value = item.get(field_name)

    text = _stringify(value)
    if any(char.isspace() for char in text):
        # keep multi-word values a single query token
        text = f'"{text}"'
    return text


class TokenResolver:
    """
    Resolves the placeholder tokens of a query template.

    Example:
        resolver = TokenResolver()
        template = await resolver.resolve(
            "{searchTerms} Path:{PageContext.webAbsoluteUrl}",
            TokenContext(page_context={"webAbsoluteUrl": "https://contoso/sites/hr"}),
        )
    """

    async def resolve(self, template: str, context: Optional[TokenContext] = None) -> str:
        """
        Substitute every recognized placeholder in the template.

        Args:
            template: Query template containing placeholders
            context: Resolution context (default: empty context, current clock)

        Returns:
            The template with placeholders replaced. {Page.*} tokens are left
            untouched when the page item cannot be fetched.
        """
        if not template:
            return template

        matches = list(TOKEN_PATTERN.finditer(template))
        if not matches:
            return template

        context = context or TokenContext()
        now = context.now()
        parameters: Optional[Dict[str, str]] = None
        item: Optional[Dict[str, Any]] = None
        item_loaded = False

        if any((m.group("family") or "").lower() == "page" for m in matches):
            item = await self._load_page_item(context)
            item_loaded = item is not None

        pieces: List[str] = []
        position = 0
        for match in matches:
            pieces.append(template[position:match.start()])
            position = match.end()

            date_token = match.group("date")
            if date_token:
                pieces.append(self._date_value(date_token, now))
                continue

            family = match.group("family").lower()
            field_name = match.group("field")

            if family == "page":
                if item_loaded:
                    pieces.append(page_field_value(item, field_name))
                else:
                    pieces.append(match.group(0))
            elif family == "querystring":
                if parameters is None:
                    parameters = context.query_parameters()
                pieces.append(_stringify(_lookup_ignore_case(parameters, field_name)))
            else:
                pieces.append(_stringify(context.page_context.get(field_name)))

        pieces.append(template[position:])
        return "".join(pieces)

    @staticmethod
    def _date_value(token: str, now: datetime) -> str:
        token = token.lower()
        if token == "currentdate":
            return str(now.day)
        if token == "currentmonth":
            return str(now.month)
        return str(now.year)

    @staticmethod
    async def _load_page_item(context: TokenContext) -> Optional[Dict[str, Any]]:
        if context.item_loader is None:
            logger.debug("No page item loader configured, {Page.*} tokens left as is")
            return None
        try:
            return await context.item_loader()
        except SearchServiceError as e:
            logger.error(f"[TokenResolver.page] Failed to fetch the current page item: {e}")
            return None


# Module-level singleton
_token_resolver: Optional[TokenResolver] = None


def get_token_resolver() -> TokenResolver:
    """Get or create the singleton TokenResolver instance."""
    global _token_resolver
    if _token_resolver is None:
        _token_resolver = TokenResolver()
    return _token_resolver

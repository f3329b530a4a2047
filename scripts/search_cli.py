"""
CLI entry point for running searches against the search service.

Usage:
    python scripts/search_cli.py --query "quarterly report"
    python scripts/search_cli.py --query "budget" --refiners FileType,Author --page 2
    python scripts/search_cli.py --query "report" --synonyms "report=summary,review!"
    python scripts/search_cli.py --suggest "quart"
"""

import argparse
import asyncio
import logging
from typing import List, Optional

from tabulate import tabulate

from modern_search.backend.client import SearchBackendClient
from modern_search.core.formatting import DateFormatter
from modern_search.core.schemas import RefinerConfiguration, SearchResultPage, SynonymEntry
from modern_search.retrieval.pipeline import QueryOrchestrator
from modern_search.retrieval.query_processor import build_search_query
from modern_search.retrieval.synonyms import SynonymExpander

logger = logging.getLogger(__name__)


def parse_synonym_argument(value: str) -> SynonymEntry:
    """Parse "term=syn1,syn2" ("!" suffix for two-way) into a SynonymEntry."""
    term, separator, synonyms = value.partition("=")
    if not separator:
        raise argparse.ArgumentTypeError(f"Expected term=synonym1,synonym2 but got {value!r}")
    two_ways = synonyms.endswith("!")
    return SynonymEntry(term=term, synonyms=synonyms.rstrip("!"), two_ways=two_ways)


def print_results(page: SearchResultPage, columns: Optional[List[str]] = None) -> None:
    pagination = page.pagination
    print(
        f"\nPage {pagination.current_page} "
        f"({pagination.page_size} per page, {pagination.total_rows} results)"
    )

    if page.promoted_results:
        print("\nPromoted results:")
        print(tabulate([[r.title, r.url] for r in page.promoted_results], headers=["Title", "Url"]))

    if page.rows:
        columns = columns or ["Title", "Path"]
        print()
        print(tabulate([[row.get(c, "") for c in columns] for row in page.rows], headers=columns))

    for facet in page.refinement_facets:
        print(f"\n{facet.filter_name}:")
        print(
            tabulate(
                [[v.display_value, v.count, v.token] for v in facet.values],
                headers=["Value", "Count", "Token"],
            )
        )


async def run(args: argparse.Namespace) -> int:
    async with SearchBackendClient(site_url=args.site_url) as client:
        orchestrator = QueryOrchestrator(
            client,
            synonyms=SynonymExpander.from_entries(args.synonyms),
            date_formatter=DateFormatter(args.culture),
            culture=args.culture,
            enrich_icons=not args.no_icons,
        )

        if args.suggest:
            for suggestion in await orchestrator.suggest(args.suggest):
                print(suggestion)
            return 0

        refiners = [
            RefinerConfiguration(refiner_name=name.strip(), sort_idx=index)
            for index, name in enumerate(args.refiners.split(","))
            if name.strip()
        ]
        query = build_search_query(
            raw_text=args.query,
            query_template=args.template,
            selected_properties=args.select,
            result_source_id=args.source_id,
            sort_list=args.sort,
            enable_query_rules=args.query_rules,
            row_limit=args.rows,
            refiners=refiners,
        )

        page = await orchestrator.search(query, args.page)
        columns = [c for c in query.selected_properties] or None
        print_results(page, columns)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Run a search against the search service")
    parser.add_argument("--query", type=str, default="", help="Query text")
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    parser.add_argument("--template", type=str, default="{searchTerms}", help="Query template")
    parser.add_argument("--source-id", type=str, default=None, help="Result source id")
    parser.add_argument("--rows", type=int, default=None, help="Rows per page")
    parser.add_argument("--refiners", type=str, default="", help="Comma-separated refiners, in display order")
    parser.add_argument("--sort", type=str, default="", help='Sort list, e.g. "LastModifiedTime:descending"')
    parser.add_argument("--select", type=str, default="Title,Path,Filename", help="Properties to return")
    parser.add_argument("--query-rules", action="store_true", help="Enable query rules")
    parser.add_argument("--no-icons", action="store_true", help="Skip file type icon resolution")
    parser.add_argument(
        "--synonyms",
        type=parse_synonym_argument,
        action="append",
        default=[],
        help='Synonym entry "term=syn1,syn2", "!" suffix for two-way (repeatable)',
    )
    parser.add_argument("--suggest", type=str, default=None, help="Print suggestions for this text")
    parser.add_argument("--site-url", type=str, default=None, help="Site URL (default: SEARCH_SITE_URL)")
    parser.add_argument("--culture", type=str, default=None, help="Culture for date labels (default: SEARCH_CULTURE)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())

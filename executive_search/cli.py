"""
Command line entry point.

Usage:
    executive-search load-sample
    executive-search vectorize [--batch-size N] [--reembed]
    executive-search search "financial risk management" -k 3
    executive-search status
"""

from __future__ import annotations

import argparse
import json
import sys

from dotenv import load_dotenv
from neo4j.exceptions import DriverError, Neo4jError
from pydantic import ValidationError

from config import BatchConfig, Settings, get_settings
from executive_search.auth import build_credential_provider
from executive_search.embeddings import build_embedding_client, options_from_config
from executive_search.exceptions import ExecutiveSearchError
from executive_search.pipeline import run_pipeline
from executive_search.search import SemanticSearchService
from executive_search.seed import load_executives
from executive_search.store import GraphStore
from executive_search.utils import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="executive-search",
        description="Embed executive bios in Neo4j and search them semantically.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    vectorize = sub.add_parser("vectorize", help="Embed pending records and build the vector index")
    vectorize.add_argument("--batch-size", type=int, help="Records per embedding call")
    vectorize.add_argument("--reembed", action="store_true", help="Re-embed records that already have a vector")
    vectorize.add_argument("--concurrency", type=int, help="Batches dispatched in parallel")

    search = sub.add_parser("search", help="Semantic search over bios")
    search.add_argument("query", help="Free-text query")
    search.add_argument("-k", "--limit", type=int, default=5, help="Number of results")
    search.add_argument("--json", action="store_true", help="Print results as JSON")

    sub.add_parser("load-sample", help="Load the sample executives")
    sub.add_parser("status", help="Show pending record count and index state")

    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    updates = {}
    if getattr(args, "batch_size", None) is not None:
        updates["batch_size"] = args.batch_size
    if getattr(args, "reembed", False):
        updates["reembed"] = True
    if getattr(args, "concurrency", None) is not None:
        updates["max_concurrency"] = args.concurrency
    if not updates:
        return settings
    # model_copy skips validation, so overrides go through the field constraints again
    batch = BatchConfig.model_validate({**settings.batch.model_dump(), **updates})
    return settings.model_copy(update={"batch": batch})


def cmd_search(settings: Settings, args: argparse.Namespace) -> int:
    with GraphStore.from_settings(settings) as store:
        credentials = build_credential_provider(settings.google)
        embedder = build_embedding_client(
            settings.google,
            settings.embedding,
            settings.batch.vector_dimensions,
            store=store,
        )
        service = SemanticSearchService.from_settings(
            settings,
            store,
            embedder,
            credentials,
            options=options_from_config(settings.google, settings.embedding, query=True),
        )
        results = service.search(args.query, args.limit)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return 0

    print("Search results:")
    for i, result in enumerate(results, 1):
        print(f"\n{i}. {result.name} (Score: {result.score:.4f})")
        print(f"   {result.bio}")
    return 0


def cmd_load_sample(settings: Settings, args: argparse.Namespace) -> int:
    with GraphStore.from_settings(settings) as store:
        count = load_executives(store)
    logger.info("executives_loaded", count=count)
    return 0


def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    with GraphStore.from_settings(settings) as store:
        pending = store.count_pending_records()
        total = store.count_pending_records(include_embedded=True)
        index = store.get_index(settings.batch.index_name)

    print(f"Records with text:     {total}")
    print(f"Awaiting embeddings:   {pending}")
    if index is None:
        print(f"Index {settings.batch.index_name}: not created")
    else:
        print(
            f"Index {index.name}: {index.state.value} "
            f"({index.population_percent:.0f}%, {index.dimensions}d, "
            f"{index.similarity_function.value if index.similarity_function else '?'})"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = _apply_overrides(get_settings(), args)
    except ValidationError as e:
        error = e.errors()[0]
        parser.error(f"invalid value for {error['loc'][0]}: {error['msg']}")
    setup_logging(settings)

    if args.command == "vectorize":
        return run_pipeline(settings)

    handlers = {
        "search": cmd_search,
        "load-sample": cmd_load_sample,
        "status": cmd_status,
    }
    try:
        return handlers[args.command](settings, args)
    except (ExecutiveSearchError, Neo4jError, DriverError) as e:
        logger.error("command_failed", command=args.command, error_type=type(e).__name__, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
CLI runner for price-enricher.

Usage:
    python -m price_enricher.run [OPTIONS]

    # Enrich a JSON-lines file of listing entries
    python -m price_enricher.run --items wishlist.jsonl

    # Show a cached record
    python -m price_enricher.run --show B08XXXXXXX

    # Remove expired cache entries now
    python -m price_enricher.run --clean
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .adapters import JsonLinesPageAdapter
from .cache import RecordCache
from .config import EnricherConfig
from .identifiers import validate_identifier
from .metrics import compute_metrics
from .ndl import NdlClient
from .pipeline import Pipeline
from .publishers import PublisherClassifier
from .store import KeyValueStore, MemoryStore, SqliteStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger("price-enricher")


async def enrich_items(config: EnricherConfig, store: KeyValueStore, items_path: Path) -> int:
    """
    Run the pipeline over a JSON-lines file.

    Returns the number of unresolved items.
    """
    adapter = JsonLinesPageAdapter(items_path, tax_rate=config.tax_rate)
    pipeline = Pipeline(config, store, adapter)
    stats = await pipeline.run()
    logger.info(
        f"Enriched {stats.completed} item(s), {stats.failed} unresolved, "
        f"{stats.dropped} dropped, peak concurrency {stats.peak_in_flight}"
    )
    return stats.failed


def show_record(config: EnricherConfig, store: KeyValueStore, item_id: str) -> bool:
    """Print a cached record with its metrics."""
    cache = RecordCache(store, config.cache)
    record = cache.get(item_id)
    if record is None:
        logger.error(f"No cached record for {item_id}")
        return False

    output = {
        "record": record.to_dict(),
        "fresh": cache.is_fresh(item_id),
        "metrics": compute_metrics(record, config.tax_rate).to_dict(),
    }
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return True


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="price-enricher: Loyalty point and reference price enrichment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Enrich listing entries
    python -m price_enricher.run --items wishlist.jsonl

    # Use a specific config file and a throwaway cache
    python -m price_enricher.run --config price_enricher.yaml --memory --items search.jsonl

    # Check an ISBN
    python -m price_enricher.run --validate 4088725093
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("price_enricher.yaml"),
        help="Path to config file (default: price_enricher.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override database path from config",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use an in-memory cache that is discarded on exit",
    )
    parser.add_argument(
        "--items",
        type=Path,
        help="Enrich a JSON-lines file of listing entries",
    )
    parser.add_argument(
        "--show",
        type=str,
        metavar="ITEM_ID",
        help="Show the cached record for an item",
    )
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove expired cache entries",
    )
    parser.add_argument(
        "--forget-publishers",
        action="store_true",
        help="Drop all stored publisher classifications",
    )
    parser.add_argument(
        "--validate",
        type=str,
        metavar="CODE",
        help="Check an ISBN-10/13 check digit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.validate:
        valid = validate_identifier(args.validate)
        print(f"{args.validate}: {'valid' if valid else 'invalid'}")
        return 0 if valid else 1

    # Load config
    try:
        config = EnricherConfig.from_yaml(args.config)
    except ValueError as e:
        logger.error(f"Invalid config {args.config}: {e}")
        return 1
    if args.db:
        config.db_path = args.db

    if args.memory:
        store: KeyValueStore = MemoryStore()
        logger.info("Using in-memory cache")
    else:
        store = SqliteStore(config.db_path)
        logger.info(f"Database: {config.db_path}")

    if args.forget_publishers:
        PublisherClassifier(store, NdlClient()).forget_all()

    if args.clean:
        deleted = RecordCache(store, config.cache).sweep()
        print(f"Removed {deleted} expired record(s)")

    if args.show:
        return 0 if show_record(config, store, args.show) else 1

    if args.items:
        if not args.items.exists():
            logger.error(f"Items file not found: {args.items}")
            return 1
        unresolved = asyncio.run(enrich_items(config, store, args.items))
        return 0 if unresolved == 0 else 1

    if not (args.clean or args.forget_publishers):
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

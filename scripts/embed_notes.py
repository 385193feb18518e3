#!/usr/bin/env python3
"""
Note Embedding Utility
Embeds notes that have no cached embedding (or a stale-model one with
--reembed-all), or prints embedding coverage with --stats.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from casesim.core.batch_indexer import BatchIndexer
from casesim.core.config import BATCH_LIMIT, get_embedding_provider, get_note_store, validate_config
from casesim.core.embedding_cache import EmbeddingCacheManager


def print_stats(store, model: str):
    stats = store.get_embedding_stats(current_model=model)
    print(f"Current model: {model}")
    print(f"Notes: {stats['total_notes']}")
    print(f"Embedded: {stats['embedded_notes']}")
    print(f"Without embedding: {stats['notes_without_embedding']}")
    print(f"Stale (other model): {stats['stale_embeddings']}")
    for entry in stats["by_model"]:
        print(f"  {entry['model']}: {entry['count']} ({entry['dimensions']} dims)")


def main(argv=None):
    """Run a batch embedding pass over the note store."""
    parser = argparse.ArgumentParser(description="Embed clinical notes for similarity search")
    parser.add_argument("--reembed-all", action="store_true",
                        help="also re-embed notes whose embedding came from another model")
    parser.add_argument("--limit", type=int, default=BATCH_LIMIT,
                        help=f"maximum notes to process (default: {BATCH_LIMIT})")
    parser.add_argument("--stats", action="store_true",
                        help="print embedding coverage and exit")
    args = parser.parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    if args.limit < 0:
        print("ERROR: --limit must be >= 0")
        return 1

    store = get_note_store()
    embedding_provider = get_embedding_provider()
    cache_manager = EmbeddingCacheManager(store, embedding_provider)

    if args.stats:
        print_stats(store, cache_manager.model)
        return 0

    print(f"Starting batch embedding with {embedding_provider.provider_name} ({cache_manager.model})...")

    result = BatchIndexer(store, cache_manager).run(reembed_all=args.reembed_all, limit=args.limit)

    if result.total_candidates == 0:
        print("All notes already have embeddings. Nothing to do.")
        return 0

    print(f"✓ Processed: {result.processed}")
    print(f"✓ Skipped (unchanged): {result.skipped}")
    if result.errors:
        print(f"✗ Errors: {result.errors}")
        for note_id, message in result.error_details:
            print(f"  note {note_id}: {message}")

    print("Batch embedding complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

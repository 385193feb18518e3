"""
Batch embedding of notes that were never embedded or were embedded with a
model other than the current one.
"""

import time
from typing import List

from .errors import ValidationError
from .schema import BatchRunResult, Note
from ..util.logging import logger


class BatchIndexer:
    """Drives the embedding cache over a bounded set of candidate notes."""

    def __init__(self, store, cache_manager):
        self.store = store
        self.cache_manager = cache_manager

    def select_candidates(self, reembed_all: bool, limit: int) -> List[Note]:
        """
        Notes without an embedding; with reembed_all, also notes whose embedding
        came from another model. Deduplicated, in store order, capped at limit.
        """
        candidates = list(self.store.list_notes_without_embedding())
        if reembed_all:
            candidates.extend(self.store.list_notes_with_stale_embedding(self.cache_manager.model))

        seen = set()
        selected = []
        for note in candidates:
            if note.id in seen:
                continue
            seen.add(note.id)
            selected.append(note)
            if len(selected) >= limit:
                break
        return selected

    def run(self, reembed_all: bool = False, limit: int = 100) -> BatchRunResult:
        """
        Embed every selected candidate. A failing note is recorded and skipped;
        it never stops the rest of the batch.
        """
        if limit < 0:
            raise ValidationError("limit must be >= 0")

        provider = self.cache_manager.embedding_provider
        result = BatchRunResult(model=self.cache_manager.model, provider=provider.provider_name)
        if limit == 0:
            return result

        notes = self.select_candidates(reembed_all, limit)
        result.total_candidates = len(notes)

        if not notes:
            logger.info("Batch embedding: all notes already have embeddings")
            return result

        start_time = time.monotonic()
        for note in notes:
            try:
                outcome = self.cache_manager.ensure(note, force=False)
            except Exception as e:
                result.errors += 1
                result.error_details.append((note.id, str(e)))
                logger.log_embedding_operation("batch_item", note.id, {"error": str(e)}, status="failed")
                continue

            if outcome.skipped:
                result.skipped += 1
            else:
                result.processed += 1

        logger.log_batch_run(result.processed, result.skipped, result.errors, {
            "model": result.model,
            "reembed_all": reembed_all,
            "candidates": result.total_candidates,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2)
        })

        return result

"""
Similarity search over cached note embeddings: acquire a query vector, then
rank every note that has a live embedding against it.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .errors import NotFoundError, ValidationError
from .schema import SimilarityMatch
from ..vector.similarity import rank_similar
from ..util.logging import logger


@dataclass
class QueryVector:
    vector: np.ndarray
    model: str
    query_type: str  # "note" or "text"
    note_id: Optional[int] = None


@dataclass
class SearchOutcome:
    query: QueryVector
    matches: List[SimilarityMatch]
    total_candidates: int
    total_compared: int
    matches_found: int = 0


def validate_search_request(note_id: Optional[int], query: Optional[str], top_k: int, min_similarity: float):
    """Raise ValidationError for missing or out-of-range search input."""
    has_query = query is not None and query.strip() != ""
    if note_id is None and not has_query:
        raise ValidationError("Either note_id or query text is required")

    if top_k < 1:
        raise ValidationError("top_k must be >= 1")

    if not -1.0 <= min_similarity <= 1.0:
        raise ValidationError("min_similarity must be between -1 and 1")


def acquire_query_vector(store, cache_manager, note_id: Optional[int] = None, query: Optional[str] = None) -> QueryVector:
    """
    Resolve the query vector. A note id takes precedence over query text; a
    note's embedding comes from the cache (generated and stored on a miss),
    free text is embedded fresh and never cached.

    Raises:
        ValidationError: neither input present
        NotFoundError: note_id does not exist
        EmbeddingGenerationError: the provider failed
    """
    if note_id is not None:
        if query:
            logger.warning(f"Both note_id and query supplied; using note {note_id} and ignoring query text")

        note = store.get_note(note_id)
        if note is None:
            raise NotFoundError(f"Note {note_id} not found", note_id=note_id)

        ensured = cache_manager.ensure(note, force=False)
        return QueryVector(vector=ensured.vector, model=ensured.model, query_type="note", note_id=note_id)

    if query is None or not query.strip():
        raise ValidationError("Either note_id or query text is required")

    result = cache_manager.embed_query(query)
    return QueryVector(vector=np.asarray(result.vector, dtype=np.float64), model=result.model, query_type="text")


def semantic_search(store, cache_manager, note_id: Optional[int] = None, query: Optional[str] = None,
                    top_k: int = 5, min_similarity: float = 0.3) -> SearchOutcome:
    """
    Rank stored notes by similarity to a note or free text.

    Returns:
        SearchOutcome with matches ordered by similarity (unrounded)
    """
    validate_search_request(note_id, query, top_k, min_similarity)

    query_vector = acquire_query_vector(store, cache_manager, note_id=note_id, query=query)
    candidates = store.list_notes_with_embeddings()

    # Rank everything eligible so the caller can see how many cleared the threshold
    ranked = rank_similar(
        query_vector.vector,
        query_vector.model,
        candidates,
        top_k=len(candidates),
        min_similarity=min_similarity,
        exclude_note_id=query_vector.note_id
    )
    matches = ranked[:top_k]

    total_compared = sum(
        1 for note, embedding in candidates
        if note.id != query_vector.note_id
        and embedding.model == query_vector.model
        and embedding.dimensions == len(query_vector.vector)
    )

    logger.log_operation("search.rank", "success", {
        "query_type": query_vector.query_type,
        "model": query_vector.model,
        "candidates": len(candidates),
        "compared": total_compared,
        "matches_found": len(ranked),
        "returned": len(matches)
    })

    return SearchOutcome(
        query=query_vector,
        matches=matches,
        total_candidates=len(candidates),
        total_compared=total_compared,
        matches_found=len(ranked)
    )

"""
Cosine-similarity ranking of cached note embeddings against a query vector.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..core.errors import MalformedVectorError
from ..core.schema import Embedding, Note, SimilarityMatch


def cosine_similarity(a: Union[Sequence[float], np.ndarray], b: Union[Sequence[float], np.ndarray]) -> float:
    """
    Cosine similarity of two equal-length vectors, in [-1, 1].

    A zero-norm operand yields 0.0, and so does any non-finite intermediate result.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimension mismatch: {a.shape} vs {b.shape}")

    denominator = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if denominator == 0 or not math.isfinite(denominator):
        return 0.0

    similarity = float(np.dot(a, b)) / denominator
    if not math.isfinite(similarity):
        return 0.0

    # Rounding error can push the ratio slightly past the bounds
    return max(-1.0, min(1.0, similarity))


def rank_similar(query_vector: Union[Sequence[float], np.ndarray],
                 query_model: str,
                 candidates: Iterable[Tuple[Note, Embedding]],
                 top_k: int,
                 min_similarity: float,
                 exclude_note_id: Optional[int] = None) -> List[SimilarityMatch]:
    """
    Rank candidate notes by cosine similarity to the query vector.

    Candidates embedded with a different model or dimension are never scored.
    Results are ordered by similarity descending, then newest created_at, then
    highest note id, and truncated to top_k.

    Raises:
        MalformedVectorError: if a candidate's stored vector cannot be decoded
    """
    if top_k <= 0:
        return []

    query = np.asarray(query_vector, dtype=np.float64)
    dimensions = len(query)

    matches: List[SimilarityMatch] = []
    for note, embedding in candidates:
        if exclude_note_id is not None and note.id == exclude_note_id:
            continue

        # Embeddings from different models do not share a vector space
        if embedding.model != query_model:
            continue

        if embedding.dimensions != dimensions:
            continue

        vector = embedding.vector
        if len(vector) != embedding.dimensions:
            raise MalformedVectorError(
                f"Embedding for note {note.id} declares {embedding.dimensions} dimensions "
                f"but stores {len(vector)}"
            )

        similarity = cosine_similarity(query, vector)
        if similarity >= min_similarity:
            matches.append(SimilarityMatch(note=note, similarity=similarity))

    # Two stable sorts: tie-break key first, then the primary key
    matches.sort(key=lambda m: (m.note.created_at or "", m.note.id), reverse=True)
    matches.sort(key=lambda m: m.similarity, reverse=True)

    return matches[:top_k]

"""
Embedding cache: decides whether a note's cached embedding can be reused and,
when it cannot, generates and persists a fresh one.

An embedding is reusable only if its content hash matches the note's current
text and its model matches the provider's current model. The reuse check is
the only thing standing between a request and a billed provider call.
"""

import math
import threading
from contextlib import contextmanager
from typing import Optional

import numpy as np

from .errors import EmbeddingGenerationError, NotFoundError
from .note_text import extract_note_text
from .schema import Embedding, EnsureResult, Note
from ..vector.codec import encode_vector
from ..vector.fingerprint import content_hash
from ..vector.types import EmbeddingResult
from ..util.logging import logger


class EmbeddingCacheManager:
    """Owns the write path to the note_embeddings table."""

    def __init__(self, store, embedding_provider, text_extractor=extract_note_text):
        """
        Args:
            store: NoteStore (or any object with the same get/upsert methods)
            embedding_provider: IEmbeddingProvider used for every generation
            text_extractor: note -> text projection; must match across calls
        """
        self.store = store
        self.embedding_provider = embedding_provider
        self.text_extractor = text_extractor
        # note_id -> [lock, number of callers holding or waiting on it]
        self._locks = {}
        self._locks_guard = threading.Lock()

    @property
    def model(self) -> str:
        """The currently configured embedding model."""
        return self.embedding_provider.model_name

    @contextmanager
    def _note_lock(self, note_id: int):
        """Hold the lock for one note; the entry is dropped once no caller needs it."""
        with self._locks_guard:
            entry = self._locks.setdefault(note_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[note_id]

    def get(self, note_id: int) -> Embedding:
        """Return the cached embedding for a note, valid or not."""
        embedding = self.store.get_embedding(note_id)
        if embedding is None:
            raise NotFoundError(f"No embedding for note {note_id}", note_id=note_id)
        return embedding

    def is_valid(self, embedding: Optional[Embedding], text_hash: str) -> bool:
        """Whether a cached embedding may be reused for text with the given hash."""
        return (
            embedding is not None
            and embedding.content_hash == text_hash
            and embedding.model == self.model
        )

    def ensure(self, note: Note, force: bool = False) -> EnsureResult:
        """
        Return a valid embedding for the note, generating one only when needed.

        Raises:
            EmbeddingGenerationError: the provider failed; any previous row is untouched
            MalformedVectorError: a reusable cached row holds a corrupt vector
        """
        text = self.text_extractor(note)
        text_hash = content_hash(text)

        # Serialize per note so concurrent callers make at most one provider call
        with self._note_lock(note.id):
            cached = self.store.get_embedding(note.id)

            if not force and self.is_valid(cached, text_hash):
                logger.log_embedding_operation("cache_hit", note.id, {"model": cached.model})
                return EnsureResult(
                    note_id=note.id,
                    vector=cached.vector,
                    model=cached.model,
                    dimensions=cached.dimensions,
                    content_hash=cached.content_hash,
                    skipped=True,
                    text_length=len(text)
                )

            result = self._generate(text, note_id=note.id)
            vector = np.asarray(result.vector, dtype=np.float64)

            # Single-statement upsert: the row is either fully replaced or untouched
            self.store.upsert_embedding(
                note_id=note.id,
                model=result.model,
                vector_blob=encode_vector(vector),
                dimensions=result.dimensions,
                content_hash=text_hash
            )

        logger.log_embedding_operation("generated", note.id, {
            "model": result.model,
            "dimensions": result.dimensions,
            "operation": "refresh" if cached is not None else "create",
            "forced": force
        })

        return EnsureResult(
            note_id=note.id,
            vector=vector,
            model=result.model,
            dimensions=result.dimensions,
            content_hash=text_hash,
            skipped=False,
            text_length=len(text)
        )

    def ensure_by_id(self, note_id: int, force: bool = False) -> EnsureResult:
        """Look up a note and ensure its embedding."""
        note = self.store.get_note(note_id)
        if note is None:
            raise NotFoundError(f"Note {note_id} not found", note_id=note_id)
        return self.ensure(note, force=force)

    def embed_query(self, text: str) -> EmbeddingResult:
        """Embed free text without touching the cache."""
        return self._generate(text)

    def _generate(self, text: str, note_id: Optional[int] = None) -> EmbeddingResult:
        try:
            result = self.embedding_provider.embed(text)
        except Exception as e:
            if note_id is not None:
                logger.log_embedding_operation("generate", note_id, {"error": str(e)}, status="failed")
            raise EmbeddingGenerationError(f"Embedding generation failed: {e}", note_id=note_id) from e

        if not result.vector or len(result.vector) != result.dimensions:
            raise EmbeddingGenerationError(
                f"Provider returned {len(result.vector)} components but reported {result.dimensions}",
                note_id=note_id
            )

        if not all(math.isfinite(v) for v in result.vector):
            raise EmbeddingGenerationError("Provider returned non-finite vector components", note_id=note_id)

        return result

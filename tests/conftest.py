"""
Shared fixtures: an isolated SQLite note store per test and offline embedding providers.
"""

import math

import pytest

from casesim.core.dao import NoteStore
from casesim.core.embedding_cache import EmbeddingCacheManager
from casesim.vector.codec import encode_vector
from casesim.vector.embeddings import DeterministicHashEmbedding, IEmbeddingProvider


class CountingHashEmbedding(DeterministicHashEmbedding):
    """Hash embedding that records how many times the provider was called."""

    def __init__(self, dimension: int = 32):
        super().__init__(dimension=dimension)
        self.calls = 0

    def embed_text(self, text: str) -> list[float]:
        self.calls += 1
        return super().embed_text(text)


class StaticEmbedding(IEmbeddingProvider):
    """Returns preset vectors keyed by exact text; unknown text raises KeyError."""

    def __init__(self, vectors, model: str = "static-v1"):
        self.vectors = dict(vectors)
        self._model = model
        self.calls = []

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def provider_name(self) -> str:
        return "static"

    def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vectors[text])

    def get_dimension(self) -> int:
        return len(next(iter(self.vectors.values())))


def unit_vector_at(similarity: float) -> list[float]:
    """2-D unit vector whose cosine similarity with [1, 0] is `similarity`."""
    return [similarity, math.sqrt(1.0 - similarity ** 2)]


@pytest.fixture
def store(tmp_path):
    """Fresh note store backed by a temporary database file."""
    return NoteStore(str(tmp_path / "casesim-test.db"))


@pytest.fixture
def hash_provider():
    return CountingHashEmbedding(dimension=32)


@pytest.fixture
def cache_manager(store, hash_provider):
    return EmbeddingCacheManager(store, hash_provider)


@pytest.fixture
def static_embedding():
    """Factory for StaticEmbedding providers."""
    return StaticEmbedding


@pytest.fixture
def add_progress_note(store):
    """Insert a progress note with the given content and return its id."""
    def _add(content: str, **kwargs) -> int:
        return store.add_note("progress", {"content": content}, **kwargs)
    return _add


@pytest.fixture
def seed_embedding(store):
    """Store an embedding row directly, bypassing any provider."""
    def _seed(note_id: int, vector, model: str = "static-v1", content_hash: str = "seeded"):
        store.upsert_embedding(
            note_id=note_id,
            model=model,
            vector_blob=encode_vector(vector),
            dimensions=len(vector),
            content_hash=content_hash
        )
    return _seed


@pytest.fixture
def unit_vector():
    return unit_vector_at

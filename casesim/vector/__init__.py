"""
Vector layer: binary codec, content fingerprints, embedding providers and
cosine-similarity ranking. SQLite remains the canonical store.
"""

# Package initialization for vector module
from .codec import encode_vector, decode_vector
from .fingerprint import content_hash
from .types import EmbeddingResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, OllamaEmbedding
from .similarity import cosine_similarity, rank_similar

__all__ = [
    'encode_vector',
    'decode_vector',
    'content_hash',
    'EmbeddingResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding',
    'cosine_similarity',
    'rank_similar'
]

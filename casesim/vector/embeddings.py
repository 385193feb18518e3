"""
Embedding providers. Generation is the expensive, billed step; callers decide
whether to call a provider at all (see core.embedding_cache).
"""

from abc import ABC, abstractmethod
import hashlib

import ollama
from sentence_transformers import SentenceTransformer

from .types import EmbeddingResult

DEFAULT_MAX_CHARS = 8000


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    max_chars: int = DEFAULT_MAX_CHARS

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Identifier of the model/version this provider embeds with."""
        pass

    @property
    def provider_name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed(self, text: str) -> EmbeddingResult:
        """Embed text (truncated to max_chars) and tag the vector with its model."""
        vector = [float(v) for v in self.embed_text(text[:self.max_chars])]
        return EmbeddingResult(vector=vector, model=self.model_name, dimensions=len(vector))


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    without requiring external model dependencies.
    """

    def __init__(self, dimension: int = 384, max_chars: int = DEFAULT_MAX_CHARS):
        self.dimension = dimension
        self.max_chars = max_chars

    @property
    def model_name(self) -> str:
        return f"hash-{self.dimension}"

    @property
    def provider_name(self) -> str:
        return "hash"

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        vector = []
        counter = 0
        while len(vector) < self.dimension:
            # Chain digests so every dimension is populated
            hex_dig = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).hexdigest()
            for i in range(0, len(hex_dig), 8):
                if len(vector) >= self.dimension:
                    break
                value = int(hex_dig[i:i+8], 16)

                # Normalize to [0, 1] and then map to [-1, 1] for cosine similarity
                vector.append((value / (2**32)) * 2 - 1)
            counter += 1

        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to all-MiniLM-L6-v2, which produces normalized 384-dimensional vectors
    and runs locally without network access once the weights are cached.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", max_chars: int = DEFAULT_MAX_CHARS):
        self._model_name = model_name
        self.max_chars = max_chars
        self._model = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return "local"

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self._model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False, normalize_embeddings=True)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.model.get_sentence_embedding_dimension()


class OllamaEmbedding(IEmbeddingProvider):
    """Embedding provider backed by an Ollama server."""

    def __init__(self, model_name: str = "nomic-embed-text", host: str = None, timeout: float = None,
                 max_chars: int = DEFAULT_MAX_CHARS, client: ollama.Client = None):
        self._model_name = model_name
        self.max_chars = max_chars
        self.client = client if client is not None else ollama.Client(host=host, timeout=timeout)
        self._dimension = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return "ollama"

    def embed_text(self, text: str) -> list[float]:
        response = self.client.embed(model=self._model_name, input=text)
        embeddings = response["embeddings"]
        if not embeddings:
            raise ValueError(f"Ollama returned no embedding for model {self._model_name}")
        vector = list(embeddings[0])
        self._dimension = len(vector)
        return vector

    def get_dimension(self) -> int:
        if self._dimension is None:
            self.embed_text("dimension probe")
        return self._dimension

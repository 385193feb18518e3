"""
Error taxonomy for the case-similarity core.
"""

from typing import Optional


class CaseSimilarityError(Exception):
    """Base class for all case-similarity errors."""


class ValidationError(CaseSimilarityError):
    """Missing or contradictory input. Surfaced to the caller, never retried."""


class NotFoundError(CaseSimilarityError):
    """A referenced note or embedding does not exist."""

    def __init__(self, message: str, note_id: Optional[int] = None):
        super().__init__(message)
        self.note_id = note_id


class EmbeddingGenerationError(CaseSimilarityError):
    """The embedding provider failed or returned an unusable vector."""

    def __init__(self, message: str, note_id: Optional[int] = None):
        super().__init__(message)
        self.note_id = note_id


class SummarizationError(CaseSimilarityError):
    """The per-case summarizer failed or returned unparsable output."""


class SynthesisError(CaseSimilarityError):
    """The cross-case synthesizer failed or returned unparsable output."""


class MalformedVectorError(CaseSimilarityError):
    """A stored vector buffer cannot be decoded. Treated as data corruption."""

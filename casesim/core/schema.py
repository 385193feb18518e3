"""
Typed records for notes, cached embeddings and similar-case results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

NOTE_TYPES = ("progress", "discharge", "analysis", "hp")


@dataclass
class Note:
    id: int
    type: str
    input_json: str
    output_json: str
    created_at: str
    patient_id: Optional[int] = None
    patient_initials: str = ""


@dataclass
class Embedding:
    note_id: int
    model: str
    vector_blob: bytes
    dimensions: int
    content_hash: str
    updated_at: Optional[str] = None

    @property
    def vector(self) -> np.ndarray:
        """Decoded vector. Raises MalformedVectorError on a corrupt blob."""
        from ..vector.codec import decode_vector
        return decode_vector(self.vector_blob)


@dataclass
class EnsureResult:
    """Outcome of EmbeddingCacheManager.ensure."""
    note_id: int
    vector: np.ndarray
    model: str
    dimensions: int
    content_hash: str
    skipped: bool
    text_length: int = 0


@dataclass
class SimilarityMatch:
    note: Note
    similarity: float


@dataclass
class CaseSummary:
    note_id: int
    note_type: str
    similarity: float
    created_at: str
    presentation: str
    key_findings: List[str]
    workup_performed: List[str]
    outcome: Optional[str] = None
    lessons_learned: Optional[List[str]] = None
    patient_id: Optional[int] = None


@dataclass
class SynthesisResult:
    common_patterns: List[str]
    typical_workup: List[str]
    pitfalls: List[str]


@dataclass
class SimilarCasesResult:
    cases: List[CaseSummary]
    synthesized_insights: Optional[SynthesisResult] = None
    generated_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchRunResult:
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: List[Tuple[int, str]] = field(default_factory=list)
    total_candidates: int = 0
    model: str = ""
    provider: str = ""

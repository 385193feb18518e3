"""
Request and response models for the case-similarity API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core import config


class EmbeddingGenerateRequest(BaseModel):
    note_id: int
    force: bool = False


class EmbeddingGenerateResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = True
    note_id: int
    skipped: bool
    model: str
    dimensions: int
    text_length: int


class BatchEmbedRequest(BaseModel):
    reembed_all: bool = False
    limit: int = Field(default=config.BATCH_LIMIT, ge=0)


class BatchErrorDetail(BaseModel):
    note_id: int
    error: str


class BatchEmbedResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = True
    processed: int
    skipped: int
    errors: int
    error_details: List[BatchErrorDetail]
    model: str
    provider: str
    total_candidates: int
    message: Optional[str] = None


class _QueryRequest(BaseModel):
    note_id: Optional[int] = None
    query: Optional[str] = None

    @field_validator('query')
    @classmethod
    def blank_query_is_absent(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class SearchRequest(_QueryRequest):
    top_k: int = Field(default=config.SEARCH_TOP_K, ge=1)
    min_similarity: float = Field(default=config.SEARCH_MIN_SIMILARITY, ge=-1.0, le=1.0)


class SimilarCasesRequest(_QueryRequest):
    top_k: int = Field(default=config.SIMILAR_CASES_TOP_K, ge=1)
    min_similarity: float = Field(default=config.SIMILAR_CASES_MIN_SIMILARITY, ge=-1.0, le=1.0)


class NoteModel(BaseModel):
    id: int
    type: str
    patient_id: Optional[int] = None
    patient_initials: str = ""
    created_at: str
    output: Any


class SearchResult(BaseModel):
    note: NoteModel
    similarity: float


class SearchResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = True
    query: str
    query_type: str
    model: str
    total_compared: int
    results: List[SearchResult]


class EmbeddingModelCount(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model: str
    count: int
    dimensions: Optional[int] = None


class EmbeddingStats(BaseModel):
    total_notes: int
    embedded_notes: int
    notes_without_embedding: int
    stale_embeddings: int
    by_model: List[EmbeddingModelCount]


class EmbeddingConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    provider: str
    model: str
    dimensions: Optional[int] = None


class EmbeddingStatsResponse(BaseModel):
    success: bool = True
    stats: EmbeddingStats
    current_config: EmbeddingConfig


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    note_count: int
    embedding: EmbeddingConfig


# Similar-case output uses camelCase on the wire
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaseSummaryModel(_CamelModel):
    note_id: int
    note_type: str
    patient_id: Optional[int] = None
    similarity: float
    created_at: str
    presentation: str
    key_findings: List[str]
    workup_performed: List[str]
    outcome: Optional[str] = None
    lessons_learned: Optional[List[str]] = None


class SynthesizedInsightsModel(_CamelModel):
    common_patterns: List[str]
    typical_workup: List[str]
    pitfalls: List[str]


class SimilarCasesMetadata(_CamelModel):
    query_type: str
    total_candidates: int
    matches_found: int
    cases_returned: int
    latency_ms: int


class SimilarCasesResponse(_CamelModel):
    cases: List[CaseSummaryModel]
    synthesized_insights: Optional[SynthesizedInsightsModel] = None
    generated_at: datetime
    metadata: SimilarCasesMetadata


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    timestamp: datetime = None
    details: Optional[Dict[str, Any]] = None

    def __init__(self, **data):
        super().__init__(timestamp=datetime.now(), **data)

"""
HTTP surface for embedding maintenance, similarity search and similar-case insights.
"""

import json
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .schemas import (
    BatchEmbedRequest,
    BatchEmbedResponse,
    BatchErrorDetail,
    CaseSummaryModel,
    EmbeddingConfig,
    EmbeddingGenerateRequest,
    EmbeddingGenerateResponse,
    EmbeddingStats,
    EmbeddingStatsResponse,
    ErrorResponse,
    HealthResponse,
    NoteModel,
    SearchRequest,
    SearchResponse,
    SearchResult,
    SimilarCasesMetadata,
    SimilarCasesRequest,
    SimilarCasesResponse,
    SynthesizedInsightsModel,
)
from ..core import config
from ..core.batch_indexer import BatchIndexer
from ..core.db import health_check
from ..core.embedding_cache import EmbeddingCacheManager
from ..core.errors import (
    CaseSimilarityError,
    EmbeddingGenerationError,
    MalformedVectorError,
    NotFoundError,
    ValidationError,
)
from ..core.search_service import semantic_search
from ..core.similar_cases import SIMILARITY_DECIMALS, SimilarCasePipeline
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build long-lived collaborators once and hand them to requests via app.state."""
    issues = config.validate_config()
    if issues:
        raise RuntimeError(f"Invalid configuration: {issues}")

    store = config.get_note_store()
    embedding_provider = config.get_embedding_provider()

    app.state.store = store
    app.state.cache_manager = EmbeddingCacheManager(store, embedding_provider)
    app.state.summarizer = config.get_case_summarizer()
    app.state.synthesizer = config.get_case_synthesizer()
    app.state.embedding_config = config.get_embedding_config()

    logger.log_operation("api.startup", "success", {
        "db_path": store.db_path,
        "embedding_provider": embedding_provider.provider_name,
        "embedding_model": embedding_provider.model_name
    })
    yield


# Initialize the FastAPI application
app = FastAPI(
    title="Case Similarity API",
    version=config.VERSION,
    description="Embedding cache, similarity search and similar-case synthesis over clinical notes",
    docs_url="/docs" if config.debug_enabled() else None,
    redoc_url="/redoc" if config.debug_enabled() else None,
    lifespan=lifespan
)


# Dependency providers; tests override these through app.dependency_overrides

def get_store(request: Request):
    return request.app.state.store


def get_cache_manager(request: Request):
    return request.app.state.cache_manager


def get_summarizer(request: Request):
    return request.app.state.summarizer


def get_synthesizer(request: Request):
    return request.app.state.synthesizer


def get_batch_indexer(store=Depends(get_store), cache_manager=Depends(get_cache_manager)):
    return BatchIndexer(store, cache_manager)


def get_pipeline(store=Depends(get_store), cache_manager=Depends(get_cache_manager),
                 summarizer=Depends(get_summarizer), synthesizer=Depends(get_synthesizer)):
    return SimilarCasePipeline(
        store,
        cache_manager,
        summarizer,
        synthesizer,
        max_concurrency=config.SUMMARY_CONCURRENCY
    )


def _embedding_config(cache_manager) -> EmbeddingConfig:
    provider = cache_manager.embedding_provider
    return EmbeddingConfig(provider=provider.provider_name, model=provider.model_name)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store=Depends(get_store), cache_manager=Depends(get_cache_manager)):
    """Check system health."""
    db_health = health_check(store.db_path)

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=config.VERSION,
        db_health=db_health,
        note_count=store.count_notes() if db_health else 0,
        embedding=_embedding_config(cache_manager)
    )


@app.post("/embeddings/generate", response_model=EmbeddingGenerateResponse)
def generate_embedding_endpoint(request: EmbeddingGenerateRequest, cache_manager=Depends(get_cache_manager)):
    """Embed a single note, reusing the cached vector unless forced or stale."""
    result = cache_manager.ensure_by_id(request.note_id, force=request.force)

    return EmbeddingGenerateResponse(
        note_id=result.note_id,
        skipped=result.skipped,
        model=result.model,
        dimensions=result.dimensions,
        text_length=result.text_length
    )


@app.post("/embeddings/batch", response_model=BatchEmbedResponse)
def batch_embed_endpoint(request: BatchEmbedRequest = None, indexer: BatchIndexer = Depends(get_batch_indexer)):
    """Embed notes that have no embedding (and, with reembed_all, stale-model ones)."""
    request = request or BatchEmbedRequest()
    result = indexer.run(reembed_all=request.reembed_all, limit=request.limit)

    return BatchEmbedResponse(
        processed=result.processed,
        skipped=result.skipped,
        errors=result.errors,
        error_details=[BatchErrorDetail(note_id=note_id, error=message) for note_id, message in result.error_details],
        model=result.model,
        provider=result.provider,
        total_candidates=result.total_candidates,
        message="All notes already have embeddings" if result.total_candidates == 0 else None
    )


@app.post("/embeddings/search", response_model=SearchResponse)
def search_embeddings_endpoint(request: SearchRequest, store=Depends(get_store),
                               cache_manager=Depends(get_cache_manager)):
    """Rank stored notes by similarity to a note or free text."""
    outcome = semantic_search(
        store,
        cache_manager,
        note_id=request.note_id,
        query=request.query,
        top_k=request.top_k,
        min_similarity=request.min_similarity
    )

    results = [
        SearchResult(
            note=NoteModel(
                id=match.note.id,
                type=match.note.type,
                patient_id=match.note.patient_id,
                patient_initials=match.note.patient_initials,
                created_at=match.note.created_at,
                output=json.loads(match.note.output_json)
            ),
            similarity=round(match.similarity, SIMILARITY_DECIMALS)
        )
        for match in outcome.matches
    ]

    return SearchResponse(
        query=request.query if outcome.query.query_type == "text" else f"Note #{request.note_id}",
        query_type=outcome.query.query_type,
        model=outcome.query.model,
        total_compared=outcome.total_compared,
        results=results
    )


@app.get("/embeddings/stats", response_model=EmbeddingStatsResponse)
def embedding_stats_endpoint(store=Depends(get_store), cache_manager=Depends(get_cache_manager)):
    """Embedding coverage and the current provider configuration."""
    stats = store.get_embedding_stats(current_model=cache_manager.model)

    return EmbeddingStatsResponse(
        stats=EmbeddingStats(**stats),
        current_config=_embedding_config(cache_manager)
    )


@app.post("/similar-cases", response_model=SimilarCasesResponse)
def similar_cases_endpoint(request: SimilarCasesRequest, pipeline: SimilarCasePipeline = Depends(get_pipeline)):
    """Summarize similar historical cases and synthesize insights across them."""
    result = pipeline.run(
        note_id=request.note_id,
        query=request.query,
        top_k=request.top_k,
        min_similarity=request.min_similarity
    )

    insights = None
    if result.synthesized_insights is not None:
        insights = SynthesizedInsightsModel(
            common_patterns=result.synthesized_insights.common_patterns,
            typical_workup=result.synthesized_insights.typical_workup,
            pitfalls=result.synthesized_insights.pitfalls
        )

    return SimilarCasesResponse(
        cases=[
            CaseSummaryModel(
                note_id=case.note_id,
                note_type=case.note_type,
                patient_id=case.patient_id,
                similarity=case.similarity,
                created_at=case.created_at,
                presentation=case.presentation,
                key_findings=case.key_findings,
                workup_performed=case.workup_performed,
                outcome=case.outcome,
                lessons_learned=case.lessons_learned
            )
            for case in result.cases
        ],
        synthesized_insights=insights,
        generated_at=result.generated_at,
        metadata=SimilarCasesMetadata(
            query_type=result.metadata["query_type"],
            total_candidates=result.metadata["total_candidates"],
            matches_found=result.metadata["matches_found"],
            cases_returned=result.metadata["cases_returned"],
            latency_ms=result.metadata["latency_ms"]
        )
    )


_STATUS_BY_ERROR = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (EmbeddingGenerationError, 502),
    (MalformedVectorError, 500),
]


@app.exception_handler(CaseSimilarityError)
async def case_similarity_exception_handler(request, exc):
    """Map core errors to HTTP statuses."""
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    logger.log_operation("api.error", "failed", {
        "path": request.url.path,
        "error_type": exc.__class__.__name__,
        "status_code": status_code
    })

    body = ErrorResponse(error_type=exc.__class__.__name__, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}")
    content = {"detail": "Internal server error"}
    if config.debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)

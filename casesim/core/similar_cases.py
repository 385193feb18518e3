"""
Similar-case retrieval and synthesis.

    acquire query vector -> rank -> summarize each match -> synthesize -> done

Ranking reads cached embeddings only. Summarization fans out with a fixed
concurrency cap; a failed summary drops that case. Synthesis runs only when at
least two summaries survive, and a failed synthesis leaves the cases intact.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional

from .note_text import extract_note_text
from .schema import CaseSummary, SimilarCasesResult, SimilarityMatch, SynthesisResult
from .search_service import semantic_search
from ..util.logging import logger

SIMILARITY_DECIMALS = 3
MIN_CASES_FOR_SYNTHESIS = 2


class SimilarCasePipeline:
    """Retrieves similar historical cases and derives insights from them."""

    def __init__(self, store, cache_manager, summarizer, synthesizer,
                 max_concurrency: int = 5, text_extractor=extract_note_text):
        """
        Args:
            store: NoteStore used for note lookup and candidate listing
            cache_manager: EmbeddingCacheManager producing query vectors
            summarizer: ICaseSummarizer called once per matched case
            synthesizer: ICaseSynthesizer called once per run
            max_concurrency: upper bound on simultaneous summarizer calls
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self.store = store
        self.cache_manager = cache_manager
        self.summarizer = summarizer
        self.synthesizer = synthesizer
        self.max_concurrency = max_concurrency
        self.text_extractor = text_extractor

    def run(self, note_id: Optional[int] = None, query: Optional[str] = None,
            top_k: int = 5, min_similarity: float = 0.5) -> SimilarCasesResult:
        """
        Find and summarize cases similar to a stored note or to free text.

        Raises:
            ValidationError: neither note_id nor query given, or bad limits
            NotFoundError: note_id does not exist
            EmbeddingGenerationError: the query vector could not be produced
        """
        start_time = time.monotonic()

        outcome = semantic_search(
            self.store,
            self.cache_manager,
            note_id=note_id,
            query=query,
            top_k=top_k,
            min_similarity=min_similarity
        )

        metadata = {
            "query_type": outcome.query.query_type,
            "model": outcome.query.model,
            "total_candidates": outcome.total_candidates,
            "matches_found": outcome.matches_found,
            "cases_returned": 0
        }

        if not outcome.matches:
            logger.log_pipeline_step("rank", "empty", {"matches_found": 0})
            metadata["latency_ms"] = self._elapsed_ms(start_time)
            return SimilarCasesResult(cases=[], metadata=metadata)

        cases = self.summarize_matches(outcome.matches)
        insights = self.synthesize_cases(cases)

        metadata["cases_returned"] = len(cases)
        metadata["latency_ms"] = self._elapsed_ms(start_time)

        return SimilarCasesResult(
            cases=cases,
            synthesized_insights=insights,
            generated_at=datetime.now(),
            metadata=metadata
        )

    def summarize_matches(self, matches: List[SimilarityMatch]) -> List[CaseSummary]:
        """Summarize each match independently; failures are logged and dropped. Rank order is kept."""
        workers = min(self.max_concurrency, len(matches))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            summaries = list(executor.map(self._summarize_one, matches))

        cases = [summary for summary in summaries if summary is not None]
        status = "success" if len(cases) == len(matches) else "partial"
        logger.log_pipeline_step("summarize", status, {
            "requested": len(matches),
            "summarized": len(cases)
        })
        return cases

    def _summarize_one(self, match: SimilarityMatch) -> Optional[CaseSummary]:
        note = match.note
        # A summarizer may raise or hand back an unusable payload; either way the case is dropped
        try:
            text = self.text_extractor(note)
            payload = self.summarizer.summarize(text, note.type)
            return CaseSummary(
                note_id=note.id,
                note_type=note.type,
                similarity=round(match.similarity, SIMILARITY_DECIMALS),
                created_at=note.created_at,
                presentation=payload.presentation,
                key_findings=list(payload.key_findings),
                workup_performed=list(payload.workup_performed),
                outcome=payload.outcome,
                lessons_learned=list(payload.lessons_learned) if payload.lessons_learned is not None else None,
                patient_id=note.patient_id
            )
        except Exception as e:
            logger.log_pipeline_step("summarize_case", "failed", {"note_id": note.id, "error": str(e)})
            return None

    def synthesize_cases(self, cases: List[CaseSummary]) -> Optional[SynthesisResult]:
        """Cross-case insights, or None when there are too few cases or synthesis fails."""
        if len(cases) < MIN_CASES_FOR_SYNTHESIS:
            logger.log_pipeline_step("synthesize", "skipped", {"cases": len(cases)})
            return None

        try:
            insights = self.synthesizer.synthesize(cases)
        except Exception as e:
            logger.log_pipeline_step("synthesize", "degraded", {"cases": len(cases), "error": str(e)})
            return None

        logger.log_pipeline_step("synthesize", "success", {"cases": len(cases)})
        return insights

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

"""
Per-case summarization and cross-case synthesis backed by Ollama models.

Model replies are parsed into validated pydantic payloads before anything else
sees them; an unparsable or malformed reply raises SummarizationError or
SynthesisError so the pipeline can isolate it.
"""

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

import ollama
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from .prompts import (
    CASE_SUMMARY_SYSTEM_PROMPT,
    CROSS_CASE_SYNTHESIS_SYSTEM_PROMPT,
    build_case_summary_prompt,
    build_cross_case_synthesis_prompt,
)
from ..core.errors import SummarizationError, SynthesisError
from ..core.schema import CaseSummary, SynthesisResult
from ..util.logging import logger

_FENCE_RE = re.compile(r"```(?:json)?\s*")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else json.dumps(item) for item in value if item is not None]


class CaseSummaryPayload(BaseModel):
    """Structured extraction for one case as returned by the summarizer."""
    model_config = ConfigDict(populate_by_name=True)

    presentation: str = ""
    key_findings: List[str] = Field(default_factory=list, alias="keyFindings")
    workup_performed: List[str] = Field(default_factory=list, alias="workupPerformed")
    outcome: Optional[str] = None
    lessons_learned: Optional[List[str]] = Field(default=None, alias="lessonsLearned")

    @field_validator('presentation', mode='before')
    @classmethod
    def presentation_as_text(cls, v):
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError('presentation must be a string')
        return v.strip()

    @field_validator('key_findings', 'workup_performed', mode='before')
    @classmethod
    def coerce_required_lists(cls, v):
        return _string_list(v)

    @field_validator('outcome', mode='before')
    @classmethod
    def blank_outcome_is_absent(cls, v):
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None

    @field_validator('lessons_learned', mode='before')
    @classmethod
    def lessons_list_or_absent(cls, v):
        if not isinstance(v, list):
            return None
        return _string_list(v)


class SynthesisPayload(BaseModel):
    """Cross-case insights as returned by the synthesizer."""
    model_config = ConfigDict(populate_by_name=True)

    common_patterns: List[str] = Field(default_factory=list, alias="commonPatterns")
    typical_workup: List[str] = Field(default_factory=list, alias="typicalWorkup")
    pitfalls: List[str] = Field(default_factory=list)

    @field_validator('common_patterns', 'typical_workup', 'pitfalls', mode='before')
    @classmethod
    def coerce_lists(cls, v):
        return _string_list(v)

    def to_result(self) -> SynthesisResult:
        return SynthesisResult(
            common_patterns=self.common_patterns,
            typical_workup=self.typical_workup,
            pitfalls=self.pitfalls
        )


def strip_code_fences(response: str) -> str:
    """Remove markdown code fences some models wrap around JSON."""
    return _FENCE_RE.sub("", response).replace("```", "").strip()


def _load_json_object(response: str) -> dict:
    data = json.loads(strip_code_fences(response))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_case_summary_response(response: str) -> CaseSummaryPayload:
    try:
        return CaseSummaryPayload.model_validate(_load_json_object(response))
    except (ValueError, PydanticValidationError) as e:
        raise SummarizationError(f"Unparsable case summary: {e}") from e


def parse_synthesis_response(response: str) -> SynthesisResult:
    try:
        return SynthesisPayload.model_validate(_load_json_object(response)).to_result()
    except (ValueError, PydanticValidationError) as e:
        raise SynthesisError(f"Unparsable synthesis: {e}") from e


class ICaseSummarizer(ABC):
    """Turns one note's text into a structured case summary."""

    @abstractmethod
    def summarize(self, text: str, document_type: str) -> CaseSummaryPayload:
        """
        Raises:
            SummarizationError: provider failure or unparsable reply
        """
        pass


class ICaseSynthesizer(ABC):
    """Distils insights that recur across several case summaries."""

    @abstractmethod
    def synthesize(self, cases: List[CaseSummary]) -> SynthesisResult:
        """
        Raises:
            SynthesisError: provider failure or unparsable reply
        """
        pass


class _OllamaJsonAgent:
    """Shared plumbing for JSON-mode Ollama chat calls."""

    def __init__(self, model_name: str, host: str = None, timeout: float = None, client: ollama.Client = None):
        self.model_name = model_name
        self.client = client if client is not None else ollama.Client(host=host, timeout=timeout)

    def _chat(self, system_prompt: str, user_prompt: str) -> str:
        start_time = datetime.now()

        response = self.client.chat(
            model=self.model_name,
            messages=[
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': user_prompt}
            ],
            format='json',
            options={
                'temperature': 0.2  # Extraction, not creative writing
            }
        )

        processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
        content = response['message']['content'] or ''
        logger.log_operation("agent.chat", "success", {
            "model": self.model_name,
            "processing_time_ms": processing_time,
            "response_length": len(content)
        })
        return content


class OllamaCaseSummarizer(_OllamaJsonAgent, ICaseSummarizer):

    def summarize(self, text: str, document_type: str) -> CaseSummaryPayload:
        try:
            content = self._chat(CASE_SUMMARY_SYSTEM_PROMPT, build_case_summary_prompt(text, document_type))
        except Exception as e:
            raise SummarizationError(f"Case summarizer call failed: {e}") from e
        return parse_case_summary_response(content)


class OllamaCaseSynthesizer(_OllamaJsonAgent, ICaseSynthesizer):

    def synthesize(self, cases: List[CaseSummary]) -> SynthesisResult:
        try:
            content = self._chat(CROSS_CASE_SYNTHESIS_SYSTEM_PROMPT, build_cross_case_synthesis_prompt(cases))
        except Exception as e:
            raise SynthesisError(f"Cross-case synthesizer call failed: {e}") from e
        return parse_synthesis_response(content)

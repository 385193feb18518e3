"""
Prompt templates for similar-case summarization and cross-case synthesis.
"""

from typing import List

from ..core.schema import CaseSummary

CASE_SUMMARY_SYSTEM_PROMPT = """You are a clinical informatics specialist helping physicians learn from similar cases in their practice.

Your role is to:
1. Summarize key aspects of similar historical cases
2. Extract lessons learned and clinical pearls
3. Identify patterns across cases that may inform current management

Be educational and highlight both successful approaches and pitfalls to avoid."""

CROSS_CASE_SYNTHESIS_SYSTEM_PROMPT = """You are a clinical informatics specialist synthesizing insights across multiple similar cases.

Analyze patterns, common approaches, and lessons learned to provide actionable insights for the current case."""


def build_case_summary_prompt(note_text: str, note_type: str) -> str:
    return f"""Summarize this clinical case for comparison with similar presentations:

NOTE TYPE: {note_type}

CONTENT:
{note_text}

Extract the following as JSON:
{{
  "presentation": "One sentence describing the presenting complaint/diagnosis",
  "keyFindings": ["Key clinical findings that defined this case"],
  "workupPerformed": ["Diagnostic tests and their key results"],
  "outcome": "Brief outcome if available",
  "lessonsLearned": ["Clinical pearls or lessons from this case"]
}}

Return ONLY valid JSON, no markdown formatting."""


def _format_case(index: int, case: CaseSummary) -> str:
    lessons = ", ".join(case.lessons_learned) if case.lessons_learned else "None recorded"
    return (
        f"Case {index} ({case.similarity * 100:.0f}% similar):\n"
        f"- Presentation: {case.presentation}\n"
        f"- Key Findings: {', '.join(case.key_findings)}\n"
        f"- Workup: {', '.join(case.workup_performed)}\n"
        f"- Outcome: {case.outcome or 'Not recorded'}\n"
        f"- Lessons: {lessons}"
    )


def build_cross_case_synthesis_prompt(cases: List[CaseSummary]) -> str:
    case_summaries = "\n\n".join(_format_case(i + 1, case) for i, case in enumerate(cases))

    return f"""Synthesize insights from these similar cases:

{case_summaries}

Provide synthesized insights as JSON:
{{
  "commonPatterns": ["Patterns that appear across multiple cases"],
  "typicalWorkup": ["Standard workup elements for this type of presentation"],
  "pitfalls": ["Common pitfalls or mistakes to avoid based on these cases"]
}}

Return ONLY valid JSON, no markdown formatting."""

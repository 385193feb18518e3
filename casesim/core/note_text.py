"""
Projection from a note's structured output to the text that gets fingerprinted
and embedded. The same projection must be used when an embedding is created and
when its staleness is checked, so everything goes through extract_note_text.
"""

import json
from typing import Any, Dict, List

from .schema import Note

_CONTENT_TYPES = ("progress", "discharge", "hp")


def _canonical_json(output: Any) -> str:
    return json.dumps(output, sort_keys=True, ensure_ascii=False)


def _join_items(items: Any, fmt) -> str:
    if not isinstance(items, list):
        return ""
    lines = [fmt(item) for item in items if isinstance(item, dict)]
    return "\n".join(lines)


def _analysis_text(output: Dict[str, Any]) -> str:
    parts: List[str] = []

    differential = _join_items(
        output.get("differentialDiagnosis"),
        lambda d: f"{d.get('diagnosis', '')}: {d.get('reasoning', '')}"
    )
    workup = _join_items(
        output.get("recommendedWorkup"),
        lambda w: f"{w.get('test', '')}: {w.get('rationale', '')}"
    )
    consults = _join_items(
        output.get("suggestedConsults"),
        lambda c: f"Consult {c.get('specialty', '')}: {c.get('reason', '')}"
    )

    for block in (differential, workup, consults):
        if block:
            parts.append(block)

    return "\n\n".join(parts) or _canonical_json(output)


def extract_note_text(note: Note) -> str:
    """
    Return the searchable text of a note.

    Raises:
        ValueError: if the note's output payload is not valid JSON
    """
    output = json.loads(note.output_json)

    if note.type in _CONTENT_TYPES:
        content = output.get("content", "") if isinstance(output, dict) else ""
        return content if isinstance(content, str) else ""

    if note.type == "analysis" and isinstance(output, dict):
        return _analysis_text(output)

    return _canonical_json(output)

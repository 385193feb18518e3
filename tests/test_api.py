"""
API tests with the note store, embedding provider and agents replaced through dependency overrides.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from casesim.api.main import app, get_cache_manager, get_store, get_summarizer, get_synthesizer
from casesim.core.embedding_cache import EmbeddingCacheManager
from casesim.core.schema import SynthesisResult
from casesim.agents.case_agents import CaseSummaryPayload


@pytest.fixture
def summarizer():
    agent = MagicMock()
    agent.summarize.side_effect = lambda text, document_type: CaseSummaryPayload(
        presentation=text,
        key_findings=["finding"],
        workup_performed=["workup"]
    )
    return agent


@pytest.fixture
def synthesizer():
    agent = MagicMock()
    agent.synthesize.return_value = SynthesisResult(
        common_patterns=["pattern"],
        typical_workup=["troponin"],
        pitfalls=["premature closure"]
    )
    return agent


@pytest.fixture
def client(store, cache_manager, summarizer, synthesizer):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache_manager] = lambda: cache_manager
    app.dependency_overrides[get_summarizer] = lambda: summarizer
    app.dependency_overrides[get_synthesizer] = lambda: synthesizer
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["db_health"] is True
    assert data["note_count"] == 0
    assert data["embedding"]["provider"] == "hash"
    assert data["embedding"]["model"] == "hash-32"


def test_generate_embedding_then_skip(client, add_progress_note):
    note_id = add_progress_note("Acute pancreatitis")

    first = client.post("/embeddings/generate", json={"note_id": note_id})
    second = client.post("/embeddings/generate", json={"note_id": note_id})
    forced = client.post("/embeddings/generate", json={"note_id": note_id, "force": True})

    assert first.status_code == 200
    assert first.json()["skipped"] is False
    assert first.json()["dimensions"] == 32
    assert first.json()["text_length"] == len("Acute pancreatitis")
    assert second.json()["skipped"] is True
    assert forced.json()["skipped"] is False


def test_generate_embedding_unknown_note(client):
    response = client.post("/embeddings/generate", json={"note_id": 999})

    assert response.status_code == 404
    assert response.json()["error_type"] == "NotFoundError"


def test_generate_embedding_provider_failure(store, add_progress_note, client):
    note_id = add_progress_note("text")
    provider = MagicMock()
    provider.model_name = "mock-model"
    provider.provider_name = "mock"
    provider.embed.side_effect = RuntimeError("upstream 503")
    app.dependency_overrides[get_cache_manager] = lambda: EmbeddingCacheManager(store, provider)

    response = client.post("/embeddings/generate", json={"note_id": note_id})

    assert response.status_code == 502
    assert response.json()["error_type"] == "EmbeddingGenerationError"


def test_batch_embed(client, add_progress_note):
    for i in range(3):
        add_progress_note(f"note {i}")

    response = client.post("/embeddings/batch", json={"limit": 2})
    data = response.json()

    assert response.status_code == 200
    assert data["processed"] == 2
    assert data["errors"] == 0
    assert data["error_details"] == []
    assert data["model"] == "hash-32"

    rest = client.post("/embeddings/batch").json()
    assert rest["processed"] == 1

    done = client.post("/embeddings/batch").json()
    assert done["total_candidates"] == 0
    assert done["message"] == "All notes already have embeddings"


def test_batch_embed_rejects_negative_limit(client):
    assert client.post("/embeddings/batch", json={"limit": -1}).status_code == 422


def test_search_by_text(client, add_progress_note, cache_manager):
    note_id = add_progress_note("Diabetic ketoacidosis")
    cache_manager.ensure_by_id(note_id)

    response = client.post("/embeddings/search", json={"query": "Diabetic ketoacidosis", "min_similarity": 0.0})
    data = response.json()

    assert response.status_code == 200
    assert data["query_type"] == "text"
    assert data["total_compared"] == 1
    assert data["results"][0]["note"]["id"] == note_id
    assert data["results"][0]["note"]["output"] == {"content": "Diabetic ketoacidosis"}
    assert data["results"][0]["similarity"] == 1.0


def test_search_requires_input(client):
    response = client.post("/embeddings/search", json={})

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationError"


def test_search_rejects_out_of_range_limits(client):
    assert client.post("/embeddings/search", json={"query": "x", "top_k": 0}).status_code == 422
    assert client.post("/embeddings/search", json={"query": "x", "min_similarity": 2}).status_code == 422


def test_embedding_stats(client, add_progress_note, cache_manager):
    cache_manager.ensure_by_id(add_progress_note("one"))
    add_progress_note("two")

    data = client.get("/embeddings/stats").json()

    assert data["stats"]["total_notes"] == 2
    assert data["stats"]["embedded_notes"] == 1
    assert data["stats"]["notes_without_embedding"] == 1
    assert data["stats"]["by_model"][0]["model"] == "hash-32"
    assert data["current_config"]["model"] == "hash-32"


def test_similar_cases_camel_case_response(client, add_progress_note, cache_manager, summarizer, synthesizer):
    for note_id in (add_progress_note("Upper GI bleed"), add_progress_note("Upper GI bleed")):
        cache_manager.ensure_by_id(note_id)

    response = client.post("/similar-cases", json={"query": "Upper GI bleed"})
    data = response.json()

    assert response.status_code == 200
    assert len(data["cases"]) == 2
    assert data["cases"][0]["keyFindings"] == ["finding"]
    assert data["cases"][0]["workupPerformed"] == ["workup"]
    assert data["cases"][0]["similarity"] == 1.0
    assert data["synthesizedInsights"]["typicalWorkup"] == ["troponin"]
    assert data["metadata"]["casesReturned"] == 2
    assert data["metadata"]["queryType"] == "text"
    assert "generatedAt" in data
    assert summarizer.summarize.call_count == 2
    synthesizer.synthesize.assert_called_once()


def test_similar_cases_synthesis_failure_degrades(client, add_progress_note, cache_manager, synthesizer):
    for note_id in (add_progress_note("Stroke"), add_progress_note("Stroke"), add_progress_note("Stroke")):
        cache_manager.ensure_by_id(note_id)
    synthesizer.synthesize.side_effect = RuntimeError("model crashed")

    response = client.post("/similar-cases", json={"query": "Stroke"})
    data = response.json()

    assert response.status_code == 200
    assert len(data["cases"]) == 3
    assert data["synthesizedInsights"] is None


def test_similar_cases_unknown_note(client):
    response = client.post("/similar-cases", json={"note_id": 31337})

    assert response.status_code == 404


def test_search_returns_notes_with_list_output(client, store, cache_manager):
    note_id = store.add_note("analysis", ["chest pain", "troponin"])
    cache_manager.ensure_by_id(note_id)

    response = client.post("/embeddings/search", json={"query": "anything", "min_similarity": -1})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["note"]["id"] for r in results] == [note_id]
    assert results[0]["note"]["output"] == ["chest pain", "troponin"]

"""
Tests for the SQLite note store.
"""

import pytest

from casesim.core.db import get_db, health_check
from casesim.vector.codec import decode_vector, encode_vector


def test_add_and_get_note(store):
    note_id = store.add_note(
        "progress",
        {"content": "Day 2, improving"},
        input_data={"notes": "raw"},
        patient_id=7,
        patient_initials="JD"
    )

    note = store.get_note(note_id)
    assert note.id == note_id
    assert note.type == "progress"
    assert note.patient_id == 7
    assert note.patient_initials == "JD"
    assert '"Day 2, improving"' in note.output_json
    assert note.created_at


def test_get_missing_note(store):
    assert store.get_note(999) is None


def test_add_note_rejects_unknown_type(store):
    with pytest.raises(ValueError):
        store.add_note("radiology", {"content": "x"})


def test_update_and_delete(store, add_progress_note):
    note_id = add_progress_note("before")

    assert store.update_note_output(note_id, {"content": "after"}) is True
    assert '"after"' in store.get_note(note_id).output_json
    assert store.update_note_output(12345, {"content": "x"}) is False

    assert store.delete_note(note_id) is True
    assert store.get_note(note_id) is None
    assert store.delete_note(note_id) is False


def test_upsert_overwrites_single_row(store, add_progress_note):
    note_id = add_progress_note("text")

    store.upsert_embedding(note_id, "model-a", encode_vector([1.0, 2.0]), 2, "h1")
    store.upsert_embedding(note_id, "model-b", encode_vector([3.0, 4.0, 5.0]), 3, "h2")

    embedding = store.get_embedding(note_id)
    assert embedding.model == "model-b"
    assert embedding.dimensions == 3
    assert embedding.content_hash == "h2"
    assert decode_vector(embedding.vector_blob).tolist() == [3.0, 4.0, 5.0]

    with get_db(store.db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM note_embeddings WHERE note_id = ?", (note_id,)).fetchone()[0]
    assert count == 1


def test_deleting_note_removes_embedding(store, add_progress_note):
    note_id = add_progress_note("text")
    store.upsert_embedding(note_id, "model-a", encode_vector([1.0]), 1, "h1")

    store.delete_note(note_id)

    assert store.get_embedding(note_id) is None


def test_candidate_listings(store, add_progress_note):
    never = add_progress_note("never embedded")
    current = add_progress_note("current model")
    stale = add_progress_note("old model")

    store.upsert_embedding(current, "model-b", encode_vector([1.0]), 1, "h")
    store.upsert_embedding(stale, "model-a", encode_vector([1.0]), 1, "h")

    assert [n.id for n in store.list_notes_without_embedding()] == [never]
    assert [n.id for n in store.list_notes_with_stale_embedding("model-b")] == [stale]
    assert {n.id for n, _ in store.list_notes_with_embeddings()} == {current, stale}


def test_embedding_stats(store, add_progress_note):
    ids = [add_progress_note(f"note {i}") for i in range(4)]
    store.upsert_embedding(ids[0], "model-a", encode_vector([1.0, 0.0]), 2, "h")
    store.upsert_embedding(ids[1], "model-b", encode_vector([1.0, 0.0, 0.0]), 3, "h")
    store.upsert_embedding(ids[2], "model-b", encode_vector([0.0, 1.0, 0.0]), 3, "h")

    stats = store.get_embedding_stats(current_model="model-b")

    assert stats["total_notes"] == 4
    assert stats["embedded_notes"] == 3
    assert stats["notes_without_embedding"] == 1
    assert stats["stale_embeddings"] == 1
    assert stats["by_model"] == [
        {"model": "model-a", "count": 1, "dimensions": 2},
        {"model": "model-b", "count": 2, "dimensions": 3},
    ]


def test_health_check(store):
    assert health_check(store.db_path) is True
    assert store.count_notes() == 0

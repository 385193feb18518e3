"""
Tests for batch embedding over the note store.
"""

import pytest

from casesim.core.batch_indexer import BatchIndexer
from casesim.core.db import get_db
from casesim.core.embedding_cache import EmbeddingCacheManager
from casesim.core.errors import ValidationError
from casesim.vector.embeddings import DeterministicHashEmbedding


class FlakyEmbedding(DeterministicHashEmbedding):
    """Fails for any text containing the marker."""

    def __init__(self, marker="FAIL"):
        super().__init__(dimension=16)
        self.marker = marker

    def embed_text(self, text):
        if self.marker in text:
            raise RuntimeError("rate limited")
        return super().embed_text(text)


def test_batch_embeds_every_note(store, cache_manager, hash_provider, add_progress_note):
    ids = [add_progress_note(f"note {i}") for i in range(5)]

    result = BatchIndexer(store, cache_manager).run()

    assert result.processed == 5
    assert result.skipped == 0
    assert result.errors == 0
    assert result.total_candidates == 5
    assert result.model == "hash-32"
    assert result.provider == "hash"
    assert all(store.get_embedding(note_id) is not None for note_id in ids)


def test_second_run_has_nothing_to_do(store, cache_manager, hash_provider, add_progress_note):
    for i in range(3):
        add_progress_note(f"note {i}")
    indexer = BatchIndexer(store, cache_manager)
    indexer.run()

    result = indexer.run()

    assert result.total_candidates == 0
    assert result.processed == 0
    assert hash_provider.calls == 3


def test_partial_failure_is_isolated(store, add_progress_note):
    ids = [add_progress_note(f"note {i}") for i in range(5)]
    store.update_note_output(ids[1], {"content": "FAIL here"})
    store.update_note_output(ids[3], {"content": "FAIL again"})

    manager = EmbeddingCacheManager(store, FlakyEmbedding())
    result = BatchIndexer(store, manager).run()

    assert result.processed == 3
    assert result.errors == 2
    assert result.processed + result.skipped + result.errors == 5
    assert [note_id for note_id, _ in result.error_details] == [ids[1], ids[3]]
    assert "rate limited" in result.error_details[0][1]
    assert store.get_embedding(ids[1]) is None
    assert store.get_embedding(ids[4]) is not None


def test_malformed_note_is_recorded_not_raised(store, add_progress_note, cache_manager):
    good = add_progress_note("good")
    bad = add_progress_note("bad")
    with get_db(store.db_path) as conn:
        conn.execute("UPDATE notes SET output_json = ? WHERE id = ?", ("{broken", bad))
        conn.commit()

    result = BatchIndexer(store, cache_manager).run()

    assert result.processed == 1
    assert result.errors == 1
    assert result.error_details[0][0] == bad
    assert store.get_embedding(good) is not None


def test_limit_caps_candidates(store, cache_manager, add_progress_note):
    ids = [add_progress_note(f"note {i}") for i in range(5)]

    result = BatchIndexer(store, cache_manager).run(limit=2)

    assert result.processed == 2
    assert result.total_candidates == 2
    assert store.get_embedding(ids[0]) is not None
    assert store.get_embedding(ids[2]) is None


def test_zero_limit_does_nothing(store, cache_manager, hash_provider, add_progress_note):
    add_progress_note("note")

    result = BatchIndexer(store, cache_manager).run(limit=0)

    assert result.processed == 0
    assert result.total_candidates == 0
    assert hash_provider.calls == 0


def test_negative_limit_rejected(store, cache_manager):
    with pytest.raises(ValidationError):
        BatchIndexer(store, cache_manager).run(limit=-1)


def test_reembed_all_includes_stale_model(store, cache_manager, add_progress_note, seed_embedding):
    fresh = add_progress_note("never embedded")
    stale = add_progress_note("old model")
    current = add_progress_note("current model")
    seed_embedding(stale, [1.0, 0.0], model="legacy-model")
    cache_manager.ensure_by_id(current)

    indexer = BatchIndexer(store, cache_manager)

    assert [n.id for n in indexer.select_candidates(reembed_all=False, limit=10)] == [fresh]
    assert [n.id for n in indexer.select_candidates(reembed_all=True, limit=10)] == [fresh, stale]

    result = indexer.run(reembed_all=True)

    assert result.processed == 2
    assert store.get_embedding(stale).model == "hash-32"
    assert store.get_embedding_stats(current_model="hash-32")["stale_embeddings"] == 0

"""
Data access for notes and note embeddings.

NoteStore is the only persistence surface the case-similarity core talks to.
Embedding rows are written exclusively through upsert_embedding, which is a
single statement inside a single transaction.
"""

import json
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from .db import get_db, init_db
from .schema import NOTE_TYPES, Embedding, Note
from ..util.logging import logger

_NOTE_COLUMNS = "n.id, n.type, n.input_json, n.output_json, n.created_at, n.patient_id, n.patient_initials"
_EMBEDDING_COLUMNS = "e.note_id, e.embedding_model, e.embedding_vector, e.embedding_dimensions, e.content_hash, e.updated_at"


def _row_to_note(row) -> Note:
    note_id, note_type, input_json, output_json, created_at, patient_id, patient_initials = row
    return Note(
        id=note_id,
        type=note_type,
        input_json=input_json,
        output_json=output_json,
        created_at=created_at,
        patient_id=patient_id,
        patient_initials=patient_initials or ""
    )


def _row_to_embedding(row) -> Embedding:
    note_id, model, vector_blob, dimensions, content_hash, updated_at = row
    return Embedding(
        note_id=note_id,
        model=model,
        vector_blob=bytes(vector_blob),
        dimensions=dimensions,
        content_hash=content_hash,
        updated_at=updated_at
    )


class NoteStore:
    """SQLite-backed store for notes and their cached embeddings."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    # Note access (seeding and maintenance; note CRUD proper lives elsewhere)

    def add_note(self, note_type: str, output: Dict[str, Any], input_data: Dict[str, Any] = None,
                 patient_id: int = None, patient_initials: str = "", created_at: str = None) -> int:
        """Insert a note and return its id."""
        if note_type not in NOTE_TYPES:
            raise ValueError(f"note_type must be one of: {list(NOTE_TYPES)}")

        columns = ["type", "patient_id", "patient_initials", "input_json", "output_json"]
        values = [note_type, patient_id, patient_initials, json.dumps(input_data or {}), json.dumps(output)]
        if created_at is not None:
            columns.append("created_at")
            values.append(created_at)

        placeholders = ", ".join("?" for _ in columns)
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO notes ({', '.join(columns)}) VALUES ({placeholders})",
                values
            )
            conn.commit()
            return cursor.lastrowid

    def update_note_output(self, note_id: int, output: Dict[str, Any]) -> bool:
        """Replace a note's output payload. Returns False if the note does not exist."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE notes SET output_json = ? WHERE id = ?", (json.dumps(output), note_id))
            conn.commit()
            return cursor.rowcount > 0

    def delete_note(self, note_id: int) -> bool:
        """Delete a note; its embedding goes with it."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            conn.commit()
            return cursor.rowcount > 0

    def get_note(self, note_id: int) -> Optional[Note]:
        """Get a note by id."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_NOTE_COLUMNS} FROM notes n WHERE n.id = ?", (note_id,))
            row = cursor.fetchone()
            return _row_to_note(row) if row else None

    def count_notes(self) -> int:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM notes")
            return cursor.fetchone()[0]

    # Embedding access

    def get_embedding(self, note_id: int) -> Optional[Embedding]:
        """Get the cached embedding for a note."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_EMBEDDING_COLUMNS} FROM note_embeddings e WHERE e.note_id = ?", (note_id,))
            row = cursor.fetchone()
            return _row_to_embedding(row) if row else None

    def upsert_embedding(self, note_id: int, model: str, vector_blob: bytes, dimensions: int, content_hash: str) -> None:
        """Insert or overwrite the single embedding row for a note."""
        try:
            with get_db(self.db_path) as conn:
                # The connection context manager commits on success and rolls back on error
                with conn:
                    conn.execute(
                        '''
                        INSERT INTO note_embeddings
                            (note_id, embedding_model, embedding_vector, embedding_dimensions, content_hash)
                        VALUES (?, ?, ?, ?, ?)
                        ON CONFLICT(note_id) DO UPDATE SET
                            embedding_model = excluded.embedding_model,
                            embedding_vector = excluded.embedding_vector,
                            embedding_dimensions = excluded.embedding_dimensions,
                            content_hash = excluded.content_hash,
                            updated_at = datetime('now')
                        ''',
                        (note_id, model, sqlite3.Binary(vector_blob), dimensions, content_hash)
                    )
        except sqlite3.Error as e:
            logger.error(f"Failed to upsert embedding for note {note_id}: {e}")
            raise

    def list_notes_with_embeddings(self) -> List[Tuple[Note, Embedding]]:
        """All notes that have a live embedding, newest first."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f'''
                SELECT {_NOTE_COLUMNS}, {_EMBEDDING_COLUMNS}
                FROM notes n
                JOIN note_embeddings e ON e.note_id = n.id
                ORDER BY n.created_at DESC, n.id DESC
                '''
            )
            return [(_row_to_note(row[:7]), _row_to_embedding(row[7:])) for row in cursor.fetchall()]

    def list_notes_without_embedding(self) -> List[Note]:
        """Notes that have never been embedded, oldest first."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f'''
                SELECT {_NOTE_COLUMNS}
                FROM notes n
                LEFT JOIN note_embeddings e ON e.note_id = n.id
                WHERE e.note_id IS NULL
                ORDER BY n.id ASC
                '''
            )
            return [_row_to_note(row) for row in cursor.fetchall()]

    def list_notes_with_stale_embedding(self, model: str) -> List[Note]:
        """Notes whose embedding was produced by a model other than `model`, oldest first."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f'''
                SELECT {_NOTE_COLUMNS}
                FROM notes n
                JOIN note_embeddings e ON e.note_id = n.id
                WHERE e.embedding_model != ?
                ORDER BY n.id ASC
                ''',
                (model,)
            )
            return [_row_to_note(row) for row in cursor.fetchall()]

    def get_embedding_stats(self, current_model: str = None) -> Dict[str, Any]:
        """Coverage statistics for the embedding cache."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM notes")
            total_notes = cursor.fetchone()[0]

            cursor.execute(
                "SELECT embedding_model, COUNT(*), MAX(embedding_dimensions) "
                "FROM note_embeddings GROUP BY embedding_model ORDER BY embedding_model"
            )
            by_model = [
                {"model": model, "count": count, "dimensions": dimensions}
                for model, count, dimensions in cursor.fetchall()
            ]

        embedded_notes = sum(entry["count"] for entry in by_model)
        stale = 0
        if current_model is not None:
            stale = sum(entry["count"] for entry in by_model if entry["model"] != current_model)

        return {
            "total_notes": total_notes,
            "embedded_notes": embedded_notes,
            "notes_without_embedding": total_notes - embedded_notes,
            "stale_embeddings": stale,
            "by_model": by_model
        }

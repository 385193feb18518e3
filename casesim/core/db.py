"""
SQLite storage for notes and their cached embeddings.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from . import config


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection with foreign keys enforced."""
    conn = sqlite3.connect(db_path or config.DB_PATH)
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    config.ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL CHECK(type IN ('progress', 'discharge', 'analysis', 'hp')),
                patient_id INTEGER,
                patient_initials TEXT NOT NULL DEFAULT '',
                input_json TEXT NOT NULL,
                output_json TEXT NOT NULL,
                created_at TEXT DEFAULT (datetime('now'))
            )
        ''')

        # One live embedding per note; rows are overwritten, never versioned
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS note_embeddings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                note_id INTEGER NOT NULL UNIQUE REFERENCES notes(id) ON DELETE CASCADE,
                embedding_model TEXT NOT NULL,
                embedding_vector BLOB NOT NULL,
                embedding_dimensions INTEGER NOT NULL,
                content_hash TEXT NOT NULL,
                created_at TEXT DEFAULT (datetime('now')),
                updated_at TEXT DEFAULT (datetime('now'))
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_notes_created_at ON notes(created_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_embeddings_model ON note_embeddings(embedding_model)')

        conn.commit()


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            return all(table in table_names for table in ['notes', 'note_embeddings'])
    except sqlite3.Error:
        return False

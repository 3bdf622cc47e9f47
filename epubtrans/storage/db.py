# storage/db.py
import os
import sqlite3
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".epubtrans" / "epubtrans.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id            TEXT    PRIMARY KEY,
    source_path   TEXT    NOT NULL,
    file_name     TEXT    NOT NULL,
    target_lang   TEXT    NOT NULL,
    status        TEXT    NOT NULL DEFAULT 'pending',
    error_message TEXT,
    metadata_json TEXT    NOT NULL DEFAULT '{}',
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_books_file_name ON books(file_name);

CREATE TABLE IF NOT EXISTS pages (
    book_id            TEXT    NOT NULL,
    page_order         INTEGER NOT NULL,
    page_id            TEXT    NOT NULL,
    title              TEXT    NOT NULL,
    original_content   TEXT    NOT NULL,
    translated_content TEXT    NOT NULL DEFAULT '',
    translated         INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    PRIMARY KEY (book_id, page_order)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys (SQLite las trae desactivadas).
    """
    path = db_path or os.environ.get("EPUBTRANS_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    # El service puede guardar desde el hilo del CLI y desde callbacks
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)

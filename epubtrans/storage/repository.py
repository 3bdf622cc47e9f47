# storage/repository.py
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Optional

from epubtrans.models import Book, BookMetadata, Page, TranslationStatus
from epubtrans.storage.db import get_connection, init_schema

logger = logging.getLogger(__name__)


class BookRepository:
    """
    Registro de libros: única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.

    save() es un upsert del agregado completo (libro + páginas).
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        self._lock = threading.Lock()
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Escritura
    # ------------------------------------------------------------------

    def save(self, book: Book) -> Book:
        now = datetime.now(timezone.utc).isoformat()
        page_rows = [
            (
                book.id,
                page.order,
                page.id,
                page.title,
                page.original_content,
                page.translated_content,
                int(page.translated),
            )
            for page in book.pages
        ]

        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO books
                    (id, source_path, file_name, target_lang, status,
                     error_message, metadata_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    source_path   = excluded.source_path,
                    file_name     = excluded.file_name,
                    target_lang   = excluded.target_lang,
                    status        = excluded.status,
                    error_message = excluded.error_message,
                    metadata_json = excluded.metadata_json,
                    updated_at    = excluded.updated_at
                """,
                (
                    book.id, book.source_path, book.file_name, book.target_lang,
                    book.status.value, book.error_message,
                    _metadata_to_json(book.metadata), now, now,
                ),
            )
            # Las páginas se reemplazan enteras: el orden lo manda el Book
            self._conn.execute("DELETE FROM pages WHERE book_id = ?", (book.id,))
            self._conn.executemany(
                """
                INSERT INTO pages
                    (book_id, page_order, page_id, title,
                     original_content, translated_content, translated)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                page_rows,
            )

        logger.debug("Libro guardado: %s (%d páginas)", book.id, len(page_rows))
        return book

    def delete(self, book_id: str) -> bool:
        """Borra el libro y sus páginas. Devuelve False si no existía."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM pages WHERE book_id = ?", (book_id,))
            cursor = self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    def find_by_id(self, book_id: str) -> Optional[Book]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM books WHERE id = ?", (book_id,)
            ).fetchone()
            return self._load(row) if row else None

    def find_by_file_name(self, file_name: str) -> Optional[Book]:
        """El más reciente con ese nombre de archivo."""
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM books WHERE file_name = ?
                ORDER BY updated_at DESC, rowid DESC LIMIT 1
                """,
                (file_name,),
            ).fetchone()
            return self._load(row) if row else None

    def exists_by_id(self, book_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM books WHERE id = ?", (book_id,)
            ).fetchone()
        return row is not None

    def list_books(self) -> list[Book]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM books ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
            return [self._load(r) for r in rows]

    # ------------------------------------------------------------------
    # Mapeo de rows a dominio
    # ------------------------------------------------------------------

    def _load(self, row: sqlite3.Row) -> Book:
        book = Book(
            source_path = row["source_path"],
            target_lang = row["target_lang"],
            book_id     = row["id"],
            metadata    = _metadata_from_json(row["metadata_json"]),
            status      = TranslationStatus(row["status"]),
        )
        book.error_message = row["error_message"]

        pages = self._conn.execute(
            "SELECT * FROM pages WHERE book_id = ? ORDER BY page_order ASC",
            (row["id"],),
        ).fetchall()
        for p in pages:
            book.add_page(Page(
                id                 = p["page_id"],
                order              = p["page_order"],
                title              = p["title"],
                original_content   = p["original_content"],
                translated_content = p["translated_content"],
                translated         = bool(p["translated"]),
            ))
        return book

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()


def _metadata_to_json(metadata: BookMetadata) -> str:
    return json.dumps({
        "title":       metadata.title,
        "authors":     list(metadata.authors),
        "language":    metadata.language,
        "publisher":   metadata.publisher,
        "description": metadata.description,
        "identifier":  metadata.identifier,
    }, ensure_ascii=False)


def _metadata_from_json(raw: str) -> BookMetadata:
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Metadatos ilegibles en la base, se usan defaults: %s", e)
        return BookMetadata()
    return BookMetadata(**{k: v for k, v in data.items() if v is not None})

# epubtrans/service.py
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from epubtrans.epub.archive import extracted
from epubtrans.epub.package import PackageResolver
from epubtrans.errors import BookNotFoundError, EpubTransError
from epubtrans.models import Book, TranslationProgress, TranslationStatus
from epubtrans.orchestrator import BatchTranslator, ProgressCallback
from epubtrans.reconstructor import Reconstructor
from epubtrans.router.base import BaseGateway
from epubtrans.router.router import Router
from epubtrans.storage.repository import BookRepository

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Resultado del caso de uso: lo que el CLI consume
# ------------------------------------------------------------------

@dataclass
class TranslationResult:
    book:        Book
    output_path: Path
    provider:    str

    @property
    def total_pages(self) -> int:
        return self.book.total_pages

    @property
    def translated_pages(self) -> int:
        return self.book.translated_pages


# ------------------------------------------------------------------
# BookService
# ------------------------------------------------------------------

class BookService:
    """
    Caso de uso "traducir un libro" de extremo a extremo.
    No traduce ni empaqueta por sí mismo, coordina módulos:

    1. Extraer el EPUB en un directorio temporal (siempre se borra)
    2. Resolver el paquete en un Book y registrarlo
    3. Traducir con el BatchTranslator (failover vía Router si hay
       más de un proveedor)
    4. Escribir las páginas traducidas y reempaquetar
    5. Guardar el estado final
    """

    def __init__(
        self,
        repository:    BookRepository,
        resolver:      Optional[PackageResolver] = None,
        reconstructor: Optional[Reconstructor]   = None,
    ):
        self._repo          = repository
        self._resolver      = resolver or PackageResolver()
        self._reconstructor = reconstructor or Reconstructor()

    @property
    def repository(self) -> BookRepository:
        return self._repo

    def translate_book(
        self,
        file_path:         str | Path,
        gateways:          Router | Sequence[BaseGateway],
        target_lang:       str = "zh",
        batch_size:        int = 1,
        max_batch_chars:   Optional[int] = None,
        max_workers:       int = 1,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event:      Optional[threading.Event] = None,
    ) -> TranslationResult:
        """
        Raises:
            ArchiveError / InvalidContainerError: el EPUB no se puede leer.
            ConfigError: la config del proveedor es inválida. El libro
                queda FAILED y guardado sin ninguna llamada de red.
            TranslationError: ningún proveedor completó la traducción, o
                se canceló. El libro queda FAILED y guardado, con las
                páginas ya traducidas intactas.
        """
        path   = Path(file_path).resolve()
        router = gateways if isinstance(gateways, Router) else Router(list(gateways))
        used: dict[str, str] = {}

        with extracted(path) as root:
            # ── Paso 1: resolver y registrar ──────────────────────────
            book = self._resolver.resolve(root, str(path), target_lang=target_lang)
            self._repo.save(book)
            self._log(
                f"'{book.metadata.title}' — {book.total_pages} páginas "
                f"(book_id={book.id})"
            )

            # ── Paso 2: traducir, con failover entre proveedores ──────
            def attempt(gateway: BaseGateway) -> Book:
                if book.status in (TranslationStatus.FAILED, TranslationStatus.COMPLETED):
                    # Intento nuevo con el siguiente proveedor
                    book.reset()
                    self._repo.save(book)
                translator = BatchTranslator(
                    gateway         = gateway,
                    batch_size      = batch_size,
                    max_batch_chars = (
                        gateway.max_batch_chars if max_batch_chars is None else max_batch_chars
                    ),
                    max_workers     = max_workers,
                    cancel_event    = cancel_event,
                )
                used["provider"] = gateway.name
                self._log(f"Traduciendo con {gateway.name}")
                return translator.translate_book(book, progress_callback)

            try:
                router.run(attempt)
            except EpubTransError:
                self._repo.save(book)
                raise

            # ── Paso 3: reconstruir ───────────────────────────────────
            output_path = self._reconstructor.build(book, root)

        self._repo.save(book)
        self._log(f"Completado: {book.translated_pages}/{book.total_pages} páginas traducidas")

        return TranslationResult(
            book        = book,
            output_path = output_path,
            provider    = used.get("provider", ""),
        )

    # ------------------------------------------------------------------
    # Consultas sobre el registro
    # ------------------------------------------------------------------

    def get_book(self, book_id: str) -> Book:
        book = self._repo.find_by_id(book_id)
        if book is None:
            raise BookNotFoundError(f"Libro no encontrado: {book_id}")
        return book

    def get_progress(self, book_id: str) -> TranslationProgress:
        return TranslationProgress.from_book(self.get_book(book_id))

    def list_books(self) -> list[Book]:
        return self._repo.list_books()

    def delete_book(self, book_id: str) -> None:
        if not self._repo.delete(book_id):
            raise BookNotFoundError(f"Libro no encontrado: {book_id}")

    def close(self) -> None:
        self._repo.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _log(self, msg: str) -> None:
        logger.info(msg)

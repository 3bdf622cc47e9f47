# epubtrans/models.py
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from epubtrans.errors import InvalidStatusTransitionError


class TranslationStatus(Enum):
    PENDING     = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED   = "completed"
    FAILED      = "failed"


# Transiciones permitidas. FAILED solo sale hacia PENDING (reintento desde cero).
_ALLOWED_TRANSITIONS: dict[TranslationStatus, set[TranslationStatus]] = {
    TranslationStatus.PENDING:     {TranslationStatus.IN_PROGRESS},
    TranslationStatus.IN_PROGRESS: {TranslationStatus.COMPLETED, TranslationStatus.FAILED},
    TranslationStatus.COMPLETED:   {TranslationStatus.PENDING},
    TranslationStatus.FAILED:      {TranslationStatus.PENDING},
}

DEFAULT_TITLE    = "Unknown Title"
DEFAULT_AUTHOR   = "Unknown Author"
DEFAULT_LANGUAGE = "en"

# Estimación ingenua usada por el snapshot de progreso
_SECONDS_PER_PAGE = 30


@dataclass(frozen=True)
class BookMetadata:
    """Metadatos del OPF. Inmutable: update_metadata reemplaza el objeto entero."""
    title:       str             = DEFAULT_TITLE
    authors:     tuple[str, ...] = (DEFAULT_AUTHOR,)
    language:    str             = DEFAULT_LANGUAGE
    publisher:   Optional[str]   = None
    description: Optional[str]   = None
    identifier:  Optional[str]   = None

    def __post_init__(self):
        # Acepta listas desde el llamador pero guarda siempre una tupla
        object.__setattr__(self, "authors", tuple(self.authors or ()))

    def with_title(self, title: str) -> "BookMetadata":
        return replace(self, title=title)


@dataclass
class Page:
    """
    Una unidad del spine.
    id es la ruta relativa a la raíz del archivo, que es también donde se
    escribe la traducción al reempaquetar.
    """
    id:                 str
    order:              int
    title:              str
    original_content:   str
    translated_content: str  = ""
    translated:         bool = False

    def translate(self, translated_content: str) -> None:
        self.translated_content = translated_content
        self.translated         = True

    def has_content(self) -> bool:
        return bool(self.original_content and self.original_content.strip())

    @property
    def content_length(self) -> int:
        return len(self.original_content) if self.original_content else 0


class Book:
    """
    Raíz del agregado. Las páginas siguen el orden del spine.
    Nunca se muta concurrentemente sin sincronización externa.
    """

    def __init__(
        self,
        source_path: str,
        target_lang: str = "zh",
        book_id:     Optional[str] = None,
        metadata:    Optional[BookMetadata] = None,
        status:      TranslationStatus = TranslationStatus.PENDING,
    ):
        self.id          = book_id or str(uuid.uuid4())
        self.source_path = str(source_path)
        self.target_lang = target_lang
        self.metadata    = metadata or BookMetadata()
        self._pages: list[Page] = []
        self._status     = status
        self.error_message: Optional[str] = None

    # ------------------------------------------------------------------
    # Identidad y nombres
    # ------------------------------------------------------------------

    @property
    def file_name(self) -> str:
        return Path(self.source_path).name

    @property
    def translated_file_name(self) -> str:
        name = self.file_name
        if name.lower().endswith(".epub"):
            return f"{name[:-5]}_{self.target_lang}.epub"
        return f"{name}_{self.target_lang}"

    # ------------------------------------------------------------------
    # Páginas y metadatos
    # ------------------------------------------------------------------

    def add_page(self, page: Page) -> None:
        self._pages.append(page)

    def update_metadata(self, metadata: BookMetadata) -> None:
        self.metadata = metadata

    @property
    def pages(self) -> list[Page]:
        """Copia de la lista: mutarla no afecta al libro."""
        return list(self._pages)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def status(self) -> TranslationStatus:
        return self._status

    def mark_started(self) -> None:
        self._transition(TranslationStatus.IN_PROGRESS)
        self.error_message = None

    def mark_completed(self) -> None:
        self._transition(TranslationStatus.COMPLETED)

    def mark_failed(self, error_message: Optional[str] = None) -> None:
        self._transition(TranslationStatus.FAILED)
        self.error_message = error_message

    def reset(self) -> None:
        """Vuelve a PENDING para un intento nuevo."""
        self._transition(TranslationStatus.PENDING)

    def is_completed(self) -> bool:
        return self._status == TranslationStatus.COMPLETED

    def _transition(self, target: TranslationStatus) -> None:
        if self._status == target:
            return  # idempotente
        if target not in _ALLOWED_TRANSITIONS[self._status]:
            raise InvalidStatusTransitionError(
                f"Transición no permitida: {self._status.value} -> {target.value}"
            )
        self._status = target

    # ------------------------------------------------------------------
    # Accesores derivados
    # ------------------------------------------------------------------

    @property
    def total_pages(self) -> int:
        return len(self._pages)

    @property
    def translated_pages(self) -> int:
        return sum(1 for p in self._pages if p.translated)

    @property
    def translation_progress(self) -> float:
        if not self._pages:
            return 0.0
        return self.translated_pages / self.total_pages * 100

    def __repr__(self) -> str:
        return (
            f"Book(id={self.id!r}, file={self.file_name!r}, "
            f"pages={self.total_pages}, status={self._status.value})"
        )


@dataclass
class TranslationProgress:
    """Snapshot de progreso para la capa de presentación."""
    book_id:          str
    book_name:        str
    status:           TranslationStatus
    total_pages:      int
    translated_pages: int
    percentage:       float
    current_page:     Optional[str] = None
    eta:              Optional[str] = None

    @classmethod
    def from_book(cls, book: Book) -> "TranslationProgress":
        progress = cls(
            book_id          = book.id,
            book_name        = book.file_name,
            status           = book.status,
            total_pages      = book.total_pages,
            translated_pages = book.translated_pages,
            percentage       = book.translation_progress,
        )
        if book.total_pages > 0:
            done = book.translated_pages
            if done < book.total_pages:
                progress.current_page = f"Página {done + 1} de {book.total_pages}"
                progress.eta = _format_remaining((book.total_pages - done) * _SECONDS_PER_PAGE)
            else:
                progress.current_page = "Traducción completada"
                progress.eta = "completado"
        return progress


@dataclass
class BatchProgress:
    """Lo que recibe el callback de progreso después de cada batch."""
    book_id:          str
    batch_index:      int
    total_batches:    int
    pages_done:       int
    total_pages:      int
    translated_pages: int
    percentage:       float


def _format_remaining(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds} s"
    if seconds < 3600:
        return f"{seconds // 60} min {seconds % 60} s"
    return f"{seconds // 3600} h {(seconds % 3600) // 60} min"

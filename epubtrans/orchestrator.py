# epubtrans/orchestrator.py
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Protocol

from epubtrans.errors import EpubTransError, TranslationCancelledError, TranslationError
from epubtrans.models import BatchProgress, Book, Page, TranslationProgress
from epubtrans.router.base import validate_config
from epubtrans.router.prompt_builder import PAGE_BREAK

logger = logging.getLogger(__name__)

# Separador entre páginas dentro de una misma petición
PAGE_SEPARATOR = f"\n\n{PAGE_BREAK}\n\n"

# Split tolerante: el modelo a veces mete espacios, cambia mayúsculas
# o envuelve el marcador en negritas/cursivas de markdown. Los * y _
# solo se consumen en la propia línea del marcador, nunca del texto vecino.
_PAGE_BREAK_RE = re.compile(
    r"\s*(?:^[ \t]*[*_]+[ \t]*)?"
    r"-{2,}\s*PAGE\s*BREAK\s*-{2,}"
    r"(?:[ \t]*[*_]+[ \t]*$)?\s*",
    re.IGNORECASE | re.MULTILINE,
)


class TranslationGateway(Protocol):
    name: str

    def translate(self, text: str) -> str: ...


ProgressCallback = Callable[[BatchProgress], None]


class BatchTranslator:
    """
    Traduce las páginas de un Book en batches acotados.

    Responsabilidades:
    - Saltar páginas vacías sin llamar al proveedor
    - Agrupar páginas por número (y opcionalmente por caracteres)
    - Unir con el marcador de salto de página, traducir, y repartir
      los segmentos devueltos entre las páginas del batch
    - Informar progreso después de cada batch

    No cambia de proveedor: un fallo de batch aborta el libro entero
    con TranslationError. El failover vive en el Router.
    """

    def __init__(
        self,
        gateway:         TranslationGateway,
        batch_size:      int = 1,
        max_batch_chars: int = 0,
        max_workers:     int = 1,
        cancel_event:    Optional[threading.Event] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size debe ser >= 1")
        self._gateway         = gateway
        self._batch_size      = batch_size
        self._max_batch_chars = max(0, max_batch_chars)
        self._max_workers     = max(1, max_workers)
        self._cancel_event    = cancel_event or threading.Event()

    # ------------------------------------------------------------------
    # Entradas públicas
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Pide parar entre batches. Lo ya traducido se conserva."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def translate_text(self, text: str) -> str:
        return self._gateway.translate(text)

    def translate_page(self, page: Page) -> bool:
        """Traduce una sola página. Devuelve False si estaba vacía."""
        if not page.has_content():
            logger.debug("Página sin contenido, se omite: %s", page.id)
            return False
        page.translate(self._gateway.translate(page.original_content).strip())
        return True

    def translate_pages(self, pages: list[Page], batch_index: Optional[int] = None) -> int:
        """
        Traduce un batch en una sola petición.
        Devuelve cuántas páginas recibieron traducción.
        """
        pages = [p for p in pages if p.has_content()]
        if not pages:
            return 0

        combined = merge_pages(pages)
        try:
            translated = self._gateway.translate(combined)
        except TranslationError as e:
            if e.batch_index is None:
                e.batch_index = batch_index
            raise

        segments = split_segments(translated)
        return assign_segments(pages, segments, batch_index=batch_index)

    def translate_book(
        self,
        book:              Book,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Book:
        """
        Traduce el libro completo batch a batch.

        Marca el Book IN_PROGRESS → COMPLETED, o FAILED si la config del
        proveedor es inválida, si un batch falla o si se cancela. La config
        se valida antes del primer batch, sin llamada de red. Las páginas ya
        traducidas se quedan como están.
        """
        pages     = book.pages
        total     = len(pages)
        skipped   = sum(1 for p in pages if not p.has_content())
        batches   = build_batches(pages, self._batch_size, self._max_batch_chars)

        book.mark_started()
        logger.info(
            "Traduciendo '%s' con %s: %d páginas, %d batches, %d vacías",
            book.file_name, self._gateway.name, total, len(batches), skipped,
        )

        reporter = _ProgressReporter(book, total, len(batches), skipped, progress_callback)

        try:
            self._check_config()
            if self._max_workers > 1 and len(batches) > 1:
                self._run_concurrent(batches, reporter)
            else:
                self._run_sequential(batches, reporter)
        except EpubTransError as e:
            book.mark_failed(str(e))
            logger.error(
                "Traducción de '%s' abortada (batch %s): %s",
                book.file_name, getattr(e, "batch_index", None), e,
            )
            raise

        book.mark_completed()
        logger.info(
            "Libro traducido: '%s' — %d/%d páginas",
            book.file_name, book.translated_pages, total,
        )
        return book

    @staticmethod
    def get_progress(book: Book) -> TranslationProgress:
        return TranslationProgress.from_book(book)

    # ------------------------------------------------------------------
    # Ejecución de batches
    # ------------------------------------------------------------------

    def _run_sequential(self, batches: list[list[Page]], reporter: "_ProgressReporter") -> None:
        for index, batch in enumerate(batches, start=1):
            self._check_cancelled(index)
            logger.info(
                "Batch %d/%d: páginas %d-%d",
                index, len(batches), batch[0].order, batch[-1].order,
            )
            self.translate_pages(batch, batch_index=index)
            reporter.batch_done(index, len(batch))

    def _run_concurrent(self, batches: list[list[Page]], reporter: "_ProgressReporter") -> None:
        """
        Pool acotado. Cada batch asigna solo a sus propias páginas, así que
        no hay estado compartido salvo el contador de progreso.
        Ante el primer error no se arrancan más batches.
        """
        stop = threading.Event()
        errors: list[TranslationError] = []

        def work(index: int, batch: list[Page]) -> int:
            if stop.is_set() or self._cancel_event.is_set():
                return 0
            self.translate_pages(batch, batch_index=index)
            return len(batch)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = {
                pool.submit(work, index, batch): index
                for index, batch in enumerate(batches, start=1)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    done = future.result()
                except TranslationError as e:
                    stop.set()
                    errors.append(e)
                    continue
                if done:
                    reporter.batch_done(index, done)

        if errors:
            raise min(errors, key=lambda e: e.batch_index or 0)
        self._check_cancelled(None)

    def _check_config(self) -> None:
        """Gateways con ProviderConfig: falla rápido con ConfigError."""
        config = getattr(self._gateway, "config", None)
        if config is not None:
            validate_config(config)

    def _check_cancelled(self, batch_index: Optional[int]) -> None:
        if self._cancel_event.is_set():
            raise TranslationCancelledError(
                "Traducción cancelada por el usuario",
                provider    = self._gateway.name,
                batch_index = batch_index,
            )


class _ProgressReporter:
    """Contador monótono de páginas procesadas. Seguro entre hilos."""

    def __init__(
        self,
        book:          Book,
        total_pages:   int,
        total_batches: int,
        already_done:  int,
        callback:      Optional[ProgressCallback],
    ):
        self._book          = book
        self._total_pages   = total_pages
        self._total_batches = total_batches
        self._done          = already_done
        self._callback      = callback
        self._lock          = threading.Lock()

    def batch_done(self, batch_index: int, pages_in_batch: int) -> None:
        with self._lock:
            self._done += pages_in_batch
            percentage = self._done / self._total_pages * 100 if self._total_pages else 0.0
            snapshot = BatchProgress(
                book_id          = self._book.id,
                batch_index      = batch_index,
                total_batches    = self._total_batches,
                pages_done       = self._done,
                total_pages      = self._total_pages,
                translated_pages = self._book.translated_pages,
                percentage       = percentage,
            )
            logger.info("Progreso: %.1f%% (%d/%d)", percentage, self._done, self._total_pages)
            if self._callback is not None:
                self._callback(snapshot)


# ------------------------------------------------------------------
# Funciones de módulo: el núcleo del reparto
# ------------------------------------------------------------------

def build_batches(pages: list[Page], batch_size: int, max_chars: int = 0) -> list[list[Page]]:
    """
    Agrupa las páginas con contenido en batches de hasta batch_size páginas.
    Con max_chars > 0 también corta antes de superar ese tamaño combinado
    (una página más larga que el límite va sola en su batch).
    """
    batches: list[list[Page]] = []
    current: list[Page] = []
    current_chars = 0

    for page in pages:
        if not page.has_content():
            continue

        length = page.content_length + (len(PAGE_SEPARATOR) if current else 0)
        too_many  = len(current) >= batch_size
        too_large = bool(current) and max_chars > 0 and current_chars + length > max_chars

        if too_many or too_large:
            batches.append(current)
            current, current_chars = [], 0
            length = page.content_length

        current.append(page)
        current_chars += length

    if current:
        batches.append(current)
    return batches


def merge_pages(pages: list[Page]) -> str:
    return PAGE_SEPARATOR.join(p.original_content for p in pages)


def split_segments(text: str) -> list[str]:
    """
    Parte la respuesta por el marcador. Los segmentos vacíos del principio
    y del final se descartan: un marcador colgando en un extremo no es
    una página.
    """
    segments = _PAGE_BREAK_RE.split(text or "")
    while segments and not segments[-1].strip():
        segments.pop()
    while segments and not segments[0].strip():
        segments.pop(0)
    return segments


def assign_segments(pages: list[Page], segments: list[str], batch_index: Optional[int] = None) -> int:
    """
    Reparte segmentos a páginas en orden.
    - Igual número: uno a uno.
    - Menos segmentos: se asignan los que hay; las páginas finales quedan
      sin traducir (no se adivina cuál falta).
    - Más segmentos: se usan los N primeros y se descartan los sobrantes.
    - Un segmento en blanco nunca se asigna: esa página queda sin traducir.
    """
    if len(segments) != len(pages):
        logger.warning(
            "Batch %s: %d segmentos para %d páginas — se asigna en orden",
            batch_index, len(segments), len(pages),
        )

    assigned = 0
    for page, segment in zip(pages, segments):
        content = segment.strip()
        if not content:
            logger.warning(
                "Batch %s: segmento vacío para %s, se conserva el original",
                batch_index, page.id,
            )
            continue
        page.translate(content)
        assigned += 1

    if len(segments) < len(pages):
        logger.warning(
            "Batch %s: %d páginas sin traducción, se conserva el original",
            batch_index, len(pages) - len(segments),
        )
    elif len(segments) > len(pages):
        logger.warning(
            "Batch %s: %d segmentos sobrantes descartados",
            batch_index, len(segments) - len(pages),
        )
    return assigned

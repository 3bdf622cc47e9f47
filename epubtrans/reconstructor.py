# epubtrans/reconstructor.py
import logging
import re
from pathlib import Path

from epubtrans.epub.archive import pack
from epubtrans.errors import ArchiveError
from epubtrans.models import Book

logger = logging.getLogger(__name__)

_OUTPUT_DIR = Path.home() / ".epubtrans" / "output"

# Las páginas se escriben siempre en UTF-8: la declaración tiene que decirlo
_XML_ENCODING_RE = re.compile(r"(<\?xml\b[^>]*?\bencoding\s*=\s*)(['\"])[^'\"]*\2", re.IGNORECASE)
_META_CHARSET_RE = re.compile(r"(<meta\b[^>]*?\bcharset\s*=\s*['\"]?)[\w.:-]+", re.IGNORECASE)


class Reconstructor:
    """
    Responsabilidad única: volcar las páginas traducidas de un Book
    sobre el árbol extraído y reempaquetar el EPUB.

    No sabe nada de proveedores ni de batches.
    Las páginas sin traducción se dejan con su contenido original.
    """

    def __init__(self, output_dir: Path | None = None):
        self._output_dir = Path(output_dir) if output_dir else _OUTPUT_DIR

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def write_pages(self, book: Book, root_dir: Path) -> int:
        """Escribe cada página traducida en su ruta relativa. Devuelve cuántas."""
        root    = Path(root_dir).resolve()
        written = 0

        for page in book.pages:
            if not page.translated:
                continue

            target = (root / page.id).resolve()
            if not target.is_relative_to(root):
                raise ArchiveError(f"Ruta de página fuera del árbol: {page.id!r}")

            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(declare_utf8(page.translated_content), encoding="utf-8")
            written += 1

        logger.debug("%d/%d páginas escritas en %s", written, book.total_pages, root)
        return written

    def build(self, book: Book, root_dir: Path, output_filename: str | None = None) -> Path:
        """Escribe las páginas y genera el EPUB de salida. Devuelve su ruta."""
        written = self.write_pages(book, root_dir)

        self._output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self._output_dir / (output_filename or book.translated_file_name)

        pack(root_dir, output_path)
        logger.info(
            "EPUB traducido escrito en: %s (%d páginas traducidas)",
            output_path, written,
        )
        return output_path


def declare_utf8(content: str) -> str:
    """Reescribe encoding= del prólogo XML y el charset de <meta> a utf-8."""
    content = _XML_ENCODING_RE.sub(r"\1\2utf-8\2", content, count=1)
    return _META_CHARSET_RE.sub(r"\1utf-8", content)

# epubtrans/epub/package.py
import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from lxml import etree

from epubtrans.errors import InvalidContainerError
from epubtrans.models import (
    DEFAULT_AUTHOR,
    DEFAULT_LANGUAGE,
    DEFAULT_TITLE,
    Book,
    BookMetadata,
    Page,
)

logger = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"

_TITLE_RE   = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_HEADING_RE = re.compile(r"<h[1-6][^>]*>(.*?)</h[1-6]>", re.IGNORECASE | re.DOTALL)
_TAG_RE     = re.compile(r"<[^>]+>")


@dataclass
class PackageDocument:
    """Lo que se extrae del OPF antes de leer el contenido de las páginas."""
    path:     str                              # relativo a la raíz del archivo
    metadata: BookMetadata
    manifest: dict[str, str]                   # id -> href (tal cual en el OPF)
    spine:    list[str] = field(default_factory=list)   # idrefs en orden de lectura

    @property
    def base_dir(self) -> str:
        return posixpath.dirname(self.path)


class PackageResolver:
    """
    Interpreta container.xml + OPF de un árbol ya extraído y construye el Book.

    - Las páginas siguen el orden del spine, numeradas desde 1.
    - El id de cada página es su ruta relativa a la raíz del archivo:
      ahí mismo se escribe la traducción al reempaquetar.
    - Un idref sin entrada en el manifest se registra y se salta.
    """

    def resolve(self, root_dir: str | Path, source_path: str, target_lang: str = "zh") -> Book:
        root = Path(root_dir)
        package = self.read_package(root)

        book = Book(source_path=source_path, target_lang=target_lang)
        book.update_metadata(package.metadata)

        for idref in package.spine:
            href = package.manifest.get(idref)
            if href is None:
                logger.warning("idref '%s' del spine no existe en el manifest — se omite", idref)
                continue

            relative = resolve_href(package.base_dir, href)
            if relative is None:
                logger.warning("href '%s' apunta fuera del archivo — se omite", href)
                continue

            file_path = root / relative
            if not file_path.is_file():
                logger.warning("Página '%s' no encontrada en el árbol — se omite", relative)
                continue

            content = read_text(file_path)
            order   = book.total_pages + 1
            book.add_page(Page(
                id               = relative,
                order            = order,
                title            = extract_page_title(content) or f"Chapter {order}",
                original_content = content,
            ))

        logger.info(
            "Paquete resuelto: '%s' — %d páginas (spine: %d referencias)",
            book.metadata.title, book.total_pages, len(package.spine),
        )
        return book

    # ------------------------------------------------------------------
    # container.xml y OPF
    # ------------------------------------------------------------------

    def read_package_path(self, root: Path) -> str:
        """Devuelve el full-path del primer rootfile de container.xml."""
        container = root / CONTAINER_PATH
        if not container.is_file():
            raise InvalidContainerError(f"Falta {CONTAINER_PATH}")

        tree = _parse_xml(container)
        for element in tree.iter():
            if _local_name(element) == "rootfile" and element.get("full-path"):
                return element.get("full-path").strip()

        raise InvalidContainerError(f"{CONTAINER_PATH} no contiene ningún rootfile con full-path")

    def read_package(self, root: Path) -> PackageDocument:
        package_path = self.read_package_path(root)
        opf_file = root / package_path
        if not opf_file.is_file():
            raise InvalidContainerError(f"Documento de paquete no encontrado: {package_path}")

        tree = _parse_xml(opf_file)

        manifest: dict[str, str] = {}
        spine:    list[str]      = []
        for element in tree.iter():
            name = _local_name(element)
            if name == "item":
                item_id, href = element.get("id"), element.get("href")
                if item_id and href:
                    manifest[item_id] = href
            elif name == "itemref":
                idref = element.get("idref")
                if idref:
                    spine.append(idref)

        return PackageDocument(
            path     = package_path,
            metadata = _extract_metadata(tree),
            manifest = manifest,
            spine    = spine,
        )


# ------------------------------------------------------------------
# Funciones de módulo
# ------------------------------------------------------------------

def resolve_href(base_dir: str, href: str) -> Optional[str]:
    """
    Resuelve un href del manifest relativo al directorio del OPF.
    Devuelve la ruta normalizada relativa a la raíz, o None si escapa de ella.
    """
    clean = unquote(href.split("#", 1)[0]).replace("\\", "/")
    relative = posixpath.normpath(posixpath.join(base_dir, clean))
    if relative.startswith("../") or relative == ".." or relative.startswith("/"):
        return None
    return relative


def read_text(path: Path) -> str:
    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def extract_page_title(content: str) -> Optional[str]:
    """<title> del XHTML; si no hay, el primer encabezado."""
    for pattern in (_TITLE_RE, _HEADING_RE):
        match = pattern.search(content)
        if match:
            text = _TAG_RE.sub("", match.group(1))
            text = re.sub(r"\s+", " ", text).strip()
            if text:
                return text
    return None


def _parse_xml(path: Path):
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        tree = etree.parse(str(path), parser)
    except (OSError, etree.XMLSyntaxError) as e:
        raise InvalidContainerError(f"No se pudo leer {path.name}: {e}") from e
    if tree.getroot() is None:
        raise InvalidContainerError(f"{path.name} está vacío o no es XML")
    return tree


def _local_name(element) -> str:
    """
    Nombre sin espacio de nombres. Cubre '{uri}title' y también
    'dc:title' cuando el prefijo no está declarado.
    """
    tag = element.tag
    if not isinstance(tag, str):
        return ""   # comentarios / processing instructions
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag


def _texts(tree, name: str) -> list[str]:
    values = []
    for element in tree.iter():
        if _local_name(element) == name:
            text = "".join(element.itertext()).strip()
            if text:
                values.append(text)
    return values


def _extract_metadata(tree) -> BookMetadata:
    titles    = _texts(tree, "title")
    creators  = _texts(tree, "creator")
    languages = _texts(tree, "language")
    publisher = _texts(tree, "publisher")
    descr     = _texts(tree, "description")

    return BookMetadata(
        title       = titles[0] if titles else DEFAULT_TITLE,
        authors     = tuple(creators) if creators else (DEFAULT_AUTHOR,),
        language    = languages[0] if languages else DEFAULT_LANGUAGE,
        publisher   = publisher[0] if publisher else None,
        description = descr[0] if descr else None,
        identifier  = _extract_identifier(tree),
    )


def _extract_identifier(tree) -> Optional[str]:
    """Prefiere el identifier referenciado por unique-identifier del <package>."""
    unique_id = tree.getroot().get("unique-identifier")
    fallback: Optional[str] = None
    for element in tree.iter():
        if _local_name(element) != "identifier":
            continue
        text = "".join(element.itertext()).strip()
        if not text:
            continue
        if unique_id and element.get("id") == unique_id:
            return text
        fallback = fallback or text
    return fallback

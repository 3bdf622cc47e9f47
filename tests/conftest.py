# tests/conftest.py
import zipfile
from pathlib import Path

import pytest


CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    {metadata}
  </metadata>
  <manifest>
    {manifest}
  </manifest>
  <spine>
    {spine}
  </spine>
</package>
"""

DEFAULT_METADATA = (
    '<dc:title>Libro de prueba</dc:title>'
    '<dc:creator>Ana Autora</dc:creator>'
    '<dc:language>en</dc:language>'
    '<dc:identifier id="bookid">urn:uuid:1234</dc:identifier>'
)


def xhtml(title: str, body: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head><title>{title}</title></head>"
        f"<body><p>{body}</p></body></html>"
    )


def build_epub(
    path:       Path,
    pages:      list[tuple[str, str]],
    opf_dir:    str = "OEBPS",
    metadata:   str = DEFAULT_METADATA,
    extra_spine: list[str] | None = None,
) -> Path:
    """
    Escribe un EPUB mínimo. pages es [(href relativo al OPF, contenido)]
    en orden de spine. extra_spine añade idrefs sin entrada en el manifest.
    """
    opf_path = f"{opf_dir}/content.opf" if opf_dir else "content.opf"
    prefix   = f"{opf_dir}/" if opf_dir else ""

    manifest = "\n    ".join(
        f'<item id="p{i}" href="{href}" media-type="application/xhtml+xml"/>'
        for i, (href, _) in enumerate(pages, start=1)
    )
    idrefs = [f"p{i}" for i in range(1, len(pages) + 1)] + list(extra_spine or [])
    spine  = "\n    ".join(f'<itemref idref="{idref}"/>' for idref in idrefs)

    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        zf.writestr("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
        zf.writestr(opf_path, OPF_TEMPLATE.format(
            metadata=metadata, manifest=manifest, spine=spine,
        ))
        for href, content in pages:
            zf.writestr(prefix + href, content)
    return path


@pytest.fixture
def epub_file(tmp_path) -> Path:
    """EPUB de tres páginas con contenido."""
    return build_epub(tmp_path / "libro.epub", [
        ("ch1.xhtml", xhtml("Uno", "First page.")),
        ("ch2.xhtml", xhtml("Dos", "Second page.")),
        ("ch3.xhtml", xhtml("Tres", "Third page.")),
    ])

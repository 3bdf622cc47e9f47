# tests/epub/test_package.py
from pathlib import Path

import pytest

from conftest import build_epub, xhtml
from epubtrans.epub.archive import unpack
from epubtrans.epub.package import (
    PackageResolver,
    extract_page_title,
    resolve_href,
)
from epubtrans.errors import InvalidContainerError


@pytest.fixture
def resolver():
    return PackageResolver()


def unpack_epub(tmp_path, pages, **kwargs) -> Path:
    archive = build_epub(tmp_path / "libro.epub", pages, **kwargs)
    return unpack(archive, tmp_path / "tree")


# ------------------------------------------------------------------
# Páginas
# ------------------------------------------------------------------

class TestResolvePages:

    def test_paginas_en_orden_del_spine(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [
            ("b.xhtml", xhtml("B", "segunda")),
            ("a.xhtml", xhtml("A", "primera")),
        ])
        book = resolver.resolve(root, "libro.epub")

        assert [p.id for p in book.pages] == ["OEBPS/b.xhtml", "OEBPS/a.xhtml"]
        assert [p.order for p in book.pages] == [1, 2]
        assert "segunda" in book.pages[0].original_content

    def test_id_es_ruta_relativa_a_la_raiz(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("text/ch1.xhtml", xhtml("x", "y"))])
        book = resolver.resolve(root, "libro.epub")
        assert book.pages[0].id == "OEBPS/text/ch1.xhtml"
        assert (root / book.pages[0].id).is_file()

    def test_opf_en_la_raiz(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("ch1.xhtml", xhtml("x", "y"))], opf_dir="")
        book = resolver.resolve(root, "libro.epub")
        assert book.pages[0].id == "ch1.xhtml"

    def test_href_con_puntos_se_normaliza(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("text/../ch1.xhtml", xhtml("x", "y"))])
        book = resolver.resolve(root, "libro.epub")
        assert book.pages[0].id == "OEBPS/ch1.xhtml"

    def test_idref_desconocido_se_omite(self, resolver, tmp_path, caplog):
        root = unpack_epub(
            tmp_path,
            [("ch1.xhtml", xhtml("x", "y"))],
            extra_spine=["fantasma"],
        )
        with caplog.at_level("WARNING"):
            book = resolver.resolve(root, "libro.epub")

        assert book.total_pages == 1
        assert "fantasma" in caplog.text

    def test_orden_contiguo_tras_omitir(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [
            ("ch1.xhtml", xhtml("1", "uno")),
            ("ch2.xhtml", xhtml("2", "dos")),
        ])
        (root / "OEBPS" / "ch1.xhtml").unlink()
        book = resolver.resolve(root, "libro.epub")
        assert [p.order for p in book.pages] == [1]

    def test_titulo_de_pagina_y_fallback(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [
            ("ch1.xhtml", xhtml("Prólogo", "texto")),
            ("ch2.xhtml", "<html><body><p>sin título</p></body></html>"),
        ])
        book = resolver.resolve(root, "libro.epub")
        assert book.pages[0].title == "Prólogo"
        assert book.pages[1].title == "Chapter 2"

    def test_target_lang_y_source_path(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("ch1.xhtml", xhtml("x", "y"))])
        book = resolver.resolve(root, "/libros/libro.epub", target_lang="es")
        assert book.target_lang == "es"
        assert book.file_name == "libro.epub"


# ------------------------------------------------------------------
# Metadatos
# ------------------------------------------------------------------

class TestResolveMetadata:

    def test_metadatos_con_namespace(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("ch1.xhtml", xhtml("x", "y"))])
        meta = resolver.resolve(root, "libro.epub").metadata
        assert meta.title == "Libro de prueba"
        assert meta.authors == ("Ana Autora",)
        assert meta.language == "en"
        assert meta.identifier == "urn:uuid:1234"

    def test_todos_los_autores(self, resolver, tmp_path):
        root = unpack_epub(
            tmp_path,
            [("ch1.xhtml", xhtml("x", "y"))],
            metadata="<dc:title>T</dc:title><dc:creator>A</dc:creator><dc:creator>B</dc:creator>",
        )
        assert resolver.resolve(root, "libro.epub").metadata.authors == ("A", "B")

    def test_defaults_sin_metadatos(self, resolver, tmp_path):
        root = unpack_epub(tmp_path, [("ch1.xhtml", xhtml("x", "y"))], metadata="")
        meta = resolver.resolve(root, "libro.epub").metadata
        assert meta.title == "Unknown Title"
        assert meta.authors == ("Unknown Author",)
        assert meta.language == "en"

    def test_nombres_sin_namespace(self, resolver, tmp_path):
        root = tmp_path / "tree"
        (root / "META-INF").mkdir(parents=True)
        (root / "META-INF" / "container.xml").write_text(
            '<container><rootfiles><rootfile full-path="book.opf"/></rootfiles></container>'
        )
        (root / "book.opf").write_text(
            "<package><metadata><title>Plano</title><creator>Yo</creator>"
            "<language>fr</language></metadata>"
            '<manifest><item id="c" href="c.html"/></manifest>'
            '<spine><itemref idref="c"/></spine></package>'
        )
        (root / "c.html").write_text("<p>hola</p>")

        book = resolver.resolve(root, "plano.epub")
        assert book.metadata.title == "Plano"
        assert book.metadata.language == "fr"
        assert book.total_pages == 1


# ------------------------------------------------------------------
# Errores de contenedor
# ------------------------------------------------------------------

class TestContainerErrors:

    def test_sin_container_xml(self, resolver, tmp_path):
        with pytest.raises(InvalidContainerError):
            resolver.resolve(tmp_path, "libro.epub")

    def test_container_sin_full_path(self, resolver, tmp_path):
        (tmp_path / "META-INF").mkdir()
        (tmp_path / "META-INF" / "container.xml").write_text("<container><rootfiles/></container>")
        with pytest.raises(InvalidContainerError):
            resolver.resolve(tmp_path, "libro.epub")

    def test_opf_inexistente(self, resolver, tmp_path):
        (tmp_path / "META-INF").mkdir()
        (tmp_path / "META-INF" / "container.xml").write_text(
            '<container><rootfiles><rootfile full-path="nada.opf"/></rootfiles></container>'
        )
        with pytest.raises(InvalidContainerError):
            resolver.resolve(tmp_path, "libro.epub")


# ------------------------------------------------------------------
# Funciones de módulo
# ------------------------------------------------------------------

class TestHelpers:

    def test_resolve_href_relativo(self):
        assert resolve_href("OEBPS", "text/ch1.xhtml") == "OEBPS/text/ch1.xhtml"

    def test_resolve_href_decodifica_y_quita_fragmento(self):
        assert resolve_href("OEBPS", "cap%201.xhtml#sec") == "OEBPS/cap 1.xhtml"

    def test_resolve_href_que_escapa(self):
        assert resolve_href("OEBPS", "../../fuera.xhtml") is None

    def test_titulo_desde_encabezado(self):
        assert extract_page_title("<body><h2>Capítulo <em>1</em></h2></body>") == "Capítulo 1"

    def test_sin_titulo(self):
        assert extract_page_title("<p>nada</p>") is None

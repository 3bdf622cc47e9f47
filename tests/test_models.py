# tests/test_models.py
import pytest

from epubtrans.errors import InvalidStatusTransitionError
from epubtrans.models import Book, BookMetadata, Page, TranslationProgress, TranslationStatus


def make_page(order: int, content: str = "texto") -> Page:
    return Page(id=f"OEBPS/ch{order}.xhtml", order=order, title=f"Chapter {order}",
                original_content=content)


@pytest.fixture
def book():
    b = Book(source_path="/libros/novela.epub", target_lang="zh")
    for i in range(1, 5):
        b.add_page(make_page(i))
    return b


# ------------------------------------------------------------------
# Páginas y contadores
# ------------------------------------------------------------------

class TestBookPages:

    def test_libro_vacio_progreso_cero(self):
        b = Book(source_path="x.epub")
        assert b.total_pages == 0
        assert b.translation_progress == 0.0

    def test_contadores(self, book):
        book.pages[0].translate("译文")
        assert book.total_pages == 4
        assert book.translated_pages == 1
        assert book.translation_progress == 25.0

    def test_pages_devuelve_copia(self, book):
        pages = book.pages
        pages.clear()
        assert book.total_pages == 4

    def test_update_metadata_reemplaza_entero(self, book):
        book.update_metadata(BookMetadata(title="Nuevo", authors=["A", "B"]))
        assert book.metadata.title == "Nuevo"
        assert book.metadata.authors == ("A", "B")
        assert book.metadata.language == "en"

    def test_with_title_no_muta(self):
        meta = BookMetadata(title="Viejo")
        assert meta.with_title("Nuevo").title == "Nuevo"
        assert meta.title == "Viejo"

    def test_id_generado(self):
        assert Book("a.epub").id != Book("a.epub").id


class TestFileNames:

    def test_nombre_traducido(self):
        assert Book("/x/novela.epub", target_lang="es").translated_file_name == "novela_es.epub"

    def test_nombre_traducido_extension_en_mayusculas(self):
        assert Book("/x/NOVELA.EPUB", target_lang="zh").translated_file_name == "NOVELA_zh.epub"

    def test_nombre_sin_extension_epub(self):
        assert Book("/x/novela", target_lang="zh").translated_file_name == "novela_zh"


# ------------------------------------------------------------------
# Página
# ------------------------------------------------------------------

class TestPage:

    def test_translate_marca_traducida(self):
        page = make_page(1)
        page.translate("hola")
        assert page.translated
        assert page.translated_content == "hola"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_sin_contenido(self, content):
        assert not make_page(1, content).has_content()


# ------------------------------------------------------------------
# Máquina de estados
# ------------------------------------------------------------------

class TestStatus:

    def test_camino_feliz(self, book):
        assert book.status == TranslationStatus.PENDING
        book.mark_started()
        book.mark_completed()
        assert book.is_completed()

    def test_fallo_guarda_mensaje(self, book):
        book.mark_started()
        book.mark_failed("HTTP 500")
        assert book.status == TranslationStatus.FAILED
        assert book.error_message == "HTTP 500"

    def test_misma_transicion_es_idempotente(self, book):
        book.mark_started()
        book.mark_started()
        assert book.status == TranslationStatus.IN_PROGRESS

    def test_completar_sin_empezar_lanza(self, book):
        with pytest.raises(InvalidStatusTransitionError):
            book.mark_completed()

    def test_fallido_no_pasa_a_completado(self, book):
        book.mark_started()
        book.mark_failed("x")
        with pytest.raises(InvalidStatusTransitionError):
            book.mark_completed()

    def test_reset_desde_fallido(self, book):
        book.mark_started()
        book.mark_failed("x")
        book.reset()
        book.mark_started()
        assert book.status == TranslationStatus.IN_PROGRESS
        assert book.error_message is None

    def test_transicion_invalida_es_value_error(self, book):
        with pytest.raises(ValueError):
            book.mark_completed()


# ------------------------------------------------------------------
# Snapshot de progreso
# ------------------------------------------------------------------

class TestTranslationProgress:

    def test_snapshot_parcial(self, book):
        book.pages[0].translate("a")
        progress = TranslationProgress.from_book(book)
        assert progress.book_name == "novela.epub"
        assert progress.translated_pages == 1
        assert progress.percentage == 25.0
        assert progress.current_page == "Página 2 de 4"
        assert progress.eta == "1 min 30 s"

    def test_snapshot_completo(self, book):
        for page in book.pages:
            page.translate("x")
        progress = TranslationProgress.from_book(book)
        assert progress.eta == "completado"

    def test_snapshot_libro_vacio(self):
        progress = TranslationProgress.from_book(Book("vacio.epub"))
        assert progress.percentage == 0.0
        assert progress.current_page is None

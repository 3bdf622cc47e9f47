# tests/test_cli.py
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from epubtrans.cli import main
from epubtrans.errors import BookNotFoundError, TranslationCancelledError
from epubtrans.models import Book, TranslationProgress, TranslationStatus
from epubtrans.router.config_loader import parse_config
from epubtrans.router.router import AllProvidersFailedError
from epubtrans.service import TranslationResult


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def book_file(tmp_path) -> Path:
    """El CLI solo valida ruta y extensión; el contenido lo ve el service (mockeado)."""
    f = tmp_path / "libro.epub"
    f.write_bytes(b"PK")
    return f


@pytest.fixture
def app_config():
    return parse_config({
        "settings":  {"target_lang": "zh", "source_lang": "en"},
        "providers": [
            {"name": "openai",   "api_key": "sk-secreto"},
            {"name": "deepseek", "api_key": None},
        ],
    })


def make_result() -> TranslationResult:
    book = Book(source_path="/tmp/libro.epub")
    return TranslationResult(book=book, output_path=Path("/tmp/libro_zh.epub"), provider="openai")


def run_translate(runner, book, *extra):
    return runner.invoke(main, ["translate", "--book", str(book), *extra])


# ------------------------------------------------------------------
# translate
# ------------------------------------------------------------------

class TestTranslate:

    def test_archivo_inexistente(self, runner, tmp_path):
        result = run_translate(runner, tmp_path / "no.epub")
        assert result.exit_code == 1
        assert "Archivo no encontrado" in result.output

    def test_formato_no_soportado(self, runner, tmp_path):
        f = tmp_path / "libro.txt"
        f.write_text("x")
        result = run_translate(runner, f)
        assert result.exit_code == 1
        assert "Formato no soportado" in result.output

    def test_config_inexistente(self, runner, book_file):
        with patch("epubtrans.cli.load_config", side_effect=FileNotFoundError("Config no encontrada")):
            result = run_translate(runner, book_file)
        assert result.exit_code == 1
        assert "Config no encontrada" in result.output

    def test_mismo_idioma(self, runner, book_file, app_config):
        with patch("epubtrans.cli.load_config", return_value=app_config):
            result = run_translate(runner, book_file, "--from", "zh", "--to", "zh")
        assert result.exit_code == 1
        assert "no pueden ser el mismo" in result.output

    def test_idioma_invalido(self, runner, book_file, app_config):
        with patch("epubtrans.cli.load_config", return_value=app_config):
            result = run_translate(runner, book_file, "--to", "z3")
        assert result.exit_code == 1

    def test_traduccion_exitosa(self, runner, book_file, app_config):
        service = MagicMock()
        service.translate_book.return_value = make_result()
        router = MagicMock()
        router.provider_names.return_value = ["openai", "deepseek"]

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_router", return_value=router) as build_router, \
             patch("epubtrans.cli.build_service", return_value=service):
            result = run_translate(
                runner, book_file,
                "--to", "ES", "-p", "openai", "-p", "deepseek", "--batch-size", "4",
            )

        assert result.exit_code == 0, result.output
        assert "Output" in result.output
        assert "/tmp/libro_zh.epub" in result.output
        assert build_router.call_args.kwargs["provider_names"] == ("openai", "deepseek")

        kwargs = service.translate_book.call_args.kwargs
        assert kwargs["target_lang"] == "es"
        assert kwargs["batch_size"] == 4
        router.close.assert_called_once()
        service.close.assert_called_once()

    def test_todos_los_proveedores_fallan_sale_con_2(self, runner, book_file, app_config):
        service = MagicMock()
        service.translate_book.side_effect = AllProvidersFailedError("sin quota")

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_router", return_value=MagicMock()), \
             patch("epubtrans.cli.build_service", return_value=service):
            result = run_translate(runner, book_file)

        assert result.exit_code == 2
        assert "sin quota" in result.output

    def test_cancelado_sale_con_130(self, runner, book_file, app_config):
        service = MagicMock()
        service.translate_book.side_effect = TranslationCancelledError("cancelada")

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_router", return_value=MagicMock()), \
             patch("epubtrans.cli.build_service", return_value=service):
            result = run_translate(runner, book_file)

        assert result.exit_code == 130


# ------------------------------------------------------------------
# check
# ------------------------------------------------------------------

class TestCheck:

    def test_proveedor_sin_key_falla_sin_mostrar_secretos(self, runner, app_config):
        gateway = MagicMock()
        gateway.is_available.return_value = True

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_gateway", return_value=gateway):
            result = runner.invoke(main, ["check"])

        assert result.exit_code == 1
        assert "✓ openai disponible" in result.output
        assert "✗ deepseek" in result.output
        assert "sk-secreto" not in result.output

    def test_un_solo_proveedor_disponible(self, runner, app_config):
        gateway = MagicMock()
        gateway.is_available.return_value = True

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_gateway", return_value=gateway):
            result = runner.invoke(main, ["check", "--provider", "openai"])

        assert result.exit_code == 0, result.output
        gateway.close.assert_called_once()

    def test_proveedor_no_responde(self, runner, app_config):
        gateway = MagicMock()
        gateway.is_available.return_value = False

        with patch("epubtrans.cli.load_config", return_value=app_config), \
             patch("epubtrans.cli.build_gateway", return_value=gateway):
            result = runner.invoke(main, ["check", "-p", "openai"])

        assert result.exit_code == 1
        assert "no responde" in result.output

    def test_proveedor_desconocido(self, runner, app_config):
        with patch("epubtrans.cli.load_config", return_value=app_config):
            result = runner.invoke(main, ["check", "-p", "nada"])
        assert result.exit_code == 1


# ------------------------------------------------------------------
# status / books
# ------------------------------------------------------------------

class TestStatusAndBooks:

    def test_status(self, runner):
        service = MagicMock()
        service.get_progress.return_value = TranslationProgress(
            book_id          = "abc",
            book_name        = "libro.epub",
            status           = TranslationStatus.IN_PROGRESS,
            total_pages      = 4,
            translated_pages = 1,
            percentage       = 25.0,
            current_page     = "Página 2 de 4",
            eta              = "1 min 30 s",
        )
        with patch("epubtrans.cli.build_service", return_value=service):
            result = runner.invoke(main, ["status", "abc"])

        assert result.exit_code == 0, result.output
        assert "in_progress" in result.output
        assert "1/4" in result.output
        assert "25.0%" in result.output

    def test_status_inexistente(self, runner):
        service = MagicMock()
        service.get_progress.side_effect = BookNotFoundError("Libro no encontrado: abc")
        with patch("epubtrans.cli.build_service", return_value=service):
            result = runner.invoke(main, ["status", "abc"])
        assert result.exit_code == 1
        assert "Libro no encontrado" in result.output

    def test_books_vacio(self, runner):
        service = MagicMock()
        service.list_books.return_value = []
        with patch("epubtrans.cli.build_service", return_value=service):
            result = runner.invoke(main, ["books"])
        assert "No hay libros registrados" in result.output

    def test_books_lista(self, runner):
        service = MagicMock()
        service.list_books.return_value = [Book(source_path="/x/novela.epub", book_id="id-1")]
        with patch("epubtrans.cli.build_service", return_value=service):
            result = runner.invoke(main, ["books"])
        assert "id-1" in result.output
        assert "novela.epub" in result.output

# epubtrans/cli.py
import logging
import sys
import threading
from pathlib import Path

import click
from dotenv import load_dotenv

from epubtrans.errors import (
    ArchiveError,
    BookNotFoundError,
    ConfigError,
    InvalidContainerError,
    TranslationCancelledError,
    TranslationError,
)
from epubtrans.factory import build_gateway, build_router, build_service
from epubtrans.models import BatchProgress
from epubtrans.router.base import validate_config
from epubtrans.router.config_loader import describe_provider, load_config
from epubtrans.router.prompt_builder import load_system_prompt
from epubtrans.router.router import AllProvidersFailedError


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_SUPPORTED_FORMATS = {".epub"}

_EXIT_USER_ERROR        = 1
_EXIT_TRANSLATION_ERROR = 2
_EXIT_INTERRUPTED       = 130


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="epubtrans")
@click.option("--verbose", "-v", is_flag=True, help="Muestra el log detallado.")
def main(verbose: bool):
    """
    epubtrans — traductor de libros EPUB con modelos de lenguaje.

    Traduce página a página conservando la estructura del libro
    y reempaqueta un EPUB válido.
    """
    if verbose:
        logging.basicConfig(
            level  = logging.DEBUG,
            format = "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        )


# ------------------------------------------------------------------
# epubtrans translate
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--book", "-b",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Ruta al archivo .epub",
)
@click.option(
    "--to", "target_lang",
    default = None,
    metavar = "LANG",
    help    = "Idioma de destino (default: settings.target_lang)",
)
@click.option(
    "--from", "source_lang",
    default = None,
    metavar = "LANG",
    help    = "Idioma de origen (default: settings.source_lang)",
)
@click.option(
    "--provider", "-p", "providers",
    multiple = True,
    metavar  = "NAME",
    help     = "Proveedor a usar. Repetible: los siguientes actúan de respaldo.",
)
@click.option(
    "--output", "-o", "output_dir",
    default = None,
    type    = click.Path(file_okay=False),
    help    = "Directorio de salida (default: ~/.epubtrans/output)",
)
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Páginas por petición.")
@click.option("--workers",    type=click.IntRange(min=1), default=None, help="Batches en paralelo.")
@click.option("--config", "config_path", default=None, type=click.Path(), help="Ruta al config YAML.")
def translate(
    book:        str,
    target_lang: str | None,
    source_lang: str | None,
    providers:   tuple[str, ...],
    output_dir:  str | None,
    batch_size:  int | None,
    workers:     int | None,
    config_path: str | None,
):
    """Traduce un libro EPUB completo."""

    # ── Validaciones de entrada ───────────────────────────────────
    _validate_file(book)
    app_config = _load_config(config_path)
    settings   = app_config.settings

    target_lang = (target_lang or settings.target_lang).lower()
    source_lang = (source_lang or settings.source_lang).lower()
    _validate_lang(target_lang, "--to")
    _validate_lang(source_lang, "--from")

    if source_lang == target_lang:
        _abort("El idioma de origen y destino no pueden ser el mismo.")

    # ── Ensamblar pipeline ────────────────────────────────────────
    cancel_event = threading.Event()
    try:
        router = build_router(
            app_config,
            provider_names = providers or None,
            source_lang    = source_lang,
            target_lang    = target_lang,
            cancel_event   = cancel_event,
        )
    except ConfigError as e:
        _abort(str(e))

    output  = output_dir or settings.output_dir
    service = build_service(output_dir=Path(output).expanduser() if output else None)
    click.echo(f"[epubtrans] Proveedores: {', '.join(router.provider_names())}")

    # ── Ejecutar ──────────────────────────────────────────────────
    try:
        result = service.translate_book(
            file_path         = book,
            gateways          = router,
            target_lang       = target_lang,
            batch_size        = batch_size or settings.batch_size,
            max_workers       = workers or settings.max_workers,
            progress_callback = _print_progress,
            cancel_event      = cancel_event,
        )

    except ConfigError as e:
        _abort(str(e))

    except (ArchiveError, InvalidContainerError) as e:
        _abort(f"EPUB inválido: {e}")

    except TranslationCancelledError as e:
        _error(f"Traducción cancelada: {e}")
        sys.exit(_EXIT_INTERRUPTED)

    except AllProvidersFailedError as e:
        _error(f"Sin proveedores disponibles. {e}")
        sys.exit(_EXIT_TRANSLATION_ERROR)

    except TranslationError as e:
        _error(f"La traducción falló: {e}")
        sys.exit(_EXIT_TRANSLATION_ERROR)

    except KeyboardInterrupt:
        cancel_event.set()
        click.echo("\n[epubtrans] Proceso interrumpido.")
        sys.exit(_EXIT_INTERRUPTED)

    finally:
        router.close()
        service.close()

    # ── Resumen final ─────────────────────────────────────────────
    _print_summary(result)


# ------------------------------------------------------------------
# epubtrans check
# ------------------------------------------------------------------

@main.command()
@click.option("--provider", "-p", "provider_name", default=None, metavar="NAME",
              help="Comprueba solo este proveedor.")
@click.option("--config", "config_path", default=None, type=click.Path(), help="Ruta al config YAML.")
def check(provider_name: str | None, config_path: str | None):
    """Valida la configuración y prueba cada proveedor con una traducción real."""
    app_config = _load_config(config_path)
    settings   = app_config.settings

    try:
        configs = (
            [app_config.get_provider(provider_name)]
            if provider_name else app_config.providers
        )
    except ConfigError as e:
        _abort(str(e))

    if not configs:
        _abort("No hay proveedores en la configuración.")

    system_prompt = load_system_prompt(settings.prompt_file, settings.source_lang, settings.target_lang)
    failures = 0

    for config in configs:
        click.echo("")
        for line in describe_provider(config):
            click.echo(f"[epubtrans]   {line}")

        try:
            validate_config(config)
        except ConfigError as e:
            click.echo(click.style(f"[epubtrans] ✗ {e}", fg="red"))
            failures += 1
            continue

        gateway = build_gateway(config, system_prompt)
        try:
            available = gateway.is_available()
        finally:
            gateway.close()

        if available:
            click.echo(click.style(f"[epubtrans] ✓ {config.name} disponible", fg="green"))
        else:
            click.echo(click.style(f"[epubtrans] ✗ {config.name} no responde", fg="red"))
            failures += 1

    if failures:
        sys.exit(_EXIT_USER_ERROR)


# ------------------------------------------------------------------
# epubtrans status / books
# ------------------------------------------------------------------

@main.command()
@click.argument("book_id")
def status(book_id: str):
    """Muestra el progreso de un libro registrado."""
    service = build_service()
    try:
        progress = service.get_progress(book_id)
    except BookNotFoundError as e:
        _abort(str(e))
    finally:
        service.close()

    click.echo(f"[epubtrans] {progress.book_name} ({progress.book_id})")
    click.echo(f"[epubtrans]   Estado     : {progress.status.value}")
    click.echo(
        f"[epubtrans]   Páginas    : {progress.translated_pages}/{progress.total_pages} "
        f"({progress.percentage:.1f}%)"
    )
    if progress.current_page:
        click.echo(f"[epubtrans]   Posición   : {progress.current_page}")
    if progress.eta:
        click.echo(f"[epubtrans]   Estimado   : {progress.eta}")


@main.command()
def books():
    """Lista los libros registrados."""
    service = build_service()
    try:
        registered = service.list_books()
    finally:
        service.close()

    if not registered:
        click.echo("[epubtrans] No hay libros registrados.")
        return

    for book in registered:
        click.echo(
            f"{book.id}  {book.status.value:<11}  "
            f"{book.translated_pages:>4}/{book.total_pages:<4}  {book.file_name}"
        )


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        _abort(f"Formato no soportado: '{p.suffix}'. Solo se aceptan archivos .epub")


def _validate_lang(code: str, option: str) -> None:
    """Valida que el código de idioma sea razonable."""
    code = code.strip()

    if not code:
        _abort(f"{option} no puede estar vacío.")

    if not code.replace("-", "").isalpha():
        _abort(
            f"{option} contiene caracteres inválidos: '{code}'\n"
            f"Ejemplos válidos: en, zh, ja, fr, pt-br"
        )

    if len(code) > 10:
        _abort(f"{option}: código de idioma demasiado largo: '{code}'")


def _load_config(config_path: str | None):
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        _abort(str(e))
    except ConfigError as e:
        _abort(f"Config inválida: {e}")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_progress(progress: BatchProgress) -> None:
    click.echo(
        f"[epubtrans] Batch {progress.batch_index}/{progress.total_batches} — "
        f"{progress.pages_done}/{progress.total_pages} páginas ({progress.percentage:.1f}%)"
    )


def _print_summary(result) -> None:
    """Imprime el resumen final del pipeline."""
    pending = result.total_pages - result.translated_pages

    click.echo("")
    click.echo("─" * 50)
    click.echo(f"[epubtrans] ✓ Traducción completada")
    click.echo(f"[epubtrans]   Libro        : {result.book.metadata.title}")
    click.echo(f"[epubtrans]   Proveedor    : {result.provider}")
    click.echo(f"[epubtrans]   Páginas      : {result.total_pages}")
    click.echo(f"[epubtrans]   Traducidas   : {result.translated_pages}")

    if pending > 0:
        click.echo(
            click.style(
                f"[epubtrans]   Sin traducir : {pending} (vacías o sin segmento)",
                fg="yellow",
            )
        )

    click.echo(f"[epubtrans]   Output       : {result.output_path}")
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[epubtrans] Error: {message}", fg="red"), err=True)
    sys.exit(_EXIT_USER_ERROR)


def _error(message: str) -> None:
    """Error de sistema, no es culpa del usuario."""
    click.echo(click.style(f"[epubtrans] {message}", fg="red"), err=True)

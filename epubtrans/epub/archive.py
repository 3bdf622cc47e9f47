# epubtrans/epub/archive.py
import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from epubtrans.errors import (
    ArchiveError,
    ArchiveNotFoundError,
    CorruptArchiveError,
    UnsafeArchiveError,
)

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = "mimetype"

# Fecha fija para la entrada mimetype: el zip resultante no depende del reloj
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_TEMP_PREFIX     = "epubtrans_"


def unpack(archive_path: str | Path, dest_dir: Optional[str | Path] = None) -> Path:
    """
    Extrae todas las entradas del zip y devuelve el directorio destino.

    Sin dest_dir se crea un directorio temporal. Si la extracción falla
    ese directorio se borra antes de propagar el error; si termina bien
    el llamador es dueño del directorio (usar extracted() para no olvidarlo).

    Raises:
        ArchiveNotFoundError: el archivo no existe.
        CorruptArchiveError:  el stream zip está dañado.
        UnsafeArchiveError:   alguna entrada escaparía del destino.
    """
    source = Path(archive_path)
    if not source.is_file():
        raise ArchiveNotFoundError(f"Archivo no encontrado: {source}")

    owns_dir = dest_dir is None
    dest = Path(tempfile.mkdtemp(prefix=_TEMP_PREFIX)) if owns_dir else Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)

    try:
        _extract_all(source, dest)
    except BaseException:
        if owns_dir:
            shutil.rmtree(dest, ignore_errors=True)
        raise

    logger.debug("Archivo %s extraído en %s", source.name, dest)
    return dest


@contextmanager
def extracted(archive_path: str | Path) -> Iterator[Path]:
    """
    Extrae en un directorio temporal y lo elimina al salir,
    tanto si el bloque termina bien como si lanza.
    """
    dest = unpack(archive_path)
    try:
        yield dest
    finally:
        shutil.rmtree(dest, ignore_errors=True)
        logger.debug("Directorio temporal eliminado: %s", dest)


def pack(directory: str | Path, output_path: str | Path) -> Path:
    """
    Empaqueta el árbol en un zip con las reglas del contenedor EPUB:
    - 'mimetype' (si existe en la raíz) va primero y sin comprimir.
    - El resto va después, comprimido, en orden de recorrido determinista
      y con '/' como separador en los nombres de entrada.

    Si algo falla se borra el archivo a medio escribir.
    """
    root = Path(directory)
    if not root.is_dir():
        raise ArchiveNotFoundError(f"Directorio no encontrado: {root}")

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as zf:
            mimetype_path = root / MIMETYPE_ENTRY
            if mimetype_path.is_file():
                _write_mimetype(zf, mimetype_path)

            count = 0
            for file_path, arcname in iter_tree(root):
                if arcname == MIMETYPE_ENTRY:
                    continue
                zf.write(file_path, arcname, compress_type=zipfile.ZIP_DEFLATED)
                count += 1
    except (OSError, zipfile.BadZipFile, zlib.error) as e:
        output.unlink(missing_ok=True)
        raise ArchiveError(f"No se pudo empaquetar {root} en {output}: {e}") from e

    logger.info("EPUB empaquetado: %s (%d entradas + mimetype)", output, count)
    return output


def iter_tree(root: Path) -> Iterator[tuple[Path, str]]:
    """
    Recorre el árbol en orden estable (directorios y archivos ordenados)
    y devuelve (ruta absoluta, nombre de entrada con '/').
    """
    for current, dirs, files in os.walk(root):
        dirs.sort()
        for name in sorted(files):
            file_path = Path(current) / name
            arcname   = file_path.relative_to(root).as_posix()
            yield file_path, arcname


def read_entry_names(archive_path: str | Path) -> list[str]:
    """Nombres de entrada en el orden en que están escritos en el zip."""
    try:
        with zipfile.ZipFile(archive_path) as zf:
            return zf.namelist()
    except zipfile.BadZipFile as e:
        raise CorruptArchiveError(f"Zip inválido: {archive_path}: {e}") from e


# ------------------------------------------------------------------
# Helpers privados
# ------------------------------------------------------------------

def _extract_all(source: Path, dest: Path) -> None:
    root = dest.resolve()
    try:
        with zipfile.ZipFile(source) as zf:
            for info in zf.infolist():
                target = _safe_target(root, info.filename)

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                # Copia byte a byte, sin transcodificar
                with zf.open(info) as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
    except zipfile.BadZipFile as e:
        raise CorruptArchiveError(f"Zip inválido: {source}: {e}") from e
    except (zlib.error, EOFError) as e:
        raise CorruptArchiveError(f"Entrada dañada en {source}: {e}") from e


def _safe_target(root: Path, entry_name: str) -> Path:
    """Resuelve la ruta de una entrada y verifica que quede dentro de root."""
    normalized = entry_name.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        raise UnsafeArchiveError(f"Entrada con ruta absoluta: {entry_name!r}")

    target = (root / normalized).resolve()
    if target != root and not target.is_relative_to(root):
        raise UnsafeArchiveError(f"Entrada fuera del directorio destino: {entry_name!r}")
    return target


def _write_mimetype(zf: zipfile.ZipFile, mimetype_path: Path) -> None:
    """
    Primera entrada, ZIP_STORED. El CRC y el tamaño se calculan antes de
    escribir para que la cabecera local ya los lleve (sin data descriptor).
    """
    data = mimetype_path.read_bytes()
    info = zipfile.ZipInfo(MIMETYPE_ENTRY, date_time=_FIXED_DATE_TIME)
    info.compress_type = zipfile.ZIP_STORED
    info.external_attr = 0o644 << 16
    zf.writestr(info, data)
    logger.debug(
        "mimetype escrito sin compresión (crc=%08x, %d bytes)",
        zlib.crc32(data) & 0xFFFFFFFF, len(data),
    )

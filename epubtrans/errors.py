# epubtrans/errors.py
from typing import Optional


class EpubTransError(Exception):
    """Raíz de todos los errores propios del paquete."""
    pass


# ------------------------------------------------------------------
# Archivo EPUB (contenedor zip)
# ------------------------------------------------------------------

class ArchiveError(EpubTransError):
    """Contenedor corrupto o inseguro. Nunca se reintenta."""
    pass


class ArchiveNotFoundError(ArchiveError, FileNotFoundError):
    """El archivo de origen no existe."""
    pass


class CorruptArchiveError(ArchiveError):
    """El stream zip no se puede leer."""
    pass


class UnsafeArchiveError(ArchiveError):
    """Una entrada intenta escribir fuera del directorio destino."""
    pass


class InvalidContainerError(EpubTransError):
    """container.xml o el documento de paquete (OPF) son inválidos o faltan."""
    pass


# ------------------------------------------------------------------
# Configuración y traducción
# ------------------------------------------------------------------

class ConfigError(EpubTransError, ValueError):
    """
    Configuración de proveedor incompleta.
    Se lanza antes de cualquier llamada de red.
    """

    def __init__(self, message: str, provider: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.field    = field


class TranslationError(EpubTransError):
    """
    Fallo del proveedor (reintentos agotados, respuesta no parseable)
    o cancelación. Lleva contexto suficiente sin incluir secretos.
    """

    def __init__(
        self,
        message:     str,
        provider:    Optional[str] = None,
        attempts:    Optional[int] = None,
        batch_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider    = provider
        self.attempts    = attempts
        self.batch_index = batch_index


class TranslationCancelledError(TranslationError):
    """La traducción se detuvo por petición del llamador."""
    pass


# ------------------------------------------------------------------
# Modelo de dominio y registro
# ------------------------------------------------------------------

class InvalidStatusTransitionError(EpubTransError, ValueError):
    pass


class BookNotFoundError(EpubTransError, LookupError):
    pass

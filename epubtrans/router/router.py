# router/router.py
import logging
from typing import Callable, TypeVar

from epubtrans.errors import TranslationCancelledError, TranslationError
from epubtrans.router.base import BaseGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AllProvidersFailedError(TranslationError):
    """Ningún proveedor pudo completar la operación."""
    pass


class Router:
    """
    Política de failover entre proveedores, por encima del core.

    El BatchTranslator nunca cambia de proveedor por su cuenta: el Router
    repite la operación completa con el siguiente gateway de la lista.

    - TranslationError → se pasa al siguiente proveedor.
    - ConfigError y cancelación → se propagan sin failover.
    """

    def __init__(self, gateways: list[BaseGateway]):
        # La lista ya viene ordenada por preferencia
        if not gateways:
            raise ValueError("El Router necesita al menos un proveedor")
        self._gateways = gateways

    @property
    def gateways(self) -> list[BaseGateway]:
        return list(self._gateways)

    def run(self, operation: Callable[[BaseGateway], T]) -> T:
        last_error: TranslationError | None = None

        for gateway in self._gateways:
            try:
                logger.debug("Intentando operación con %s", gateway.name)
                return operation(gateway)
            except TranslationCancelledError:
                raise
            except TranslationError as e:
                logger.warning(
                    "Proveedor %s falló: %s. Pasando al siguiente.",
                    gateway.name, e,
                )
                last_error = e

        raise AllProvidersFailedError(
            f"Ningún proveedor completó la traducción. Último error: {last_error}",
            provider = last_error.provider if last_error else None,
            attempts = last_error.attempts if last_error else None,
        )

    def provider_names(self) -> list[str]:
        """Útil para logging y para el CLI."""
        return [g.name for g in self._gateways]

    def close(self) -> None:
        for gateway in self._gateways:
            gateway.close()

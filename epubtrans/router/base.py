# router/base.py
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from epubtrans.errors import ConfigError, TranslationCancelledError, TranslationError
from epubtrans.router.models import DEFAULT_BASE_URLS, ProviderConfig

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = DEFAULT_BASE_URLS["openai"]

# Texto mínimo para la comprobación de disponibilidad
_PROBE_TEXT = "Hello"


class BaseGateway(ABC):
    """
    Contrato de todos los adaptadores de proveedor.
    El BatchTranslator solo habla con esta interfaz.

    La clase base se encarga de lo que es igual para todos:
    validar la config antes de tocar la red, reintentar con espera
    fija y envolver el último error en TranslationError.
    Cada adaptador implementa solo _call().
    """

    def __init__(
        self,
        config:        ProviderConfig,
        system_prompt: str,
        cancel_event:  Optional[threading.Event] = None,
    ):
        self._config        = config
        self._system_prompt = system_prompt
        # El Event sirve a la vez de espera entre intentos y de señal de cancelación
        self._cancel_event  = cancel_event or threading.Event()

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def max_batch_chars(self) -> int:
        return self._config.max_batch_chars

    def translate(self, text: str) -> str:
        """
        Traduce el texto con reintentos.

        Raises:
            ConfigError: falta base_url, api_key o model (sin llamada de red).
            TranslationCancelledError: cancelación durante la espera.
            TranslationError: reintentos agotados; lleva el nº de intentos.
        """
        if not text or not text.strip():
            return text

        validate_config(self._config)

        attempts   = max(1, self._config.retry_count)
        last_error: Exception | None = None

        logger.debug("Traduciendo %d caracteres con %s", len(text), self.name)

        for attempt in range(1, attempts + 1):
            if self._cancel_event.is_set():
                raise TranslationCancelledError(
                    f"Traducción cancelada ({self.name})",
                    provider = self.name,
                    attempts = attempt - 1,
                )
            try:
                return self._call(text)
            except TranslationCancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    "Llamada a %s falló (intento %d/%d): %s",
                    self.name, attempt, attempts, e,
                )

            if attempt < attempts and self._wait(self._config.retry_delay):
                raise TranslationCancelledError(
                    f"Traducción interrumpida durante la espera entre reintentos ({self.name})",
                    provider = self.name,
                    attempts = attempt,
                )

        raise TranslationError(
            f"{self.name}: la llamada falló tras {attempts} intentos: {last_error}",
            provider = self.name,
            attempts = attempts,
        ) from last_error

    def is_available(self) -> bool:
        """
        Hace una traducción real mínima. Sirve como comprobación de vida
        y como smoke test de la configuración.
        """
        try:
            result = self.translate(_PROBE_TEXT)
        except (ConfigError, TranslationError) as e:
            logger.warning("Proveedor %s no disponible: %s", self.name, e)
            return False
        return bool(result and result.strip())

    def close(self) -> None:
        """Libera el cliente HTTP si el adaptador tiene uno."""

    def _wait(self, seconds: float) -> bool:
        """Espera entre reintentos. Devuelve True si se canceló mientras tanto."""
        if seconds <= 0:
            return self._cancel_event.is_set()
        return self._cancel_event.wait(seconds)

    @abstractmethod
    def _call(self, text: str) -> str:
        """
        Una sola llamada al proveedor. Puede lanzar cualquier error de
        transporte o de formato; translate() decide si reintentar.
        """
        ...


# ------------------------------------------------------------------
# Funciones exportadas, testeables sin instanciar un adaptador
# ------------------------------------------------------------------

def validate_config(config: Optional[ProviderConfig]) -> None:
    """Falla rápido, nombrando el campo que falta. Nunca incluye la api_key."""
    if config is None:
        raise ConfigError("Configuración del proveedor vacía")

    for field_name, label in (
        ("base_url", "Base URL"),
        ("api_key",  "API key"),
        ("model",    "modelo"),
    ):
        value = getattr(config, field_name)
        if value is None or not str(value).strip():
            raise ConfigError(
                f"{config.name}: {label} no configurado ({field_name})",
                provider = config.name,
                field    = field_name,
            )


def normalize_base_url(base_url: Optional[str], default: str = _DEFAULT_BASE_URL) -> str:
    """
    Quita espacios y una barra final, y añade https:// si falta el esquema.
    Vacío o None devuelve el default.
    """
    if base_url is None or not base_url.strip():
        logger.warning("Base URL vacía, usando %s", default)
        return default

    normalized = base_url.strip()
    if normalized.endswith("/"):
        normalized = normalized[:-1]

    if not normalized.startswith(("http://", "https://")):
        logger.warning("Base URL sin esquema, se añade https://")
        normalized = f"https://{normalized}"

    return normalized


def build_chat_url(base_url: str) -> str:
    """{base}/v1/chat/completions, sin duplicar /v1 si ya viene en la base."""
    base = normalize_base_url(base_url)
    if base.endswith("/v1"):
        return f"{base}/chat/completions"
    return f"{base}/v1/chat/completions"

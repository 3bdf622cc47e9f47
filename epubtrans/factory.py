# epubtrans/factory.py
import logging
import threading
from pathlib import Path
from typing import Optional, Sequence

from epubtrans.errors import ConfigError
from epubtrans.reconstructor import Reconstructor
from epubtrans.router.base import BaseGateway, validate_config
from epubtrans.router.claude import ClaudeGateway
from epubtrans.router.config_loader import AppConfig
from epubtrans.router.gemini import GeminiGateway
from epubtrans.router.models import OPENAI_COMPATIBLE, ProviderConfig
from epubtrans.router.openai import OpenAICompatibleGateway
from epubtrans.router.prompt_builder import load_system_prompt
from epubtrans.router.router import Router
from epubtrans.service import BookService
from epubtrans.storage.repository import BookRepository

logger = logging.getLogger(__name__)

_SDK_ADAPTERS: dict[str, type[BaseGateway]] = {
    "claude": ClaudeGateway,
    "gemini": GeminiGateway,
}


def build_service(
    db_path:    Optional[str]  = None,
    output_dir: Optional[Path] = None,
) -> BookService:
    """
    Ensambla el BookService con sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.
    """
    return BookService(
        repository    = BookRepository(db_path=db_path),
        reconstructor = Reconstructor(output_dir=output_dir),
    )


def build_gateway(
    config:        ProviderConfig,
    system_prompt: str,
    cancel_event:  Optional[threading.Event] = None,
) -> BaseGateway:
    """
    Elige el adaptador según config.kind.
    Falla con ConfigError antes de construir ningún cliente.
    """
    validate_config(config)

    if config.kind in OPENAI_COMPATIBLE:
        return OpenAICompatibleGateway(config, system_prompt, cancel_event)

    adapter_class = _SDK_ADAPTERS.get(config.kind)
    if adapter_class is None:
        raise ConfigError(
            f"{config.name}: tipo '{config.kind}' sin adaptador",
            provider = config.name,
            field    = "kind",
        )
    return adapter_class(config, system_prompt, cancel_event)


def build_router(
    app_config:     AppConfig,
    provider_names: Optional[Sequence[str]] = None,
    source_lang:    Optional[str] = None,
    target_lang:    Optional[str] = None,
    cancel_event:   Optional[threading.Event] = None,
) -> Router:
    """
    Un gateway por proveedor pedido, en ese orden de preferencia.
    Sin nombres, solo el default_provider de settings (sin failover).
    Todos comparten el mismo system prompt y el mismo cancel_event.
    """
    settings = app_config.settings
    names    = list(provider_names or [settings.default_provider])
    configs  = [app_config.get_provider(name) for name in names]

    system_prompt = load_system_prompt(
        settings.prompt_file,
        source_lang or settings.source_lang,
        target_lang or settings.target_lang,
    )

    gateways = [build_gateway(c, system_prompt, cancel_event) for c in configs]
    logger.debug("Router con proveedores: %s", ", ".join(g.name for g in gateways))
    return Router(gateways)

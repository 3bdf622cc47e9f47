from epubtrans.router.base import BaseGateway, build_chat_url, normalize_base_url, validate_config
from epubtrans.router.config_loader import AppConfig, load_config
from epubtrans.router.models import ProviderConfig, TranslationSettings
from epubtrans.router.prompt_builder import PAGE_BREAK, build_translate_prompt, load_system_prompt
from epubtrans.router.router import AllProvidersFailedError, Router

__all__ = [
    "BaseGateway",
    "build_chat_url",
    "normalize_base_url",
    "validate_config",
    "AppConfig",
    "load_config",
    "ProviderConfig",
    "TranslationSettings",
    "PAGE_BREAK",
    "build_translate_prompt",
    "load_system_prompt",
    "AllProvidersFailedError",
    "Router",
]

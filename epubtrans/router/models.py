# router/models.py
from dataclasses import dataclass
from typing import Optional


# Tipos de backend soportados. openai y deepseek hablan el mismo protocolo
# (chat completions); claude y gemini usan sus SDKs.
OPENAI_COMPATIBLE = ("openai", "deepseek")
SDK_KINDS         = ("claude", "gemini")
PROVIDER_KINDS    = OPENAI_COMPATIBLE + SDK_KINDS

DEFAULT_BASE_URLS = {
    "openai":   "https://api.openai.com",
    "deepseek": "https://api.deepseek.com",
    "claude":   "https://api.anthropic.com",
    "gemini":   "https://generativelanguage.googleapis.com",
}

DEFAULT_MODELS = {
    "openai":   "gpt-3.5-turbo",
    "deepseek": "deepseek-chat",
    "claude":   "claude-haiku-4-5-20251001",
    "gemini":   "gemini-2.0-flash",
}


@dataclass
class ProviderConfig:
    """
    Configuración de un proveedor para una ejecución.
    Se carga desde ~/.epubtrans/config.yaml y el core la trata como solo lectura.
    """
    name:            str
    kind:            str             = "openai"
    base_url:        Optional[str]   = None
    api_key:         Optional[str]   = None
    model:           Optional[str]   = None
    max_tokens:      int             = 2000
    temperature:     float           = 0.3
    max_batch_chars: int             = 0        # 0 = sin límite por caracteres
    retry_count:     int             = 3
    retry_delay:     float           = 1.0      # segundos
    timeout_seconds: float           = 60

    def __repr__(self) -> str:
        # Nunca exponer la api_key en logs ni tracebacks
        key_state = "configurada" if self.api_key else "no configurada"
        return (
            f"ProviderConfig(name={self.name!r}, kind={self.kind!r}, "
            f"base_url={self.base_url!r}, model={self.model!r}, api_key={key_state})"
        )


@dataclass
class TranslationSettings:
    """Sección 'settings' del YAML: parámetros globales de la ejecución."""
    default_provider: str           = "openai"
    batch_size:       int           = 1        # páginas por petición
    max_workers:      int           = 1
    source_lang:      str           = "en"
    target_lang:      str           = "zh"
    prompt_file:      Optional[str] = "AGENTS.md"
    output_dir:       Optional[str] = None

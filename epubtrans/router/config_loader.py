# router/config_loader.py
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from epubtrans.errors import ConfigError
from epubtrans.router.models import (
    DEFAULT_BASE_URLS,
    DEFAULT_MODELS,
    PROVIDER_KINDS,
    ProviderConfig,
    TranslationSettings,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path.home() / ".epubtrans" / "config.yaml"

# Claves de 'settings' que actúan como default de cada proveedor
_PROVIDER_DEFAULT_KEYS = ("retry_count", "retry_delay", "timeout_seconds", "max_batch_chars")


@dataclass
class AppConfig:
    settings:  TranslationSettings
    providers: list[ProviderConfig] = field(default_factory=list)

    def get_provider(self, name: Optional[str] = None) -> ProviderConfig:
        """Proveedor por nombre; sin nombre, el default_provider de settings."""
        wanted = (name or self.settings.default_provider).lower()
        for provider in self.providers:
            if provider.name.lower() == wanted:
                return provider
        available = ", ".join(p.name for p in self.providers) or "ninguno"
        raise ConfigError(
            f"Proveedor '{wanted}' no configurado. Disponibles: {available}",
            provider = wanted,
        )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Carga settings y proveedores desde YAML.
    Resuelve variables de entorno en los valores (${VAR}).
    """
    path = Path(config_path or os.environ.get("EPUBTRANS_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.epubtrans/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return parse_config(raw)


def parse_config(raw: dict) -> AppConfig:
    raw_settings = raw.get("settings") or {}
    settings = TranslationSettings(
        default_provider = str(raw_settings.get("default_provider", "openai")),
        batch_size       = int(raw_settings.get("batch_size", 1)),
        max_workers      = int(raw_settings.get("max_workers", 1)),
        source_lang      = str(raw_settings.get("source_lang", "en")),
        target_lang      = str(raw_settings.get("target_lang", "zh")),
        prompt_file      = raw_settings.get("prompt_file", "AGENTS.md"),
        output_dir       = raw_settings.get("output_dir"),
    )
    if settings.batch_size < 1:
        raise ConfigError("settings.batch_size debe ser >= 1", field="batch_size")

    defaults = {k: raw_settings[k] for k in _PROVIDER_DEFAULT_KEYS if k in raw_settings}

    providers = [
        _parse_provider(entry, defaults)
        for entry in raw.get("providers") or []
    ]
    return AppConfig(settings=settings, providers=providers)


def _parse_provider(entry: dict, defaults: dict) -> ProviderConfig:
    if "name" not in entry:
        raise ConfigError("Cada proveedor necesita 'name'", field="name")

    name = str(entry["name"]).strip()
    kind = str(entry.get("kind", name)).strip().lower()
    if kind not in PROVIDER_KINDS:
        raise ConfigError(
            f"{name}: tipo '{kind}' desconocido. Tipos: {', '.join(PROVIDER_KINDS)}",
            provider = name,
            field    = "kind",
        )

    def value(key, fallback):
        return entry.get(key, defaults.get(key, fallback))

    return ProviderConfig(
        name            = name,
        kind            = kind,
        base_url        = _resolve_env(entry.get("base_url")) or DEFAULT_BASE_URLS.get(kind),
        api_key         = _resolve_env(entry.get("api_key")),
        model           = _resolve_env(entry.get("model")) or DEFAULT_MODELS.get(kind),
        max_tokens      = int(entry.get("max_tokens", 2000)),
        temperature     = float(entry.get("temperature", 0.3)),
        max_batch_chars = int(value("max_batch_chars", 0)),
        retry_count     = int(value("retry_count", 3)),
        retry_delay     = float(value("retry_delay", 1.0)),
        timeout_seconds = float(value("timeout_seconds", 60)),
    )


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not isinstance(value, str) or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)


def describe_provider(config: ProviderConfig) -> list[str]:
    """Líneas de configuración aptas para log: la api_key nunca aparece."""
    return [
        f"{config.name} - Tipo: {config.kind}",
        f"{config.name} - Base URL: {config.base_url}",
        f"{config.name} - Modelo: {config.model}",
        f"{config.name} - Max tokens: {config.max_tokens}",
        f"{config.name} - Temperatura: {config.temperature}",
        f"{config.name} - API key: {'configurada' if config.api_key else 'no configurada'}",
    ]

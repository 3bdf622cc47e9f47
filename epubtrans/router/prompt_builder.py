# router/prompt_builder.py
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PAGE_BREAK = "--- PAGE BREAK ---"

PROMPT_HEADER = "## Translation Agent System Prompt"

_LANGUAGE_NAMES = {
    "en": "English",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "it": "Italian",
    "ru": "Russian",
}

# Las instrucciones al modelo van en inglés: es lo que mejor siguen todos.
_TRANSLATE_SYSTEM = (
    "You are a professional translator. "
    "Translate the following {source} text to {target}. "
    "Preserve the HTML structure and formatting. "
    "Keep every line that reads '{page_break}' exactly as it is, "
    "on its own line, in the same position. "
    "Only return the translated text without any explanations."
)

# Primer bloque de código tras el encabezado: ```text ... ``` o ``` ... ```
_CODE_BLOCK_RE = re.compile(r"```(?:text)?\s*([\s\S]*?)\s*```")


def build_translate_prompt(source_lang: str = "en", target_lang: str = "zh") -> str:
    """Prompt por defecto cuando no hay AGENTS.md o no trae la sección."""
    return _TRANSLATE_SYSTEM.format(
        source     = _language_name(source_lang),
        target     = _language_name(target_lang),
        page_break = PAGE_BREAK,
    )


def load_system_prompt(
    prompt_file: Optional[str | Path] = None,
    source_lang: str = "en",
    target_lang: str = "zh",
) -> str:
    """
    Lee el system prompt del primer bloque de código bajo
    '## Translation Agent System Prompt' en un markdown (AGENTS.md).
    Cualquier problema cae al prompt por defecto; nunca lanza.
    """
    default = build_translate_prompt(source_lang, target_lang)
    if not prompt_file:
        return default

    path = Path(prompt_file)
    if not path.is_file():
        logger.warning("%s no existe, usando prompt por defecto", path)
        return default

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("No se pudo leer %s (%s), usando prompt por defecto", path, e)
        return default

    prompt = extract_prompt_from_markdown(content)
    if not prompt:
        logger.warning("Sin sección de prompt en %s, usando prompt por defecto", path)
        return default

    logger.debug("System prompt cargado desde %s (%d caracteres)", path, len(prompt))
    return prompt


def extract_prompt_from_markdown(content: str) -> Optional[str]:
    index = content.find(PROMPT_HEADER)
    if index == -1:
        return None
    match = _CODE_BLOCK_RE.search(content[index + len(PROMPT_HEADER):])
    if not match:
        return None
    return match.group(1).strip() or None


def _language_name(code: str) -> str:
    code = (code or "").strip()
    return _LANGUAGE_NAMES.get(code.lower().split("-")[0], code or "the target language")

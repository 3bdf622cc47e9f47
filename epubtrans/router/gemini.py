# router/gemini.py
import logging
import threading
from typing import Optional
from urllib.parse import urlparse

import google.generativeai as genai

from epubtrans.errors import TranslationError
from epubtrans.router.base import BaseGateway, normalize_base_url
from epubtrans.router.models import DEFAULT_BASE_URLS, ProviderConfig

logger = logging.getLogger(__name__)


class GeminiGateway(BaseGateway):
    """Adaptador para Gemini vía google-generativeai."""

    def __init__(
        self,
        config:        ProviderConfig,
        system_prompt: str,
        cancel_event:  Optional[threading.Event] = None,
        model:         Optional["genai.GenerativeModel"] = None,
    ):
        super().__init__(config, system_prompt, cancel_event)
        if model is None:
            # El SDK quiere el host, no la URL completa
            endpoint = urlparse(
                normalize_base_url(config.base_url, DEFAULT_BASE_URLS["gemini"])
            ).netloc
            genai.configure(
                api_key        = config.api_key,
                client_options = {"api_endpoint": endpoint},
            )
            model = genai.GenerativeModel(
                model_name         = config.model,
                system_instruction = system_prompt,
                generation_config  = genai.GenerationConfig(
                    temperature       = config.temperature,
                    max_output_tokens = config.max_tokens,
                ),
            )
        self._model = model

    def _call(self, text: str) -> str:
        response = self._model.generate_content(
            text,
            request_options={"timeout": self._config.timeout_seconds},
        )
        try:
            # .text lanza ValueError si la respuesta vino bloqueada o vacía
            content = response.text
        except ValueError as e:
            raise TranslationError(
                f"{self.name}: no se puede parsear la respuesta ({e})",
                provider = self.name,
            ) from e

        if not content:
            raise TranslationError(
                f"{self.name}: no se puede parsear la respuesta (texto vacío)",
                provider = self.name,
            )
        return content.strip()

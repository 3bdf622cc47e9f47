# router/claude.py
import logging
import threading
from typing import Optional

import anthropic

from epubtrans.errors import TranslationError
from epubtrans.router.base import BaseGateway, normalize_base_url
from epubtrans.router.models import DEFAULT_BASE_URLS, ProviderConfig

logger = logging.getLogger(__name__)


class ClaudeGateway(BaseGateway):
    """
    Adaptador para la API de Anthropic.
    Los reintentos los gestiona BaseGateway, por eso el SDK va con max_retries=0.
    """

    def __init__(
        self,
        config:        ProviderConfig,
        system_prompt: str,
        cancel_event:  Optional[threading.Event] = None,
        client:        Optional[anthropic.Anthropic] = None,
    ):
        super().__init__(config, system_prompt, cancel_event)
        self._client = client or anthropic.Anthropic(
            api_key     = config.api_key,
            base_url    = normalize_base_url(config.base_url, DEFAULT_BASE_URLS["claude"]),
            timeout     = config.timeout_seconds,
            max_retries = 0,
        )

    def _call(self, text: str) -> str:
        response = self._client.messages.create(
            model       = self._config.model,
            max_tokens  = self._config.max_tokens,
            temperature = self._config.temperature,
            system      = self._system_prompt,
            messages    = [{"role": "user", "content": text}],
        )

        blocks = [b.text for b in (response.content or []) if getattr(b, "type", "") == "text"]
        if not blocks:
            raise TranslationError(
                f"{self.name}: no se puede parsear la respuesta (sin bloques de texto)",
                provider = self.name,
            )

        logger.debug(
            "Claude tokens: %d+%d",
            response.usage.input_tokens, response.usage.output_tokens,
        )
        return "".join(blocks).strip()

    def close(self) -> None:
        self._client.close()

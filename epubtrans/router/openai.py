# router/openai.py
import logging
import threading
from typing import Optional

import httpx

from epubtrans.errors import TranslationError
from epubtrans.router.base import BaseGateway, build_chat_url
from epubtrans.router.models import ProviderConfig

logger = logging.getLogger(__name__)


class OpenAICompatibleGateway(BaseGateway):
    """
    Adaptador para APIs con el protocolo de chat completions
    (OpenAI, DeepSeek, Azure OpenAI, servidores locales compatibles).

    Un único httpx.Client por ejecución: se crea aquí y se cierra con close().
    """

    def __init__(
        self,
        config:        ProviderConfig,
        system_prompt: str,
        cancel_event:  Optional[threading.Event] = None,
        client:        Optional[httpx.Client] = None,
    ):
        super().__init__(config, system_prompt, cancel_event)
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout_seconds)

    @property
    def url(self) -> str:
        return build_chat_url(self._config.base_url)

    def build_payload(self, text: str) -> dict:
        return {
            "model":       self._config.model,
            "temperature": self._config.temperature,
            "max_tokens":  self._config.max_tokens,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user",   "content": text},
            ],
        }

    def _call(self, text: str) -> str:
        url = self.url
        logger.debug("POST %s (modelo: %s)", url, self._config.model)

        response = self._client.post(
            url,
            json    = self.build_payload(text),
            headers = {
                "Authorization": f"Bearer {self._config.api_key}",
                "Content-Type":  "application/json",
            },
            timeout = self._config.timeout_seconds,
        )

        if not response.is_success:
            raise TranslationError(
                f"{self.name}: HTTP {response.status_code} en {url} — {response.text[:300]}",
                provider = self.name,
            )

        return parse_chat_response(response, self.name)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def parse_chat_response(response: httpx.Response, provider: str = "openai") -> str:
    """Extrae choices[0].message.content. Cualquier otra forma es TranslationError."""
    try:
        data = response.json()
    except ValueError as e:
        raise TranslationError(
            f"{provider}: no se puede parsear la respuesta (JSON inválido)",
            provider = provider,
        ) from e

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise TranslationError(
            f"{provider}: no se puede parsear la respuesta (falta choices[0].message.content)",
            provider = provider,
        ) from e

    if not isinstance(content, str):
        raise TranslationError(
            f"{provider}: no se puede parsear la respuesta (content no es texto)",
            provider = provider,
        )
    return content.strip()

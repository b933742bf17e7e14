"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from design_studio.providers.base import (
    ProviderError,
    RateLimitedError,
    TextCompletionProvider,
    TransportError,
    wrap_sdk_error,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(TextCompletionProvider):
    """OpenAI provider via openai SDK."""

    _label = "OpenAI"

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = self._build_client(config)

    def _build_client(self, config: ModelConfig) -> AsyncOpenAI:
        api_key = os.environ.get(config.api_key_env or "", "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url, max_retries=0)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(self, prompt: str) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransportError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except openai.RateLimitError as exc:
            raise RateLimitedError(self._config.name, f"Rate limited: {exc}") from exc
        except Exception as exc:
            raise wrap_sdk_error(self._config.name, exc) from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise TransportError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("%s completion: %.2fs, %s tokens", self._label, latency, token_count)
        return choice.message.content

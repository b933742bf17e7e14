"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from design_studio.providers.base import (
    ProviderError,
    RateLimitedError,
    TextCompletionProvider,
    TransportError,
    wrap_sdk_error,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(TextCompletionProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env or "", "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        # Retries belong to the agent layer, not the SDK.
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, max_retries=0)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(self, prompt: str) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransportError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except anthropic_sdk.RateLimitError as exc:
            raise RateLimitedError(self._config.name, f"Rate limited: {exc}") from exc
        except Exception as exc:
            raise wrap_sdk_error(self._config.name, exc) from exc

        latency = time.monotonic() - start

        if not response.content:
            raise TransportError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise TransportError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic completion: %.2fs, %s tokens", latency, token_count)
        return "\n".join(text_blocks)

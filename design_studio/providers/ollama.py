"""Local Ollama provider via its OpenAI-compatible endpoint."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from design_studio.providers.base import ProviderError
from design_studio.providers.openai_provider import OpenAIProvider

_DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(OpenAIProvider):
    """Ollama provider. No API key; the SDK requires a placeholder one."""

    _label = "Ollama"

    def _build_client(self, config: ModelConfig) -> AsyncOpenAI:
        base_url = config.base_url or _DEFAULT_BASE_URL
        if not base_url.startswith(("http://", "https://")):
            raise ProviderError(config.name, f"Invalid base_url: {base_url}")
        return AsyncOpenAI(api_key="ollama", base_url=base_url, max_retries=0)

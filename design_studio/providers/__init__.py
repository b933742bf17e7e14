"""Text completion providers, keyed by the ``sdk`` value in settings.yaml."""

from design_studio.providers.anthropic import AnthropicProvider
from design_studio.providers.base import TextCompletionProvider
from design_studio.providers.gemini import GeminiProvider
from design_studio.providers.ollama import OllamaProvider
from design_studio.providers.openai_provider import OpenAIProvider

PROVIDER_CLASSES: dict[str, type[TextCompletionProvider]] = {
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
}

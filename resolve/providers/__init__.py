"""Provider bindings, selected by the `sdk` field of a model entry."""

from config.config_loader import ModelConfig
from resolve.providers.anthropic import AnthropicProvider
from resolve.providers.base import LLMProvider, MissingKeyError, ProviderError
from resolve.providers.deepseek import DeepSeekProvider
from resolve.providers.gemini import GeminiProvider
from resolve.providers.mistral import MistralProvider
from resolve.providers.openai_provider import OpenAIProvider

PROVIDER_CLASSES: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "deepseek": DeepSeekProvider,
    "mistral": MistralProvider,
}


def build_provider(config: ModelConfig) -> LLMProvider:
    """Instantiate the binding for a model entry.

    Raises:
        MissingKeyError: If the entry's API key env var is empty.
        ProviderError: If the entry is otherwise unusable.
    """
    try:
        cls = PROVIDER_CLASSES[config.sdk]
    except KeyError:
        raise ProviderError(config.name, f"Unknown sdk: {config.sdk}") from None
    return cls(config)


__all__ = [
    "LLMProvider",
    "MissingKeyError",
    "PROVIDER_CLASSES",
    "ProviderError",
    "build_provider",
]

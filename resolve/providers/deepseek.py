"""DeepSeek provider using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from resolve.providers.base import ProviderError
from resolve.providers.openai_provider import OpenAIProvider


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek chat provider via OpenAI-compatible API."""

    label = "DeepSeek"

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        if not self._config.base_url:
            raise ProviderError(self._config.name, "base_url is required for DeepSeek provider")
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)

"""Abstract base for all LLM providers."""

from abc import ABC, abstractmethod

from resolve.models import ModelResponse


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class MissingKeyError(ProviderError):
    """Raised at construction when the provider's API key is not set."""


class LLMProvider(ABC):
    """One LLM endpoint: send a system + user prompt, get text back."""

    @abstractmethod
    def name(self) -> str:
        """Return the config entry name (e.g. 'gemini', 'classifier')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the default model identifier string."""
        ...

    @abstractmethod
    async def send(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_response: bool = False,
    ) -> ModelResponse:
        """Send one prompt pair and return the response text with metadata.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The request itself.
            model: Override the configured model string.
            temperature: Override the configured temperature.
            max_tokens: Override the configured output token cap.
            json_response: Ask the endpoint to constrain output to a JSON object
                where it supports that.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

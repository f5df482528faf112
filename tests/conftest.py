"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from resolve.models import AdvocateResult, ModelResponse, Provider, StanceGroup
from resolve.providers.base import LLMProvider


def make_response(content: str, name: str = "mock") -> ModelResponse:
    return ModelResponse(provider=name, model="mock-model", content=content, latency_sec=0.1, token_count=10)


def make_results(summaries: dict[Provider, str], explanation: str = "Because {name} says so.") -> list[AdvocateResult]:
    """AdvocateResults in Provider order from a provider -> summary map."""
    return [
        AdvocateResult(p, explanation.format(name=p.display_name), summaries[p])
        for p in Provider
        if p in summaries
    ]


def group(stance_id: str, summary: str, *members: Provider) -> StanceGroup:
    return StanceGroup(stance_id=stance_id, members=tuple(members), stance_summary=summary)


class MockProvider(LLMProvider):
    """Test double LLMProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        self.send = AsyncMock(return_value=make_response(response_content, provider_name))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def send(  # type: ignore[override]
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_response: bool = False,
    ) -> ModelResponse:
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_response(self._response_content, self._name)


def advocate_reply(explanation: str, summary: str) -> str:
    return f"EXPLANATION: {explanation}\nSUMMARY: {summary}"


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=240,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        labeler="Extract options as JSON.",
        classifier="Group answers by stance as JSON.",
        arbiter_single="Write a rationale.",
        arbiter_groups="Write a paragraph for this stance.",
        arbiter_changes="Summarize changes.",
        advocate_systems={p: f"You are the {p.display_name} advocate." for p in Provider},
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    def entry(name: str, sdk: str, env: str) -> ModelConfig:
        return ModelConfig(name=name, sdk=sdk, model=f"{name}-model", api_key_env=env)

    return AppConfig(
        defaults=DefaultsConfig(output_dir=tmp_path / "output"),
        advocates={
            Provider.OPENAI: entry("openai", "openai", "TEST_OPENAI_KEY"),
            Provider.ANTHROPIC: entry("anthropic", "anthropic", "TEST_ANTHROPIC_KEY"),
        },
        assistants={
            "labeler": entry("labeler", "openai", "TEST_OPENAI_KEY"),
            "classifier": entry("classifier", "openai", "TEST_OPENAI_KEY"),
            "arbiter": entry("arbiter", "openai", "TEST_OPENAI_KEY"),
        },
        prompts=sample_prompts_config,
        available_providers=set(),
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def all_advocates() -> dict[Provider, MockProvider]:
    """One MockProvider per Provider answering 'A'."""
    return {
        p: MockProvider(p.key, advocate_reply(f"{p.display_name} reasoning.", "A"))
        for p in Provider
    }

"""Unit tests for resolve/healthcheck.py, no real API calls."""

import asyncio
from unittest.mock import AsyncMock

import resolve.healthcheck as hc
from resolve.healthcheck import run_health_checks
from resolve.models import Provider
from resolve.providers.base import ProviderError
from tests.conftest import MockProvider


async def test_all_providers_pass():
    """All providers succeed -> all marked ok, no errors."""
    providers = {
        Provider.ANTHROPIC: MockProvider("anthropic", "OK"),
        Provider.GEMINI: MockProvider("gemini", "OK"),
    }

    results = await run_health_checks(providers)

    assert results[Provider.ANTHROPIC] == (True, "")
    assert results[Provider.GEMINI] == (True, "")
    assert providers[Provider.GEMINI].send.call_args.kwargs["max_tokens"] == 5


async def test_one_provider_fails():
    """A provider that raises returns ok=False with the error message."""
    providers = {
        Provider.ANTHROPIC: MockProvider("anthropic", "OK"),
        Provider.MISTRAL: MockProvider("mistral"),
    }
    providers[Provider.MISTRAL].send = AsyncMock(side_effect=ProviderError("mistral", "403 Forbidden"))

    results = await run_health_checks(providers)

    assert results[Provider.ANTHROPIC] == (True, "")
    ok, err = results[Provider.MISTRAL]
    assert ok is False
    assert "403" in err


async def test_all_providers_fail():
    """All fail -> all marked False."""
    providers = {Provider.OPENAI: MockProvider("openai"), Provider.DEEPSEEK: MockProvider("deepseek")}
    for provider, client in providers.items():
        client.send = AsyncMock(side_effect=Exception(f"{provider.key} down"))

    results = await run_health_checks(providers)

    for provider in providers:
        ok, err = results[provider]
        assert ok is False
        assert provider.key in err


async def test_empty_providers():
    results = await run_health_checks({})
    assert results == {}


async def test_timeout_counts_as_failure(monkeypatch):
    """A provider that hangs past the timeout is marked as failed."""
    slow = MockProvider("openai")

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    slow.send = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks({Provider.OPENAI: slow})

    ok, err = results[Provider.OPENAI]
    assert ok is False
    assert err == "TimeoutError"

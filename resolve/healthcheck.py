"""Provider health checks: ping each advocate API before the first question."""

import asyncio
import logging

from resolve.models import Provider
from resolve.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_PING_SYSTEM = "You are a health check."
_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(provider: Provider, client: LLMProvider) -> tuple[Provider, bool, str]:
    """Ping a single provider. Returns (provider, ok, error_message)."""
    try:
        await asyncio.wait_for(
            client.send(_PING_SYSTEM, _PING_PROMPT, max_tokens=5),
            timeout=_TIMEOUT_SEC,
        )
        return provider, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", provider.display_name, exc)
        return provider, False, str(exc) or type(exc).__name__


async def run_health_checks(
    advocates: dict[Provider, LLMProvider],
) -> dict[Provider, tuple[bool, str]]:
    """Ping all advocates in parallel.

    Returns:
        Dict mapping provider -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(p, c) for p, c in advocates.items()))
    return {provider: (ok, err) for provider, ok, err in results}

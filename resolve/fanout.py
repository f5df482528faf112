"""Advocate fan-out: query every provider concurrently, one result per slot."""

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence

from resolve.models import (
    MISSING_KEY,
    NO_RESPONSE,
    AdvocateResult,
    LabeledOption,
    ProblemType,
    Provider,
)
from resolve.parsing import parse_advocate_reply
from resolve.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)

_NARRATIVE_FORMAT = "Output exactly one sentence (max 22 words) that directly answers the question."


def _summary_header(
    problem_type: ProblemType,
    options: Sequence[LabeledOption],
) -> tuple[str, str, str | None]:
    """Return (normalized type, summary format instruction, OPTIONS line or None)."""
    labels = [o.label for o in options]
    options_line = "OPTIONS: " + " ".join(f"{o.label}) {o.text}" for o in options) if options else None

    if problem_type is ProblemType.SINGLE_SELECT:
        label_list = "/".join(labels) or "A/B/C/D"
        return (
            "SINGLE_SELECT",
            f"Output ONLY the single best option letter ({label_list}). No other text.",
            options_line,
        )
    if problem_type is ProblemType.MULTI_SELECT:
        sample = ", ".join(labels[:3]) or "A, B, D"
        return (
            "MULTI_SELECT",
            "Output ONLY a comma+space separated list of option letters in sorted order "
            f"(e.g. '{sample}'). No other text.",
            options_line,
        )
    return "NARRATIVE", _NARRATIVE_FORMAT, None


def build_initial_prompt(
    problem_type: ProblemType,
    question: str,
    options: Sequence[LabeledOption] = (),
) -> str:
    normalized, summary_format, options_line = _summary_header(problem_type, options)
    lines = [
        f"PROBLEM_TYPE: {normalized}",
        f"SUMMARY_FORMAT: {summary_format}",
        f"QUESTION: {question}",
    ]
    if options_line:
        lines.append(options_line)
    return "\n".join(lines)


def build_reconsider_prompt(
    problem_type: ProblemType,
    question: str,
    options: Sequence[LabeledOption],
    prior: AdvocateResult | None,
    other_reasoning: str,
) -> str:
    """Prompt asking one advocate whether rival reasoning changes its stance."""
    lines = build_initial_prompt(problem_type, question, options).split("\n")
    lines += [
        "",
        f"YOUR_PREVIOUS_SUMMARY: {prior.summary if prior else ''}",
        f"YOUR_PREVIOUS_EXPLANATION: {prior.explanation if prior else ''}",
        "",
        "OTHER_ADVOCATES_REASONING:",
        other_reasoning or "(none)",
        "",
        "Instruction:",
        "Based on the other advocates' reasoning, do you still stand by your previous stance?",
        "If you change your stance, say so clearly and explain why.",
        "If you keep your stance, explain why you are not persuaded.",
        "",
        "Output format (exact):",
        "EXPLANATION: <brief explanation, max 120 words>",
        "SUMMARY: <follow the SUMMARY_FORMAT requested above exactly>",
    ]
    return "\n".join(lines)


def missing_key_result(provider: Provider) -> AdvocateResult:
    return AdvocateResult(
        provider=provider,
        explanation=f"Missing API key for {provider.display_name}.",
        summary=MISSING_KEY,
    )


def error_result(provider: Provider, message: str) -> AdvocateResult:
    return AdvocateResult(provider=provider, explanation=message, summary=NO_RESPONSE)


class AdvocateFanOut:
    """Runs one prompt per provider concurrently and joins on all of them."""

    def __init__(
        self,
        advocates: Mapping[Provider, LLMProvider],
        system_prompts: Mapping[Provider, str],
        unavailable: Iterable[Provider] = (),
    ) -> None:
        self._advocates = dict(advocates)
        self._system_prompts = dict(system_prompts)
        # Keyed advocates that failed the startup health check.
        self._unavailable = set(unavailable)

    @property
    def configured(self) -> list[Provider]:
        return [p for p in Provider if p in self._advocates]

    async def _call_advocate(self, provider: Provider, user_prompt: str) -> AdvocateResult:
        """Call a single advocate. Never raises: failures become placeholder results."""
        if provider in self._unavailable:
            return error_result(provider, f"{provider.display_name} failed the health check.")
        client = self._advocates.get(provider)
        if client is None:
            return missing_key_result(provider)

        try:
            response = await client.send(self._system_prompts.get(provider, ""), user_prompt)
        except ProviderError as exc:
            logger.warning("Advocate %s failed: %s", provider.display_name, exc)
            return error_result(provider, f"{provider.display_name} error: {exc}")
        except Exception as exc:
            logger.warning("Advocate %s unexpected failure: %s", provider.display_name, exc)
            return error_result(provider, f"{provider.display_name} error: {exc}")

        explanation, summary = parse_advocate_reply(response.content)
        return AdvocateResult(provider=provider, explanation=explanation, summary=summary)

    async def run(self, user_prompts: str | Mapping[Provider, str]) -> list[AdvocateResult]:
        """Query every provider and return results in fixed Provider order.

        Args:
            user_prompts: One prompt for all advocates, or a per-provider map.

        Returns:
            Exactly one AdvocateResult per Provider, ordered by Provider.
        """
        if isinstance(user_prompts, str):
            prompts = {p: user_prompts for p in Provider}
        else:
            prompts = {p: user_prompts.get(p, "") for p in Provider}

        logger.info("Querying %d advocates (%d configured)", len(prompts), len(self._advocates))

        results = await asyncio.gather(*(self._call_advocate(p, prompts[p]) for p in Provider))
        ordered = sorted(results, key=lambda r: r.provider.order)

        answered = sum(1 for r in ordered if r.summary not in (NO_RESPONSE, MISSING_KEY))
        logger.info("Fan-out complete: %d/%d advocates answered", answered, len(ordered))
        return ordered

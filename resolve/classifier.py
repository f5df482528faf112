"""Stance classification: group advocate answers by bottom-line outcome."""

import json
import logging
from collections.abc import Iterable, Sequence

from resolve.models import AdvocateResult, ProblemType, Provider, StanceGroup, in_provider_order
from resolve.parsing import extract_json_object
from resolve.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)

EMPTY_KEY = "∅"


class InvalidGroupingError(ValueError):
    """Raised when an assisting-model grouping breaks the exactly-once invariant."""


def canonical_key(summary: str) -> str:
    """Order-, case- and whitespace-insensitive key for a closed-form answer.

    >>> canonical_key(" b ,a ")
    'A, B'
    """
    parts = sorted(p.strip().upper() for p in summary.split(",") if p.strip())
    return ", ".join(parts) if parts else EMPTY_KEY


def validate_partition(groups: Sequence[StanceGroup], providers: Iterable[Provider]) -> bool:
    """True when every provider appears in exactly one group and nothing else does."""
    expected = set(providers)
    seen: list[Provider] = [m for g in groups for m in g.members]
    return len(seen) == len(set(seen)) and set(seen) == expected


def fallback_groups(results: Sequence[AdvocateResult]) -> list[StanceGroup]:
    """One singleton group per advocate, in Provider order."""
    ordered = sorted(results, key=lambda r: r.provider.order)
    return [
        StanceGroup(stance_id=f"S{i}", members=(r.provider,), stance_summary=r.summary)
        for i, r in enumerate(ordered, start=1)
    ]


def classify_closed_form(results: Sequence[AdvocateResult]) -> list[StanceGroup]:
    by_key: dict[str, list[Provider]] = {}
    for result in results:
        by_key.setdefault(canonical_key(result.summary), []).append(result.provider)

    return [
        StanceGroup(
            stance_id=f"S{i}",
            members=tuple(in_provider_order(by_key[key])),
            stance_summary=key,
        )
        for i, key in enumerate(sorted(by_key), start=1)
    ]


def groups_from_payload(payload: dict, results: Sequence[AdvocateResult]) -> list[StanceGroup]:
    """Convert a classifier JSON reply into validated, renumbered groups.

    Raises:
        InvalidGroupingError: On any schema or membership violation.
    """
    raw_groups = payload.get("groups")
    if not isinstance(raw_groups, list) or not raw_groups:
        raise InvalidGroupingError("missing 'groups' list")

    summaries = {r.provider: r.summary for r in results}
    parsed: list[tuple[str, tuple[Provider, ...], str]] = []
    for index, raw in enumerate(raw_groups):
        if not isinstance(raw, dict) or not isinstance(raw.get("members"), list):
            raise InvalidGroupingError(f"group {index} has no member list")
        try:
            members = tuple(Provider.from_key(str(m)) for m in raw["members"])
        except ValueError as exc:
            raise InvalidGroupingError(str(exc)) from exc
        if not members:
            raise InvalidGroupingError(f"group {index} is empty")

        summary = raw.get("stance_summary")
        if not isinstance(summary, str) or not summary.strip():
            if len(members) != 1:
                raise InvalidGroupingError(f"group {index} has no stance summary")
            summary = summaries.get(members[0], "")
        stance_id = str(raw.get("stance_id") or f"S{index + 1}")
        parsed.append((stance_id, tuple(in_provider_order(members)), summary.strip()))

    groups = [StanceGroup(sid, members, summary) for sid, members, summary in parsed]
    if not validate_partition(groups, summaries):
        raise InvalidGroupingError("providers not covered exactly once")

    # sorted() is stable, so duplicate stance ids keep the model's order
    parsed.sort(key=lambda g: g[0])
    return [
        StanceGroup(stance_id=f"S{i}", members=members, stance_summary=summary)
        for i, (_, members, summary) in enumerate(parsed, start=1)
    ]


class StanceClassifier:
    """Deterministic grouping for closed-form answers, assisted grouping otherwise."""

    def __init__(self, assistant: LLMProvider | None, system_prompt: str) -> None:
        self._assistant = assistant
        self._system_prompt = system_prompt

    async def classify(
        self,
        problem_type: ProblemType,
        question: str,
        results: Sequence[AdvocateResult],
    ) -> list[StanceGroup]:
        if problem_type.is_closed_form:
            return classify_closed_form(results)
        return await self._classify_open_ended(question, results)

    async def _classify_open_ended(
        self,
        question: str,
        results: Sequence[AdvocateResult],
    ) -> list[StanceGroup]:
        if self._assistant is None:
            logger.warning("No classifier configured, using one group per advocate")
            return fallback_groups(results)

        items = [{"provider": r.provider.key, "summary": r.summary} for r in results]
        user_prompt = (
            f"QUESTION: {question}\n\n"
            "Group these summaries by stance. Input (JSON array):\n"
            f"{json.dumps(items, ensure_ascii=False, indent=2)}"
        )

        try:
            response = await self._assistant.send(self._system_prompt, user_prompt, json_response=True)
            groups = groups_from_payload(extract_json_object(response.content), results)
        except (ProviderError, ValueError) as exc:
            logger.warning("Stance classification failed, using one group per advocate: %s", exc)
            return fallback_groups(results)

        logger.info("Classifier produced %d stance groups for %d advocates", len(groups), len(results))
        return groups

"""Arbiter: neutral prose over stance groups, and round-to-round change summaries."""

import asyncio
import json
import logging
import re
from collections.abc import Sequence

from config.config_loader import PromptsConfig
from resolve.models import AdvocateResult, Provider, StanceGroup
from resolve.parsing import bold, ensure_bold_lead, join_names
from resolve.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)

NO_CHANGES = "All advocates stood by their stances."


_LIST_MARKER = re.compile(r"^[ \t]*(?:[-*•]|\d+[.)])[ \t]+", re.MULTILINE)
_PROVIDER_ANCHOR = re.compile(
    r"(?:^|(?<=[.!?])[ \t]+)(?P<name>"
    + "|".join(re.escape(p.display_name) for p in Provider)
    + r")\b",
    re.MULTILINE,
)
_BECAUSE = re.compile(r"\bbecause\b", re.IGNORECASE)


class ArbiterError(RuntimeError):
    """Raised when the arbiter cannot produce a summary. Never papered over."""


def split_change_sentences(text: str) -> dict[Provider, str]:
    """Cut a change summary into one sentence per provider.

    A sentence starts where a line or a previous sentence starts with a
    provider's display name and runs until the next such anchor, so wrapped
    lines stay together. List markers are dropped, text before the first
    anchor is ignored, and only the first sentence per provider is kept.
    """
    text = _LIST_MARKER.sub("", text)
    anchors = list(_PROVIDER_ANCHOR.finditer(text))

    sentences: dict[Provider, str] = {}
    for i, match in enumerate(anchors):
        end = anchors[i + 1].start("name") if i + 1 < len(anchors) else len(text)
        provider = Provider.from_key(match.group("name"))
        sentences.setdefault(provider, " ".join(text[match.start("name"):end].split()))
    return sentences


def lead_in(members: Sequence[Provider]) -> str:
    """Deterministic opening line for a stance paragraph."""
    names = [p.display_name for p in members]
    verb = "thinks" if len(names) == 1 else "think"
    return f"{join_names(names)} {verb}:"


def _group_of(groups: Sequence[StanceGroup]) -> dict[Provider, int]:
    return {member: i for i, g in enumerate(groups) for member in g.members}


def match_groups(
    prev_groups: Sequence[StanceGroup],
    new_groups: Sequence[StanceGroup],
) -> dict[int, int]:
    """Pair each new group with at most one previous group, by member overlap.

    Pairs are taken greedily by descending overlap; ties prefer identical
    stance summaries, then Provider order. Stance IDs are never compared.

    Returns:
        Mapping of new-group index to previous-group index.
    """
    candidates = []
    for ni, new in enumerate(new_groups):
        for pi, prev in enumerate(prev_groups):
            overlap = len(set(new.members) & set(prev.members))
            if not overlap:
                continue
            same_summary = new.stance_summary.strip().lower() == prev.stance_summary.strip().lower()
            candidates.append((
                -overlap,
                not same_summary,
                min(p.order for p in new.members),
                min(p.order for p in prev.members),
                ni,
                pi,
            ))

    matched: dict[int, int] = {}
    used_prev: set[int] = set()
    for *_, ni, pi in sorted(candidates):
        if ni in matched or pi in used_prev:
            continue
        matched[ni] = pi
        used_prev.add(pi)
    return matched


def changed_providers(
    prev_groups: Sequence[StanceGroup],
    new_groups: Sequence[StanceGroup],
) -> list[Provider]:
    """Providers whose stance group differs between rounds, in Provider order."""
    prev_of = _group_of(prev_groups)
    new_of = _group_of(new_groups)
    matched = match_groups(prev_groups, new_groups)
    return [
        p for p in Provider
        if p in prev_of and p in new_of and matched.get(new_of[p]) != prev_of[p]
    ]


class Arbiter:
    """Stateless summarizer backed by one assisting model."""

    def __init__(self, assistant: LLMProvider | None, prompts: PromptsConfig) -> None:
        self._assistant = assistant
        self._prompts = prompts

    async def _call(self, system_prompt: str, user_prompt: str) -> str:
        if self._assistant is None:
            raise ArbiterError("Arbiter API key not configured.")
        try:
            response = await self._assistant.send(system_prompt, user_prompt)
        except ProviderError as exc:
            raise ArbiterError(f"Arbiter request failed: {exc}") from exc
        text = response.content.strip()
        if not text:
            raise ArbiterError("Arbiter returned an empty response.")
        return text

    async def summarize_initial(
        self,
        groups: Sequence[StanceGroup],
        results: Sequence[AdvocateResult],
    ) -> str:
        """Summarize the stances of one round.

        One group yields a fixed agreement header plus a short rationale with
        no provider names. Several groups yield one paragraph per group,
        smallest group first, each opened by a "<names> think:" line.

        Raises:
            ArbiterError: On request failure or empty assisting-model output.
        """
        if not groups:
            raise ArbiterError("No stance groups to summarize.")
        if len(groups) == 1:
            return await self._summarize_single(groups[0], results)

        ordered = [g for _, g in sorted(enumerate(groups), key=lambda ig: (len(ig[1].members), ig[0]))]
        by_provider = {r.provider: r for r in results}
        paragraphs = await asyncio.gather(*(self._group_paragraph(g, by_provider) for g in ordered))
        logger.info("Arbiter summarized %d stance groups", len(ordered))
        return "\n\n".join(paragraphs)

    async def _summarize_single(self, group: StanceGroup, results: Sequence[AdvocateResult]) -> str:
        summaries = [r.summary.strip() for r in results if r.summary.strip()]
        explanations = [r.explanation.strip() for r in results if r.explanation.strip()]
        user_prompt = "\n".join([
            "STANCE (one sentence):",
            group.stance_summary,
            "",
            "ADVOCATE SUMMARIES:",
            "\n".join(f"- {s}" for s in summaries),
            "",
            "ADVOCATE EXPLANATIONS:",
            "\n\n---\n\n".join(explanations),
        ])
        rationale = await self._call(self._prompts.arbiter_single, user_prompt)
        return f"All advocates agreed with this stance: {bold(group.stance_summary)}\n{rationale}"

    async def _group_paragraph(
        self,
        group: StanceGroup,
        by_provider: dict[Provider, AdvocateResult],
    ) -> str:
        explanations = [
            by_provider[p].explanation.strip()
            for p in group.members
            if p in by_provider and by_provider[p].explanation.strip()
        ]
        user_prompt = "\n".join([
            f"STANCE: {group.stance_summary}",
            "",
            "EXPLANATIONS FROM ADVOCATES HOLDING THIS STANCE:",
            "\n\n---\n\n".join(explanations) or "(none)",
        ])
        rationale = await self._call(self._prompts.arbiter_groups, user_prompt)
        return f"{lead_in(group.members)}\n{ensure_bold_lead(rationale)}"

    async def summarize_changes(
        self,
        prev_groups: Sequence[StanceGroup],
        prev_results: Sequence[AdvocateResult],
        new_groups: Sequence[StanceGroup],
        new_results: Sequence[AdvocateResult],
    ) -> str:
        """Describe which advocates changed stance between two rounds.

        Returns NO_CHANGES without any request when group membership is
        unchanged. Otherwise one sentence per changed provider, in Provider
        order; unchanged providers are omitted.

        Raises:
            ArbiterError: On request failure, empty output, or output that
                leaves out a changed provider or gives no "because" reason.
        """
        changed = changed_providers(prev_groups, new_groups)
        if not changed:
            return NO_CHANGES

        prev_summary = {m: g.stance_summary for g in prev_groups for m in g.members}
        new_summary = {m: g.stance_summary for g in new_groups for m in g.members}
        new_by_provider = {r.provider: r for r in new_results}
        prev_by_provider = {r.provider: r for r in prev_results}

        changes = [
            {
                "provider": p.display_name,
                "old_stance": prev_summary[p],
                "new_stance": new_summary[p],
                "previous_explanation": prev_by_provider[p].explanation if p in prev_by_provider else "",
                "new_explanation": new_by_provider[p].explanation if p in new_by_provider else "",
            }
            for p in changed
        ]
        user_prompt = "\n".join([
            "CHANGED_PROVIDERS (JSON array, in order):",
            json.dumps([p.display_name for p in changed], ensure_ascii=False),
            "",
            "CHANGES (JSON array):",
            json.dumps(changes, ensure_ascii=False, indent=2),
            "",
            "Write one sentence per provider in CHANGED_PROVIDERS, in the same order, one per line.",
        ])

        text = await self._call(self._prompts.arbiter_changes, user_prompt)
        segments = split_change_sentences(text)

        sentences: list[str] = []
        for provider in changed:
            sentence = segments.get(provider)
            if sentence is None:
                raise ArbiterError(f"Arbiter omitted the stance change for {provider.display_name}.")
            if not _BECAUSE.search(sentence):
                raise ArbiterError(f"Arbiter gave no reason for the stance change of {provider.display_name}.")
            sentences.append(sentence)

        logger.info("Arbiter reported %d stance changes", len(sentences))
        return "\n\n".join(sentences)

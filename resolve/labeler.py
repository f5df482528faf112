"""Closed-form question labeling: extract a stem and A..Z options via an assisting model."""

import logging
import string

from resolve.models import LabeledOption, LabelResult
from resolve.parsing import extract_json_object
from resolve.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
MAX_OPTIONS = 26


def _fail(reason: str) -> LabelResult:
    return LabelResult(ok=False, reason=reason)


def validate_labeler_payload(payload: dict) -> LabelResult:
    """Check a decoded labeler reply and relabel its options A, B, C, ...

    Labels returned by the model are ignored; option order is kept.
    """
    if payload.get("ok") is not True:
        reason = payload.get("reason")
        if isinstance(reason, str) and reason.strip():
            return _fail(reason.strip())
        return _fail("Could not reliably detect multiple-choice options.")

    stem = payload.get("question_stem")
    if not isinstance(stem, str) or not stem.strip():
        return _fail("Labeler returned no question stem.")

    raw_options = payload.get("options")
    if not isinstance(raw_options, list):
        return _fail("Labeler returned no option list.")
    if not MIN_OPTIONS <= len(raw_options) <= MAX_OPTIONS:
        return _fail(f"Expected {MIN_OPTIONS}-{MAX_OPTIONS} options, found {len(raw_options)}.")

    texts: list[str] = []
    for item in raw_options:
        text = item.get("text") if isinstance(item, dict) else item
        if not isinstance(text, str) or not text.strip():
            return _fail("Labeler returned an option without text.")
        texts.append(text.strip())

    options = tuple(
        LabeledOption(label=label, text=text)
        for label, text in zip(string.ascii_uppercase, texts)
    )
    return LabelResult(ok=True, stem=stem.strip(), options=options)


class OptionLabeler:
    """Turns free-form pasted multiple-choice text into a stem plus labeled options."""

    def __init__(self, assistant: LLMProvider | None, system_prompt: str) -> None:
        self._assistant = assistant
        self._system_prompt = system_prompt

    async def label(self, raw_question: str) -> LabelResult:
        if self._assistant is None:
            return _fail("Labeler API key not configured.")
        if not raw_question.strip():
            return _fail("Question is empty.")

        try:
            response = await self._assistant.send(
                self._system_prompt,
                raw_question,
                json_response=True,
            )
        except ProviderError as exc:
            logger.warning("Labeler request failed: %s", exc)
            return _fail(f"Labeler request failed: {str(exc)[:200]}")

        try:
            payload = extract_json_object(response.content)
        except ValueError as exc:
            logger.warning("Labeler returned malformed JSON: %s", exc)
            return _fail(f"Labeler returned malformed JSON: {response.content.strip()[:200]}")

        result = validate_labeler_payload(payload)
        if result.ok:
            logger.info("Labeler extracted %d options", len(result.options))
        else:
            logger.info("Labeler rejected question: %s", result.reason)
        return result

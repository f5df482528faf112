"""Small parsers for the text micro-formats exchanged with models and the UI.

Advocate replies use two labelled lines::

    EXPLANATION: <free text>
    SUMMARY: <short answer>

Arbiter output marks emphasis with ``<bold>...</bold>`` spans; that marker is
the only rich-text convention the consuming UI renders.
"""

import json
import re

from resolve.models import NO_SUMMARY

SUMMARY_MAX_WORDS = 22

BOLD_OPEN = "<bold>"
BOLD_CLOSE = "</bold>"

_EXPLANATION_PREFIX = "EXPLANATION:"
_SUMMARY_PREFIX = "SUMMARY:"
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_BOLD_SPAN = re.compile(r"<bold>(.*?)</bold>", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def first_sentence(text: str) -> str:
    """Return text up to and including the first '.', '!' or '?' followed by whitespace or the end."""
    match = _SENTENCE_END.search(text)
    if match:
        return text[: match.end()]
    return text


def truncate_words(text: str, max_words: int = SUMMARY_MAX_WORDS) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "…"


def parse_advocate_reply(text: str) -> tuple[str, str]:
    """Split an advocate reply into (explanation, summary).

    When either labelled line is missing or empty, the whole trimmed reply
    becomes the explanation and the summary falls back to its first
    sentence, capped at SUMMARY_MAX_WORDS words.
    """
    trimmed = text.strip()
    lines = [line.strip() for line in trimmed.splitlines() if line.strip()]

    explanation_line = next((l for l in lines if l.startswith(_EXPLANATION_PREFIX)), None)
    summary_line = next((l for l in lines if l.startswith(_SUMMARY_PREFIX)), None)

    if explanation_line is not None and summary_line is not None:
        explanation = explanation_line[len(_EXPLANATION_PREFIX):].strip()
        summary = summary_line[len(_SUMMARY_PREFIX):].strip()
        if explanation and summary:
            return explanation, summary

    fallback = truncate_words(first_sentence(trimmed).strip())
    return trimmed, fallback or NO_SUMMARY


def extract_json_object(text: str) -> dict:
    """Parse a JSON object from model output.

    Accepts bare JSON, a fenced code block, or an object embedded in prose.

    Raises:
        ValueError: If no JSON object can be decoded.
    """
    stripped = text.strip()
    candidates = [stripped]
    match = _JSON_OBJECT.search(stripped)
    if match and match.group() != stripped:
        candidates.append(match.group())

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ValueError(f"No JSON object in model output: {stripped[:200]!r}")


def bold(text: str) -> str:
    return f"{BOLD_OPEN}{text}{BOLD_CLOSE}"


def has_bold(text: str) -> bool:
    return _BOLD_SPAN.search(text) is not None


def strip_bold(text: str) -> str:
    return _BOLD_SPAN.sub(r"\1", text)


def split_bold_spans(text: str) -> list[tuple[str, bool]]:
    """Split text into (segment, is_bold) pairs. Unterminated markers stay plain."""
    segments: list[tuple[str, bool]] = []
    pos = 0
    for match in _BOLD_SPAN.finditer(text):
        if match.start() > pos:
            segments.append((text[pos:match.start()], False))
        if match.group(1):
            segments.append((match.group(1), True))
        pos = match.end()
    if pos < len(text):
        segments.append((text[pos:], False))
    return segments


def ensure_bold_lead(paragraph: str) -> str:
    """Wrap the first sentence in a bold span when the paragraph has none."""
    if has_bold(paragraph):
        return paragraph
    lead = first_sentence(paragraph)
    return bold(lead) + paragraph[len(lead):]


def join_names(names: list[str]) -> str:
    """'A', 'A and B', 'A, B, and C'."""
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return ", ".join(names[:-1]) + f", and {names[-1]}"

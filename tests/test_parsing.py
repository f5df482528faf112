"""Tests for resolve/parsing.py."""

import pytest

from resolve.parsing import (
    bold,
    ensure_bold_lead,
    extract_json_object,
    first_sentence,
    has_bold,
    join_names,
    parse_advocate_reply,
    split_bold_spans,
    strip_bold,
    truncate_words,
)


def test_parse_advocate_reply_two_lines():
    text = "EXPLANATION: Oxygen is essential.\nSUMMARY: B"
    assert parse_advocate_reply(text) == ("Oxygen is essential.", "B")


def test_parse_advocate_reply_ignores_surrounding_noise():
    text = "\n  Sure!\n  EXPLANATION:  It is faster.  \n\nSUMMARY:   Use Rust.  \n"
    assert parse_advocate_reply(text) == ("It is faster.", "Use Rust.")


def test_parse_advocate_reply_fallback_first_sentence():
    text = "Paris is the capital. It has been since 987."
    explanation, summary = parse_advocate_reply(text)
    assert explanation == text
    assert summary == "Paris is the capital."


def test_parse_advocate_reply_fallback_when_field_empty():
    text = "EXPLANATION:\nSUMMARY: A"
    explanation, summary = parse_advocate_reply(text)
    assert explanation == text
    assert summary == text


def test_parse_advocate_reply_truncates_long_fallback():
    text = " ".join(f"word{i}" for i in range(40))
    _, summary = parse_advocate_reply(text)
    assert summary.endswith("…")
    assert len(summary.split()) == 22


def test_parse_advocate_reply_empty():
    assert parse_advocate_reply("   ") == ("", "No summary available.")


def test_first_sentence_without_terminator():
    assert first_sentence("no stop here") == "no stop here"


def test_truncate_words_short_text_unchanged():
    assert truncate_words("one two", max_words=5) == "one two"


def test_extract_json_object_plain():
    assert extract_json_object('{"ok": true}') == {"ok": True}


def test_extract_json_object_fenced():
    text = 'Here you go:\n```json\n{"groups": []}\n```'
    assert extract_json_object(text) == {"groups": []}


@pytest.mark.parametrize("text", ["not json", "[1, 2]", "{broken"])
def test_extract_json_object_rejects(text):
    with pytest.raises(ValueError):
        extract_json_object(text)


def test_bold_helpers():
    marked = f"Lead. {bold('Main claim.')} Tail."
    assert has_bold(marked)
    assert strip_bold(marked) == "Lead. Main claim. Tail."
    assert split_bold_spans(marked) == [("Lead. ", False), ("Main claim.", True), (" Tail.", False)]


def test_split_bold_spans_unterminated_is_plain():
    assert split_bold_spans("<bold>oops") == [("<bold>oops", False)]


def test_ensure_bold_lead_wraps_first_sentence():
    assert ensure_bold_lead("First claim. Second.") == "<bold>First claim.</bold> Second."


def test_ensure_bold_lead_keeps_existing_span():
    text = "Intro. <bold>Claim.</bold>"
    assert ensure_bold_lead(text) == text


@pytest.mark.parametrize(
    "names, expected",
    [
        (["Claude"], "Claude"),
        (["Claude", "Gemini"], "Claude and Gemini"),
        (["ChatGPT", "Claude", "Gemini"], "ChatGPT, Claude, and Gemini"),
        ([], ""),
    ],
)
def test_join_names(names, expected):
    assert join_names(names) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3.14 is pi. It never ends.", "3.14 is pi."),
        ("Use v2.0 now! Later maybe.", "Use v2.0 now!"),
    ],
)
def test_first_sentence_ignores_inner_punctuation(text, expected):
    assert first_sentence(text) == expected


def test_parse_advocate_reply_fallback_keeps_decimal():
    _, summary = parse_advocate_reply("Roughly 2.5 million people live there. Source: census.")
    assert summary == "Roughly 2.5 million people live there."


def test_ensure_bold_lead_keeps_decimal_in_span():
    assert ensure_bold_lead("Pi is 3.14 exactly. Close enough.") == "<bold>Pi is 3.14 exactly.</bold> Close enough."

"""Tests for resolve/models.py."""

import pytest

from resolve.models import (
    AdvocateOutput,
    AdvocateResult,
    LabelResult,
    ProblemType,
    Provider,
    RunRecord,
    StanceGroup,
    TurnResult,
    in_provider_order,
)


def test_provider_fixed_order():
    assert [p.key for p in Provider] == ["openai", "anthropic", "gemini", "deepseek", "mistral"]
    assert [p.order for p in Provider] == [0, 1, 2, 3, 4]


def test_provider_display_names():
    assert Provider.OPENAI.display_name == "ChatGPT"
    assert Provider.ANTHROPIC.display_name == "Claude"
    assert Provider.MISTRAL.display_name == "Mistral"


@pytest.mark.parametrize("raw", ["gemini", "GEMINI", " Gemini "])
def test_provider_from_key(raw):
    assert Provider.from_key(raw) is Provider.GEMINI


def test_provider_from_display_name():
    assert Provider.from_key("ChatGPT") is Provider.OPENAI


def test_provider_from_key_unknown():
    with pytest.raises(ValueError, match="Unknown provider"):
        Provider.from_key("grok")


def test_in_provider_order():
    assert in_provider_order({Provider.MISTRAL, Provider.OPENAI, Provider.GEMINI}) == [
        Provider.OPENAI,
        Provider.GEMINI,
        Provider.MISTRAL,
    ]


def test_problem_type_closed_form():
    assert ProblemType.SINGLE_SELECT.is_closed_form
    assert ProblemType.MULTI_SELECT.is_closed_form
    assert not ProblemType.GENERAL.is_closed_form
    assert not ProblemType.COMPARISON.is_closed_form


def test_advocate_result_is_immutable():
    result = AdvocateResult(Provider.OPENAI, "Because.", "A")
    with pytest.raises(AttributeError):
        result.summary = "B"  # type: ignore[misc]
    assert result.provider_name == "ChatGPT"


def test_label_result_user_message_uses_reason():
    msg = LabelResult(ok=False, reason="Only one option found.").user_message()
    assert msg.startswith("Only one option found.")
    assert "switch to General Question" in msg


def test_run_record_to_dict():
    record = RunRecord(
        run_index=1,
        run_type="resolve",
        problem_type=ProblemType.SINGLE_SELECT,
        advocate_outputs=[AdvocateOutput.from_result(AdvocateResult(Provider.GEMINI, "Why.", "B"))],
        classifier_output=[StanceGroup("S1", (Provider.GEMINI,), "B")],
        arbiter_output="All advocates stood by their stances.",
        mcq_disagreement=False,
    )
    data = TurnResult(message="Resolve round 1 of 2", run=record).to_dict()

    assert data["message"] == "Resolve round 1 of 2"
    run = data["run"]
    assert run["prompt_type"] == "single-select"
    assert run["advocate_outputs"] == [
        {"advocate_key": "gemini", "provider": "Gemini", "summary": "B", "detailed_response": "Why."}
    ]
    assert run["classifier_output"] == [{"stance_id": "S1", "members": ["gemini"], "stance_summary": "B"}]
    assert run["mcq_disagreement"] is False
    assert run["arbiter_error"] is None

"""Pure dataclasses and enums for the Resolve deliberation pipeline. No I/O."""

from dataclasses import dataclass, field
from enum import Enum

NO_RESPONSE = "No response."
MISSING_KEY = "Missing API key."
NO_SUMMARY = "No summary available."


class Provider(Enum):
    """Closed set of advocate providers. Definition order is the global order."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    MISTRAL = "mistral"

    @property
    def key(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def order(self) -> int:
        return _ORDER[self]

    @classmethod
    def from_key(cls, key: str) -> "Provider":
        """Resolve a provider from its key or display name, case-insensitive."""
        needle = key.strip().lower()
        for provider in cls:
            if needle in (provider.value, provider.display_name.lower()):
                return provider
        raise ValueError(f"Unknown provider: {key!r}")


_DISPLAY_NAMES = {
    Provider.OPENAI: "ChatGPT",
    Provider.ANTHROPIC: "Claude",
    Provider.GEMINI: "Gemini",
    Provider.DEEPSEEK: "DeepSeek",
    Provider.MISTRAL: "Mistral",
}
_ORDER = {p: i for i, p in enumerate(Provider)}


def in_provider_order(providers) -> list[Provider]:
    return sorted(providers, key=lambda p: p.order)


class ProblemType(Enum):
    SINGLE_SELECT = "single-select"
    MULTI_SELECT = "multi-select"
    GENERAL = "general"
    COMPARISON = "comparison"

    @property
    def is_closed_form(self) -> bool:
        return self in (ProblemType.SINGLE_SELECT, ProblemType.MULTI_SELECT)


@dataclass(frozen=True)
class ModelResponse:
    provider: str          # config entry name, e.g. "openai", "classifier"
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class AdvocateResult:
    provider: Provider
    explanation: str
    summary: str

    @property
    def provider_name(self) -> str:
        return self.provider.display_name


@dataclass(frozen=True)
class LabeledOption:
    label: str   # "A".."Z"
    text: str


@dataclass(frozen=True)
class LabelResult:
    ok: bool
    stem: str | None = None
    options: tuple[LabeledOption, ...] = ()
    reason: str | None = None

    def user_message(self) -> str:
        reason = self.reason or "Could not reliably detect multiple-choice options."
        return f"{reason} Please paste options as a list or switch to General Question."


@dataclass(frozen=True)
class StanceGroup:
    stance_id: str                      # "S1", "S2", ... unique within one classification only
    members: tuple[Provider, ...]
    stance_summary: str


@dataclass(frozen=True)
class AdvocateOutput:
    advocate_key: str
    provider: str
    summary: str
    detailed_response: str

    @classmethod
    def from_result(cls, result: AdvocateResult) -> "AdvocateOutput":
        return cls(
            advocate_key=result.provider.key,
            provider=result.provider_name,
            summary=result.summary,
            detailed_response=result.explanation,
        )

    def to_dict(self) -> dict:
        return {
            "advocate_key": self.advocate_key,
            "provider": self.provider,
            "summary": self.summary,
            "detailed_response": self.detailed_response,
        }


@dataclass
class RunRecord:
    run_index: int
    run_type: str                       # "initial" or "resolve"
    problem_type: ProblemType
    advocate_outputs: list[AdvocateOutput] = field(default_factory=list)
    classifier_output: list[StanceGroup] = field(default_factory=list)
    arbiter_output: str | None = None
    arbiter_error: str | None = None
    mcq_disagreement: bool = False

    def to_dict(self) -> dict:
        return {
            "run_index": self.run_index,
            "run_type": self.run_type,
            "prompt_type": self.problem_type.value,
            "arbiter_output": self.arbiter_output,
            "arbiter_error": self.arbiter_error,
            "advocate_outputs": [a.to_dict() for a in self.advocate_outputs],
            "classifier_output": [
                {
                    "stance_id": g.stance_id,
                    "members": [p.key for p in g.members],
                    "stance_summary": g.stance_summary,
                }
                for g in self.classifier_output
            ],
            "mcq_disagreement": self.mcq_disagreement,
        }


@dataclass
class TurnResult:
    message: str
    run: RunRecord

    def to_dict(self) -> dict:
        return {"message": self.message, "run": self.run.to_dict()}

"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from resolve.models import ProblemType, Provider

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

KNOWN_SDKS = frozenset({"openai", "anthropic", "gemini", "deepseek", "mistral"})
_ASSISTANT_ROLES = ("labeler", "classifier", "arbiter")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: float = 30.0
    max_tokens: int = 240
    temperature: float = 0.2
    base_url: str | None = None


@dataclass
class PromptsConfig:
    labeler: str
    classifier: str
    arbiter_single: str
    arbiter_groups: str
    arbiter_changes: str
    advocate_systems: dict[Provider, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    max_rounds: int = 2
    problem_type: ProblemType = ProblemType.GENERAL
    output_dir: Path = Path("./output")
    labeler: str = "labeler"
    classifier: str = "classifier"
    arbiter: str = "arbiter"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    advocates: dict[Provider, ModelConfig]
    assistants: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_providers: set[Provider] = field(default_factory=set)

    def assistant(self, role: str) -> ModelConfig:
        """Return the model entry configured for 'labeler', 'classifier' or 'arbiter'."""
        return self.assistants[getattr(self.defaults, role)]


def _model_config(name: str, raw: dict) -> ModelConfig:
    sdk = str(raw["sdk"])
    if sdk not in KNOWN_SDKS:
        raise ValueError(f"Unknown sdk '{sdk}' for model entry '{name}'")
    return ModelConfig(
        name=name,
        sdk=sdk,
        model=str(raw["model"]),
        api_key_env=str(raw["api_key_env"]),
        timeout_sec=float(raw.get("timeout_sec", 30)),
        max_tokens=int(raw.get("max_tokens", 240)),
        temperature=float(raw.get("temperature", 0.2)),
        base_url=raw.get("base_url"),
    )


def _has_key(cfg: ModelConfig) -> bool:
    return bool(os.environ.get(cfg.api_key_env, "").strip())


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on an
    unknown advocate key, sdk or assistant role. Missing API keys are logged
    but do not raise; callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw.get("max_rounds", 2)),
        problem_type=ProblemType(defaults_raw.get("problem_type", "general")),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        labeler=str(defaults_raw.get("labeler", "labeler")),
        classifier=str(defaults_raw.get("classifier", "classifier")),
        arbiter=str(defaults_raw.get("arbiter", "arbiter")),
    )

    prompts_raw = raw["prompts"]
    personas_raw = raw.get("personas", {})
    prompts = PromptsConfig(
        labeler=prompts_raw["labeler"],
        classifier=prompts_raw["classifier"],
        arbiter_single=prompts_raw["arbiter_single"],
        arbiter_groups=prompts_raw["arbiter_groups"],
        arbiter_changes=prompts_raw["arbiter_changes"],
        advocate_systems={Provider.from_key(k): str(v) for k, v in personas_raw.items()},
    )

    advocates: dict[Provider, ModelConfig] = {}
    available_providers: set[Provider] = set()

    for key, model_raw in raw["advocates"].items():
        provider = Provider.from_key(key)
        model_cfg = _model_config(provider.key, model_raw)
        advocates[provider] = model_cfg

        if _has_key(model_cfg):
            available_providers.add(provider)
            logger.info("Advocate available: %s", provider.display_name)
        else:
            logger.info(
                "Advocate has no API key: %s (set %s in .env)",
                provider.display_name,
                model_cfg.api_key_env,
            )

    assistants = {name: _model_config(name, r) for name, r in raw.get("assistants", {}).items()}
    for role in _ASSISTANT_ROLES:
        entry = getattr(defaults, role)
        if entry not in assistants:
            raise ValueError(f"defaults.{role} refers to unknown assistant entry '{entry}'")
        if not _has_key(assistants[entry]):
            logger.info("Assistant '%s' has no API key (%s)", entry, assistants[entry].api_key_env)

    return AppConfig(
        defaults=defaults,
        advocates=advocates,
        assistants=assistants,
        prompts=prompts,
        available_providers=available_providers,
    )

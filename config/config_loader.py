"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

REQUIRED_ROLES = ("designer", "engineer", "ux")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    timeout_sec: int
    max_tokens: int
    api_key_env: str | None = None   # None for local providers (ollama)
    base_url: str | None = None


@dataclass
class PromptsConfig:
    propose: str
    review: str
    proposal_schema: str
    review_schema: str


@dataclass
class PersonaFallback:
    proposal_message: str            # may reference {request}
    review_message: str
    proposal_suggestions: list[str] = field(default_factory=list)
    proposal_concerns: list[str] = field(default_factory=list)
    review_concerns: list[str] = field(default_factory=list)


@dataclass
class PersonaConfig:
    role: str
    title: str
    expertise: str
    summary: str
    fallback: PersonaFallback
    knowledge: list[str] = field(default_factory=list)
    guidelines: list[str] = field(default_factory=list)
    request_label: str = "REQUEST"
    request_guidance: str = ""
    background: str = ""
    review_perspective: str = ""
    review_criteria: list[str] = field(default_factory=list)
    include_proposal_suggestions: bool = False
    provider: str | None = None      # overrides StudioConfig.provider for this role


@dataclass
class StudioConfig:
    provider: str
    output_dir: Path
    max_iterations: int = 2
    max_retries: int = 2
    backoff_base_sec: float = 10.0


@dataclass
class InboxConfig:
    dir: Path
    archive_dir: Path


@dataclass
class AppConfig:
    studio: StudioConfig
    inbox: InboxConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    personas: dict[str, PersonaConfig]
    available_providers: set[str] = field(default_factory=set)


def _load_persona(role: str, raw: dict) -> PersonaConfig:
    fallback_raw = raw["fallback"]
    fallback = PersonaFallback(
        proposal_message=str(fallback_raw["proposal_message"]),
        review_message=str(fallback_raw["review_message"]),
        proposal_suggestions=list(fallback_raw.get("proposal_suggestions", [])),
        proposal_concerns=list(fallback_raw.get("proposal_concerns", [])),
        review_concerns=list(fallback_raw.get("review_concerns", [])),
    )
    return PersonaConfig(
        role=role,
        title=str(raw["title"]),
        expertise=str(raw["expertise"]),
        summary=str(raw["summary"]).strip(),
        fallback=fallback,
        knowledge=list(raw.get("knowledge", [])),
        guidelines=list(raw.get("guidelines", [])),
        request_label=str(raw.get("request_label", "REQUEST")),
        request_guidance=str(raw.get("request_guidance", "")).strip(),
        background=str(raw.get("background", "")).strip(),
        review_perspective=str(raw.get("review_perspective", "")),
        review_criteria=list(raw.get("review_criteria", [])),
        include_proposal_suggestions=bool(raw.get("include_proposal_suggestions", False)),
        provider=raw.get("provider"),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if one of
    the designer/engineer/ux personas is not defined.
    Logs warnings for missing API keys but does not raise — callers check
    available_providers count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    studio_raw = raw["studio"]
    studio = StudioConfig(
        provider=str(studio_raw["provider"]),
        output_dir=Path(studio_raw["output_dir"]),
        max_iterations=int(studio_raw.get("max_iterations", 2)),
        max_retries=int(studio_raw.get("max_retries", 2)),
        backoff_base_sec=float(studio_raw.get("backoff_base_sec", 10.0)),
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        propose=prompts_raw["propose"],
        review=prompts_raw["review"],
        proposal_schema=prompts_raw["proposal_schema"].strip(),
        review_schema=prompts_raw["review_schema"].strip(),
    )

    personas_raw = raw.get("personas", {})
    missing = [role for role in REQUIRED_ROLES if role not in personas_raw]
    if missing:
        raise ValueError(f"Missing persona definitions: {', '.join(missing)}")
    personas = {role: _load_persona(role, p) for role, p in personas_raw.items()}

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            api_key_env=model_raw.get("api_key_env"),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        if model_cfg.api_key_env is None:
            available_providers.add(provider_name)
            logger.info("Provider available (no key required): %s", provider_name)
            continue

        api_key = os.environ.get(model_cfg.api_key_env, "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                model_cfg.api_key_env,
            )

    return AppConfig(
        studio=studio,
        inbox=inbox,
        models=models,
        prompts=prompts,
        personas=personas,
        available_providers=available_providers,
    )

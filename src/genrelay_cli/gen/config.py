from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .catalog import CATALOG, RUNPOD_ENDPOINT_ENV, known_provider_ids
from .types import MediaKind

CONFIG_FILENAME = "genrelay.toml"


class RunpodProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    api_key_env: str = "RUNPOD_API_KEY"
    base_url: str = "https://api.runpod.ai/v2"
    # model -> name of the environment variable holding its endpoint id
    endpoints: dict[str, str] = Field(default_factory=lambda: dict(RUNPOD_ENDPOINT_ENV))
    # model -> literal endpoint id, takes precedence over ``endpoints``
    endpoint_ids: dict[str, str] = Field(default_factory=dict)


class ReplicateProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    api_token_env: str = "REPLICATE_API_TOKEN"
    base_url: str = "https://api.replicate.com/v1"
    models: Optional[list[str]] = None

    @field_validator("models")
    @classmethod
    def validate_models(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        known = {e.model for e in CATALOG if e.family == "replicate"}
        unknown = sorted(set(v) - known)
        if unknown:
            raise ValueError(f"Unknown replicate models {unknown}. Known: {sorted(known)}")
        return v


class PlaceholderProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ProvidersConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    runpod: Optional[RunpodProviderConfig] = RunpodProviderConfig()
    replicate: Optional[ReplicateProviderConfig] = ReplicateProviderConfig()
    placeholder: Optional[PlaceholderProviderConfig] = None


def _default_kind_timeouts() -> dict[str, float]:
    return {
        "image": 120.0,
        "video": 600.0,
        "audio": 300.0,
        "llm-text": 120.0,
        "embedding": 60.0,
    }


class PollingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    interval_sec: float = Field(default=1.5, gt=0.0, le=60.0)
    timeouts_sec: dict[MediaKind, float] = Field(default_factory=_default_kind_timeouts)
    provider_timeouts_sec: dict[str, float] = Field(default_factory=dict)

    def ceiling_for(self, provider_id: str, kind: str) -> float:
        if provider_id in self.provider_timeouts_sec:
            return self.provider_timeouts_sec[provider_id]
        return self.timeouts_sec.get(kind, _default_kind_timeouts()[kind])


class RateLimitRule(BaseModel):
    model_config = ConfigDict(extra="forbid")
    max_requests: int = Field(ge=1)
    window_sec: float = Field(gt=0.0)
    message: str = "Too many requests, please try again later."


def _default_rate_classes() -> dict[str, RateLimitRule]:
    return {
        "api": RateLimitRule(max_requests=100, window_sec=60),
        "aiGeneration": RateLimitRule(
            max_requests=20,
            window_sec=60,
            message="AI generation limit reached. Please wait before generating more content.",
        ),
        "aiGenerationFree": RateLimitRule(
            max_requests=5,
            window_sec=60,
            message="Free tier AI limit reached. Upgrade to Pro for more generations.",
        ),
        "deployment": RateLimitRule(
            max_requests=10,
            window_sec=3600,
            message="Deployment limit reached. Please wait before deploying again.",
        ),
    }


class AdmissionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    classes: dict[str, RateLimitRule] = Field(default_factory=_default_rate_classes)


class GenConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    request_timeout_sec: float = Field(default=30.0, gt=0.0)
    operation_class: str = "aiGeneration"
    polling: PollingConfig = PollingConfig()
    admission: AdmissionConfig = AdmissionConfig()
    providers: ProvidersConfig = ProvidersConfig()
    fallback: dict[MediaKind, list[str]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_references(self) -> "GenConfig":
        if self.operation_class not in self.admission.classes:
            raise ValueError(
                f"operation_class '{self.operation_class}' has no admission rule. "
                f"Available classes: {sorted(self.admission.classes)}"
            )
        known = known_provider_ids()
        for kind, order in self.fallback.items():
            unknown = [p for p in order if p not in known]
            if unknown:
                raise ValueError(
                    f"fallback.{kind} names unknown providers {unknown}. "
                    f"Available providers: {sorted(known)}"
                )
        unknown_timeouts = sorted(set(self.polling.provider_timeouts_sec) - known)
        if unknown_timeouts:
            raise ValueError(f"polling.provider_timeouts_sec names unknown providers {unknown_timeouts}")
        return self


class ConfigError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        if path:
            loc = f"{path}"
            if line:
                loc += f":{line}"
            message = f"{loc}: {message}"
        super().__init__(message)


def load_config(config_path: Path) -> GenConfig:
    if not config_path.exists():
        raise ConfigError(
            f"Config file not found: {config_path}\n"
            f"Copy genrelay.toml.example to {CONFIG_FILENAME}",
            path=config_path,
        )

    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore

    try:
        text = config_path.read_text(encoding="utf-8")
        data = tomllib.loads(text)
    except Exception as e:
        raise ConfigError(f"Failed to parse TOML: {e}", path=config_path) from e

    try:
        return GenConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}", path=config_path) from e


def find_config(start_dir: Optional[Path] = None) -> Path:
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    while current != current.parent:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        current = current.parent

    return start_dir / CONFIG_FILENAME


def load_config_or_default(config_path: Optional[Path] = None) -> GenConfig:
    """Load an explicit config, a discovered one, or fall back to defaults.

    An explicitly given path must exist; discovery that finds nothing yields
    the default configuration, which reads everything from the environment.
    """
    if config_path is not None:
        return load_config(config_path)
    discovered = find_config()
    if discovered.exists():
        return load_config(discovered)
    return GenConfig()

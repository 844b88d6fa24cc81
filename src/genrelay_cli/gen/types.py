from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MediaKind = Literal["image", "video", "audio", "llm-text", "embedding"]
MEDIA_KINDS: tuple[str, ...] = ("image", "video", "audio", "llm-text", "embedding")

TransportMode = Literal["sync-wait", "submit-poll"]


class Dimensions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    width: int = Field(default=1024, ge=64, le=4096)
    height: int = Field(default=1024, ge=64, le=4096)


class QualityParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    steps: Optional[int] = Field(default=None, ge=1, le=200)
    guidance_scale: Optional[float] = Field(default=None, ge=0.0, le=50.0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    seed: Optional[int] = Field(default=None, ge=0)


class GenerationRequest(BaseModel):
    """The caller's logical intent. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: MediaKind
    prompt: Optional[str] = None
    source_image: Optional[str] = None
    dimensions: Dimensions = Dimensions()
    style_hint: Optional[str] = None
    quality: QualityParameters = QualityParameters()
    preferred_providers: tuple[str, ...] = ()
    negative_prompt: Optional[str] = None
    duration_sec: Optional[float] = Field(default=None, gt=0.0)
    voice: Optional[str] = None

    @model_validator(mode="after")
    def check_prompt_present(self) -> "GenerationRequest":
        has_prompt = bool(self.prompt and self.prompt.strip())
        if has_prompt:
            return self
        if self.kind == "image" and self.source_image:
            return self
        raise ValueError(
            f"prompt is required for kind '{self.kind}' "
            "(only image requests with a source_image may omit it)"
        )


@dataclass(frozen=True)
class ProviderDescriptor:
    provider_id: str
    family: str
    model: str
    media_kinds: frozenset[str]
    transport: TransportMode
    is_configured: bool
    endpoint_identifier: str = ""
    requires_source_image: bool = False

    def supports(self, kind: str) -> bool:
        return kind in self.media_kinds


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.QUEUED, JobStatus.RUNNING)


@dataclass(frozen=True)
class PollReport:
    """One status observation from a provider.

    ``status`` is None when the provider reported a status string the client
    does not recognise; ``raw_status`` always holds what the provider sent.
    """

    status: Optional[JobStatus]
    raw_status: str = ""
    output: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SubmitResult:
    job_id: str
    report: Optional[PollReport] = None


@dataclass
class Job:
    job_id: str
    provider_id: str
    submitted_at: float
    attempt_index: int
    status: JobStatus = JobStatus.QUEUED
    raw_output: Any = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, status: JobStatus, error: Optional[str] = None) -> bool:
        """Move to ``status``; returns False if the job was already terminal."""
        if self.is_terminal:
            return False
        self.status = status
        if status in (JobStatus.FAILED, JobStatus.TIMED_OUT):
            self.error = error or status.value
        return True

    def apply(self, report: PollReport) -> bool:
        if self.is_terminal:
            return False
        status = report.status or JobStatus.RUNNING
        if status == JobStatus.QUEUED and self.status == JobStatus.RUNNING:
            return False
        if status == JobStatus.SUCCEEDED:
            self.raw_output = report.output
        return self.transition(status, report.error)


@dataclass(frozen=True)
class AttemptRecord:
    provider_id: str
    attempt_index: int
    failure_kind: str
    message: str
    job_id: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "attempt_index": self.attempt_index,
            "failure_kind": self.failure_kind,
            "message": self.message,
            "job_id": self.job_id,
            "duration_ms": self.duration_ms,
        }


@dataclass
class GenerationResult:
    outputs: list[Any]
    provider_used: str
    attempts_made: int
    total_latency_ms: int
    job_id: Optional[str] = None
    attempts: list[AttemptRecord] = field(default_factory=list)

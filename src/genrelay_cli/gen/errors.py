from __future__ import annotations

from typing import Any, Optional, Sequence

from .types import AttemptRecord

CONTENT_REJECTION_MARKERS = (
    "nsfw",
    "content policy",
    "safety",
    "moderation",
    "flagged",
    "inappropriate",
)


def looks_like_content_rejection(error_text: Optional[str]) -> bool:
    if not error_text:
        return False
    lowered = error_text.lower()
    return any(marker in lowered for marker in CONTENT_REJECTION_MARKERS)


class OrchestrationError(Exception):
    """Base class for every failure the orchestrator can produce."""

    kind = "orchestration_error"

    def __init__(self, message: str, provider_id: Optional[str] = None):
        self.message = message
        self.provider_id = provider_id
        self.attempts: list[AttemptRecord] = []
        super().__init__(message)

    def summary(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.summary(),
            "provider_id": self.provider_id,
            "attempts": [a.to_dict() for a in self.attempts],
        }


class AdmissionDenied(OrchestrationError):
    kind = "admission_denied"

    def __init__(
        self,
        message: str,
        operation_class: str,
        limit: int,
        reset_at: int,
        retry_after_seconds: int,
    ):
        super().__init__(message)
        self.operation_class = operation_class
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds

    def to_headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset_at),
            "Retry-After": str(self.retry_after_seconds),
        }

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["operation_class"] = self.operation_class
        payload["retry_after_seconds"] = self.retry_after_seconds
        return payload


class CapabilityMismatch(OrchestrationError):
    kind = "capability_mismatch"


class ProviderUnavailable(OrchestrationError):
    kind = "provider_unavailable"

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider_id=provider_id)
        self.status_code = status_code


class ContentRejected(OrchestrationError):
    kind = "content_rejected"


class JobTimedOut(OrchestrationError):
    kind = "timed_out"


class JobCancelled(OrchestrationError):
    kind = "cancelled"


class Exhausted(OrchestrationError):
    kind = "exhausted"

    def __init__(self, attempts: Sequence[AttemptRecord]):
        if attempts:
            tried = ", ".join(f"{a.provider_id} ({a.failure_kind})" for a in attempts)
            message = f"All {len(attempts)} candidate providers failed: {tried}"
        else:
            message = "No configured provider is available for this request"
        super().__init__(message)
        self.attempts = list(attempts)

    @property
    def attempts_made(self) -> int:
        return len(self.attempts)


ADVANCE_ELIGIBLE: tuple[type[OrchestrationError], ...] = (
    ProviderUnavailable,
    CapabilityMismatch,
    JobTimedOut,
)

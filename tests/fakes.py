from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union

from genrelay_cli.gen.config import GenConfig
from genrelay_cli.gen.payloads import ProviderPayload
from genrelay_cli.gen.provider import ProviderClient
from genrelay_cli.gen.types import JobStatus, PollReport, ProviderDescriptor, SubmitResult


class FakeClock:
    """Deterministic clock; ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []
        self.on_sleep: Optional[Callable[[float], None]] = None

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self.now)

    def advance(self, seconds: float) -> None:
        self.now += seconds


Step = Union[PollReport, Exception]


def report(status: Optional[JobStatus], output=None, error: Optional[str] = None, raw: str = "") -> PollReport:
    return PollReport(status=status, raw_status=raw or (status.value if status else "WEIRD"), output=output, error=error)


class ScriptedClient(ProviderClient):
    """Provider client whose submit/poll outcomes are scripted per provider id.

    ``polls`` is consumed in order; the last entry repeats once exhausted.
    """

    def __init__(self, family: str = "fake"):
        self._family = family
        self.submits: dict[str, Union[SubmitResult, Exception]] = {}
        self.polls: dict[str, list[Step]] = {}
        self.cancel_result = True
        self.calls: list[tuple[str, str]] = []
        self.payloads: list[ProviderPayload] = []

    @property
    def family(self) -> str:
        return self._family

    def script(
        self,
        provider_id: str,
        submit: Union[SubmitResult, Exception],
        polls: Sequence[Step] = (),
    ) -> "ScriptedClient":
        self.submits[provider_id] = submit
        self.polls[provider_id] = list(polls)
        return self

    def submit(self, descriptor: ProviderDescriptor, payload: ProviderPayload) -> SubmitResult:
        self.calls.append(("submit", descriptor.provider_id))
        self.payloads.append(payload)
        outcome = self.submits[descriptor.provider_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def poll(self, descriptor: ProviderDescriptor, job_id: str) -> PollReport:
        self.calls.append(("poll", descriptor.provider_id))
        steps = self.polls[descriptor.provider_id]
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step

    def cancel(self, descriptor: ProviderDescriptor, job_id: str) -> bool:
        self.calls.append(("cancel", descriptor.provider_id))
        return self.cancel_result

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


ENVIRON = {
    "RUNPOD_API_KEY": "rp-test-key",
    "REPLICATE_API_TOKEN": "r8-test-token",
}


def make_config(**overrides: Any) -> GenConfig:
    """Runpod flux + Replicate flux-schnell configured, nothing else."""
    data: dict[str, Any] = {
        "providers": {
            "runpod": {"endpoint_ids": {"flux": "ep-flux"}},
            "replicate": {"models": ["flux-schnell"]},
        }
    }
    data.update(overrides)
    return GenConfig.model_validate(data)

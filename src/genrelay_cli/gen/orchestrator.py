from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Optional

from .admission import AdmissionGate
from .config import GenConfig
from .errors import (
    AdmissionDenied,
    ContentRejected,
    Exhausted,
    JobCancelled,
    JobTimedOut,
    OrchestrationError,
    ProviderUnavailable,
    looks_like_content_rejection,
)
from .fallback import FallbackController
from .normalize import RequestNormalizer
from .outputs import extract_outputs
from .polling import CancellationToken, Clock, PollingEngine, SystemClock
from .registry import ProviderRegistry
from .types import (
    AttemptRecord,
    GenerationRequest,
    GenerationResult,
    Job,
    JobStatus,
    ProviderDescriptor,
)

logger = logging.getLogger(__name__)


class JobOrchestrator:
    """Entry point: admission, candidate loop, submission, polling, results.

    The only component that makes outbound provider calls or consults the
    admission gate.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        gate: AdmissionGate,
        engine: Optional[PollingEngine] = None,
        fallback: Optional[FallbackController] = None,
        normalizer: Optional[RequestNormalizer] = None,
        clock: Optional[Clock] = None,
        wall_clock: Callable[[], float] = time.time,
    ):
        self._registry = registry
        self._config = registry.config
        self._gate = gate
        self._clock = clock or SystemClock()
        self._wall_clock = wall_clock
        self._engine = engine or PollingEngine(self._config.polling.interval_sec, self._clock)
        self._fallback = fallback or FallbackController(registry.resolver, self._config.fallback)
        self._normalizer = normalizer or RequestNormalizer()

    @classmethod
    def from_config(
        cls,
        config: GenConfig,
        environ: Optional[Mapping[str, str]] = None,
        clock: Optional[Clock] = None,
    ) -> "JobOrchestrator":
        registry = ProviderRegistry(config, environ=environ)
        gate = AdmissionGate(config.admission.classes, clock=clock)
        return cls(registry, gate, clock=clock)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def close(self) -> None:
        self._registry.close()

    def generate(
        self,
        request: GenerationRequest,
        caller_id: str,
        operation_class: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """Run ``request`` against the fallback chain.

        Raises:
            AdmissionDenied: The caller is over quota; no provider was called.
            ContentRejected: A provider refused the content; no fallback.
            JobCancelled: ``cancel`` was set while a job was pending.
            Exhausted: Every candidate failed; carries one record per attempt.
        """
        started = self._clock.monotonic()
        op_class = operation_class or self._config.operation_class

        decision = self._gate.admit(caller_id, op_class)
        if not decision.allowed:
            retry_after = decision.retry_after_seconds or 1
            raise AdmissionDenied(
                decision.message or "Rate limit exceeded",
                operation_class=op_class,
                limit=decision.limit,
                reset_at=int(self._wall_clock()) + retry_after,
                retry_after_seconds=retry_after,
            )

        chain = self._fallback.start(request)
        attempts: list[AttemptRecord] = []
        descriptor = chain.current()

        while descriptor is not None:
            attempt_index = chain.position
            attempt_started = self._clock.monotonic()
            job: Optional[Job] = None
            try:
                job = self._run_attempt(request, descriptor, attempt_index, cancel)
                outputs = extract_outputs(request.kind, job.raw_output)
                if not outputs:
                    raise ProviderUnavailable(
                        f"{descriptor.provider_id}: job succeeded without usable output",
                        provider_id=descriptor.provider_id,
                    )
            except OrchestrationError as failure:
                failure.provider_id = failure.provider_id or descriptor.provider_id
                record = AttemptRecord(
                    provider_id=descriptor.provider_id,
                    attempt_index=attempt_index,
                    failure_kind=failure.kind,
                    message=failure.summary(),
                    job_id=getattr(failure, "job_id", None),
                    duration_ms=self._elapsed_ms(attempt_started),
                )
                attempts.append(record)
                logger.warning(
                    f"Attempt {attempt_index + 1}/{len(chain)} on {descriptor.provider_id} "
                    f"failed: {failure.kind}: {failure.summary()}"
                )
                if isinstance(failure, JobCancelled):
                    failure.attempts = attempts
                    raise
                try:
                    descriptor = chain.advance(failure)
                except OrchestrationError:
                    failure.attempts = attempts
                    logger.error(f"Generation stopped: {failure.kind}: {failure.summary()}")
                    raise
                continue

            result = GenerationResult(
                outputs=outputs,
                provider_used=descriptor.provider_id,
                attempts_made=len(attempts) + 1,
                total_latency_ms=self._elapsed_ms(started),
                job_id=job.job_id,
                attempts=attempts,
            )
            logger.info(
                f"Generated {request.kind} with {descriptor.provider_id} "
                f"after {result.attempts_made} attempt(s) in {result.total_latency_ms}ms"
            )
            return result

        exhausted = Exhausted(attempts)
        logger.error(exhausted.summary())
        raise exhausted

    def _run_attempt(
        self,
        request: GenerationRequest,
        descriptor: ProviderDescriptor,
        attempt_index: int,
        cancel: Optional[CancellationToken],
    ) -> Job:
        # Normalization fails fast, before any network call.
        payload = self._normalizer.normalize(request, descriptor)
        if cancel is not None and cancel.cancelled:
            raise JobCancelled("Generation cancelled by caller before submission")

        client = self._registry.client_for(descriptor)
        submitted = client.submit(descriptor, payload)
        job = Job(
            job_id=submitted.job_id,
            provider_id=descriptor.provider_id,
            submitted_at=self._clock.monotonic(),
            attempt_index=attempt_index,
        )
        logger.info(f"Submitted {request.kind} job {job.job_id} to {descriptor.provider_id}")

        ceiling = self._config.polling.ceiling_for(descriptor.provider_id, request.kind)
        try:
            self._engine.drive(job, client, descriptor, submitted.report, ceiling, cancel)
        except OrchestrationError as e:
            e.job_id = job.job_id  # type: ignore[attr-defined]
            raise

        failure = self._classify(job, descriptor)
        if failure is not None:
            failure.job_id = job.job_id  # type: ignore[attr-defined]
            raise failure
        return job

    def _classify(self, job: Job, descriptor: ProviderDescriptor) -> Optional[OrchestrationError]:
        pid = descriptor.provider_id
        if job.status == JobStatus.SUCCEEDED:
            return None
        if job.status == JobStatus.TIMED_OUT:
            return JobTimedOut(f"{pid}: {job.error}", provider_id=pid)
        if job.status == JobStatus.FAILED and looks_like_content_rejection(job.error):
            logger.warning(f"[{pid}] job {job.job_id} rejected content: {job.error}")
            return ContentRejected(f"{pid} rejected the request content", provider_id=pid)
        if job.status == JobStatus.CANCELLED:
            return ProviderUnavailable(f"{pid}: job was cancelled by the provider", provider_id=pid)
        logger.warning(f"[{pid}] job {job.job_id} failed: {job.error}")
        return ProviderUnavailable(f"{pid}: job failed", provider_id=pid)

    def _elapsed_ms(self, since: float) -> int:
        return int(round((self._clock.monotonic() - since) * 1000))

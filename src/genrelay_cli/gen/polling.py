"""Drive a submitted Job to a terminal state.

State machine: queued -> running -> {succeeded | failed | cancelled}, plus a
locally forced ``timed_out`` once the ceiling passes without a terminal
provider status. Time comes from an injected clock so tests never sleep.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Protocol

from .errors import JobCancelled, ProviderUnavailable
from .provider import ProviderClient
from .types import Job, JobStatus, PollReport, ProviderDescriptor

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class CancellationToken:
    """Set by the caller's context (e.g. client disconnect) to stop a generation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class PollingEngine:
    def __init__(self, interval_sec: float = 1.5, clock: Optional[Clock] = None):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self.interval_sec = interval_sec
        self.clock = clock or SystemClock()

    def drive(
        self,
        job: Job,
        client: ProviderClient,
        descriptor: ProviderDescriptor,
        initial: Optional[PollReport],
        ceiling_sec: float,
        cancel: Optional[CancellationToken] = None,
    ) -> Job:
        """Poll until ``job`` is terminal and return it.

        Raises:
            JobCancelled: The caller's token was set; the provider job was
                cancelled on a best-effort basis.
            ProviderUnavailable: A poll call failed at the transport level;
                the job is marked failed first.
        """
        if initial is not None:
            job.apply(initial)
            if job.is_terminal:
                logger.debug(f"[{job.provider_id}] job {job.job_id} finished on submit: {job.status.value}")
                return job

        need_sleep = initial is not None
        while True:
            self._check_cancel(job, client, descriptor, cancel)

            if need_sleep:
                elapsed = self.clock.monotonic() - job.submitted_at
                if elapsed >= ceiling_sec:
                    self._time_out(job, client, descriptor, ceiling_sec)
                    return job
                self.clock.sleep(min(self.interval_sec, ceiling_sec - elapsed))
                self._check_cancel(job, client, descriptor, cancel)

            try:
                report = client.poll(descriptor, job.job_id)
            except ProviderUnavailable as e:
                job.transition(JobStatus.FAILED, e.message)
                raise

            if report.status is None:
                logger.info(
                    f"[{job.provider_id}] job {job.job_id} reported unknown status "
                    f"{report.raw_status!r}; treating as running"
                )
            job.apply(report)
            if job.is_terminal:
                logger.debug(f"[{job.provider_id}] job {job.job_id} finished: {job.status.value}")
                return job
            need_sleep = True

    def _check_cancel(
        self,
        job: Job,
        client: ProviderClient,
        descriptor: ProviderDescriptor,
        cancel: Optional[CancellationToken],
    ) -> None:
        if cancel is None or not cancel.cancelled:
            return
        self._cancel_remote(job, client, descriptor)
        job.transition(JobStatus.CANCELLED)
        raise JobCancelled(
            f"Generation cancelled by caller while {job.provider_id} job was pending",
            provider_id=job.provider_id,
        )

    def _time_out(self, job: Job, client: ProviderClient, descriptor: ProviderDescriptor, ceiling_sec: float) -> None:
        job.transition(JobStatus.TIMED_OUT, f"no terminal status after {ceiling_sec:g}s")
        logger.warning(f"[{job.provider_id}] job {job.job_id} timed out after {ceiling_sec:g}s")
        self._cancel_remote(job, client, descriptor)

    def _cancel_remote(self, job: Job, client: ProviderClient, descriptor: ProviderDescriptor) -> None:
        try:
            cancelled = client.cancel(descriptor, job.job_id)
        except Exception as e:
            logger.warning(f"[{job.provider_id}] cancel of job {job.job_id} raised: {e}")
            return
        if not cancelled:
            logger.warning(f"[{job.provider_id}] could not cancel job {job.job_id}")

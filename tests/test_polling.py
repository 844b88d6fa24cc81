from __future__ import annotations

import pytest

from fakes import FakeClock, ScriptedClient, report
from genrelay_cli.gen.errors import JobCancelled, ProviderUnavailable
from genrelay_cli.gen.polling import CancellationToken, PollingEngine
from genrelay_cli.gen.types import Job, JobStatus, PollReport, ProviderDescriptor

DESCRIPTOR = ProviderDescriptor(
    provider_id="replicate-flux-schnell",
    family="replicate",
    model="flux-schnell",
    media_kinds=frozenset({"image"}),
    transport="submit-poll",
    is_configured=True,
    endpoint_identifier="black-forest-labs/flux-schnell",
)


def _job(clock: FakeClock) -> Job:
    return Job(job_id="pred-1", provider_id=DESCRIPTOR.provider_id, submitted_at=clock.now, attempt_index=0)


def _client(*polls) -> ScriptedClient:
    client = ScriptedClient("replicate")
    client.polls[DESCRIPTOR.provider_id] = list(polls)
    return client


class TestJobTransitions:
    def test_terminal_status_never_changes(self) -> None:
        job = Job(job_id="j", provider_id="p", submitted_at=0.0, attempt_index=0)
        assert job.apply(report(JobStatus.SUCCEEDED, output="x"))

        assert not job.apply(report(JobStatus.FAILED, error="late failure"))
        assert not job.transition(JobStatus.TIMED_OUT)
        assert job.status == JobStatus.SUCCEEDED
        assert job.raw_output == "x"
        assert job.error is None

    def test_queued_after_running_is_ignored(self) -> None:
        job = Job(job_id="j", provider_id="p", submitted_at=0.0, attempt_index=0)
        job.apply(report(JobStatus.RUNNING))

        job.apply(report(JobStatus.QUEUED))

        assert job.status == JobStatus.RUNNING

    def test_error_is_set_only_for_failed_and_timed_out(self) -> None:
        cancelled = Job(job_id="j", provider_id="p", submitted_at=0.0, attempt_index=0)
        cancelled.apply(report(JobStatus.CANCELLED, error="ignored"))
        failed = Job(job_id="k", provider_id="p", submitted_at=0.0, attempt_index=0)
        failed.apply(report(JobStatus.FAILED))

        assert cancelled.error is None
        assert failed.error == "failed"


class TestPollingEngine:
    def test_terminal_initial_report_skips_polling(self, clock: FakeClock) -> None:
        client = _client()
        job = _job(clock)

        PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, report(JobStatus.SUCCEEDED, output="x"), 120)

        assert job.status == JobStatus.SUCCEEDED
        assert client.calls == []
        assert clock.sleeps == []

    def test_polls_immediately_without_initial_report(self, clock: FakeClock) -> None:
        client = _client(report(JobStatus.SUCCEEDED, output="x"))
        job = _job(clock)

        PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, None, 120)

        assert job.status == JobStatus.SUCCEEDED
        assert clock.sleeps == []

    def test_unknown_status_counts_as_running(self, clock: FakeClock) -> None:
        client = _client(
            PollReport(status=None, raw_status="warming_up"),
            report(JobStatus.SUCCEEDED, output="x"),
        )
        job = _job(clock)

        PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, report(JobStatus.QUEUED), 120)

        assert job.status == JobStatus.SUCCEEDED
        assert client.count("poll") == 2

    def test_timeout_bounded_by_ceiling_plus_interval(self, clock: FakeClock) -> None:
        client = _client(report(JobStatus.RUNNING))
        job = _job(clock)

        PollingEngine(7.0, clock).drive(job, client, DESCRIPTOR, report(JobStatus.QUEUED), 30)

        assert job.status == JobStatus.TIMED_OUT
        assert clock.now - job.submitted_at <= 30 + 7.0
        assert max(clock.sleeps) <= 7.0
        assert client.count("cancel") == 1

    def test_failed_remote_cancel_is_only_logged(self, clock: FakeClock, caplog: pytest.LogCaptureFixture) -> None:
        client = _client(report(JobStatus.RUNNING))
        client.cancel_result = False
        job = _job(clock)

        PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, report(JobStatus.QUEUED), 3)

        assert job.status == JobStatus.TIMED_OUT
        assert "could not cancel" in caplog.text

    def test_poll_transport_error_marks_job_failed(self, clock: FakeClock) -> None:
        client = _client(ProviderUnavailable("boom", provider_id=DESCRIPTOR.provider_id))
        job = _job(clock)

        with pytest.raises(ProviderUnavailable):
            PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, report(JobStatus.QUEUED), 120)

        assert job.status == JobStatus.FAILED

    def test_cancel_token_marks_job_cancelled(self, clock: FakeClock) -> None:
        client = _client(report(JobStatus.RUNNING))
        job = _job(clock)
        token = CancellationToken()
        clock.on_sleep = lambda now: token.cancel()

        with pytest.raises(JobCancelled):
            PollingEngine(1.5, clock).drive(job, client, DESCRIPTOR, report(JobStatus.QUEUED), 120, token)

        assert job.status == JobStatus.CANCELLED
        assert client.count("poll") == 0
        assert client.count("cancel") == 1

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            PollingEngine(0)

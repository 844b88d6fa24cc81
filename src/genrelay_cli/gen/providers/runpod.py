from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..credentials import SecretSource
from ..errors import ProviderUnavailable
from ..payloads import ProviderPayload
from ..provider import HttpProviderClient
from ..types import JobStatus, PollReport, ProviderDescriptor, SubmitResult

logger = logging.getLogger(__name__)

RUNPOD_STATUS = {
    "IN_QUEUE": JobStatus.QUEUED,
    "IN_PROGRESS": JobStatus.RUNNING,
    "COMPLETED": JobStatus.SUCCEEDED,
    "FAILED": JobStatus.FAILED,
    "CANCELLED": JobStatus.CANCELLED,
    # Runpod's own execution timeout; a worker-side failure from our point of view.
    "TIMED_OUT": JobStatus.FAILED,
}


class RunpodClient(HttpProviderClient):
    """Runpod serverless endpoints: ``/runsync`` for sync-wait, ``/run`` otherwise."""

    status_map = RUNPOD_STATUS

    def __init__(
        self,
        secrets: SecretSource,
        api_key_env: str = "RUNPOD_API_KEY",
        base_url: str = "https://api.runpod.ai/v2",
        timeout_sec: float = 30.0,
        http: Optional[httpx.Client] = None,
    ):
        super().__init__(secrets, api_key_env, base_url, timeout_sec, http)

    @property
    def family(self) -> str:
        return "runpod"

    def auth_header(self, secret: str) -> str:
        return f"Bearer {secret}"

    def submit(self, descriptor: ProviderDescriptor, payload: ProviderPayload) -> SubmitResult:
        endpoint = self._endpoint(descriptor)
        route = "runsync" if descriptor.transport == "sync-wait" else "run"
        data = self.request(
            "POST", f"/{endpoint}/{route}", descriptor.provider_id, {"input": payload.to_input()}
        )
        job_id = data.get("id")
        if not job_id:
            raise ProviderUnavailable(
                f"{descriptor.provider_id}: response did not include a job id",
                provider_id=descriptor.provider_id,
            )
        logger.debug(f"[runpod] {descriptor.provider_id} submitted job {job_id} via /{route}")
        return SubmitResult(job_id=str(job_id), report=self._report(data))

    def poll(self, descriptor: ProviderDescriptor, job_id: str) -> PollReport:
        endpoint = self._endpoint(descriptor)
        data = self.request("GET", f"/{endpoint}/status/{job_id}", descriptor.provider_id)
        return self._report(data)

    def cancel(self, descriptor: ProviderDescriptor, job_id: str) -> bool:
        if not descriptor.endpoint_identifier:
            return False
        data = self.try_request(
            "POST", f"/{descriptor.endpoint_identifier}/cancel/{job_id}", descriptor.provider_id
        )
        return data is not None

    def health(self, descriptor: ProviderDescriptor) -> Optional[dict[str, Any]]:
        """Worker and queue counts for an endpoint, or None when unreachable."""
        if not descriptor.endpoint_identifier:
            return None
        data = self.try_request("GET", f"/{descriptor.endpoint_identifier}/health", descriptor.provider_id)
        if data is None:
            return None
        return {
            "healthy": True,
            "workers": data.get("workers") or {"ready": 0, "running": 0, "idle": 0},
            "jobs": data.get("jobs") or {"inQueue": 0, "inProgress": 0, "completed": 0},
        }

    def _endpoint(self, descriptor: ProviderDescriptor) -> str:
        if not descriptor.endpoint_identifier:
            raise ProviderUnavailable(
                f"{descriptor.provider_id}: endpoint id is not configured",
                provider_id=descriptor.provider_id,
            )
        return descriptor.endpoint_identifier

    def _report(self, data: dict[str, Any]) -> PollReport:
        raw_status = str(data.get("status", ""))
        error = data.get("error")
        return PollReport(
            status=self.map_status(raw_status),
            raw_status=raw_status,
            output=data.get("output"),
            error=str(error) if error else None,
        )

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

REPLICATE_STATUS = {
    "starting": JobStatus.QUEUED,
    "processing": JobStatus.RUNNING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.CANCELLED,
}


def prediction_body(reference: str, model_input: dict[str, Any]) -> dict[str, Any]:
    """Pinned references ("owner/name:version") go by version, others by model."""
    if ":" in reference:
        return {"version": reference.split(":", 1)[1], "input": model_input}
    return {"model": reference, "input": model_input}


class ReplicateClient(HttpProviderClient):
    status_map = REPLICATE_STATUS

    def __init__(
        self,
        secrets: SecretSource,
        api_token_env: str = "REPLICATE_API_TOKEN",
        base_url: str = "https://api.replicate.com/v1",
        timeout_sec: float = 30.0,
        http: Optional[httpx.Client] = None,
    ):
        super().__init__(secrets, api_token_env, base_url, timeout_sec, http)

    @property
    def family(self) -> str:
        return "replicate"

    def auth_header(self, secret: str) -> str:
        return f"Token {secret}"

    def submit(self, descriptor: ProviderDescriptor, payload: ProviderPayload) -> SubmitResult:
        body = prediction_body(descriptor.endpoint_identifier, payload.to_input())
        data = self.request("POST", "/predictions", descriptor.provider_id, body)
        prediction_id = data.get("id")
        if not prediction_id:
            raise ProviderUnavailable(
                f"{descriptor.provider_id}: response did not include a prediction id",
                provider_id=descriptor.provider_id,
            )
        logger.debug(f"[replicate] {descriptor.provider_id} created prediction {prediction_id}")
        return SubmitResult(job_id=str(prediction_id), report=self._report(data))

    def poll(self, descriptor: ProviderDescriptor, job_id: str) -> PollReport:
        data = self.request("GET", f"/predictions/{job_id}", descriptor.provider_id)
        return self._report(data)

    def cancel(self, descriptor: ProviderDescriptor, job_id: str) -> bool:
        return self.try_request("POST", f"/predictions/{job_id}/cancel", descriptor.provider_id) is not None

    def _report(self, data: dict[str, Any]) -> PollReport:
        raw_status = str(data.get("status", ""))
        error = data.get("error")
        return PollReport(
            status=self.map_status(raw_status),
            raw_status=raw_status,
            output=data.get("output"),
            error=str(error) if error else None,
        )

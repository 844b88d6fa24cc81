from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .credentials import SecretSource
from .errors import ProviderUnavailable
from .payloads import ProviderPayload
from .types import JobStatus, PollReport, ProviderDescriptor, SubmitResult

logger = logging.getLogger(__name__)


class ProviderClient(ABC):
    """Transport for one provider family.

    Clients never interpret ``output``; they pass the provider's payload up
    unchanged and never retry. Transport failures raise ProviderUnavailable.
    """

    @property
    @abstractmethod
    def family(self) -> str: ...

    @abstractmethod
    def submit(self, descriptor: ProviderDescriptor, payload: ProviderPayload) -> SubmitResult:
        raise NotImplementedError

    @abstractmethod
    def poll(self, descriptor: ProviderDescriptor, job_id: str) -> PollReport:
        raise NotImplementedError

    def cancel(self, descriptor: ProviderDescriptor, job_id: str) -> bool:
        """Best-effort cancellation; providers without it return False."""
        return False

    def close(self) -> None:
        pass


class HttpProviderClient(ProviderClient):
    """Shared plumbing for the REST-backed families."""

    status_map: dict[str, JobStatus] = {}

    def __init__(
        self,
        secrets: SecretSource,
        secret_name: str,
        base_url: str,
        timeout_sec: float,
        http: Optional[httpx.Client] = None,
    ):
        self._secrets = secrets
        self._secret_name = secret_name
        self._base_url = base_url.rstrip("/")
        self._http = http or httpx.Client(timeout=timeout_sec)
        self._owns_http = http is None
        self._timeout_sec = timeout_sec

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @abstractmethod
    def auth_header(self, secret: str) -> str: ...

    def map_status(self, raw_status: Any) -> Optional[JobStatus]:
        mapped = self.status_map.get(str(raw_status))
        if mapped is None:
            logger.debug(f"[{self.family}] unrecognised status {raw_status!r}")
        return mapped

    def request(
        self,
        method: str,
        path: str,
        provider_id: str,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        # Looked up per call so plaintext secrets do not outlive the request.
        secret = self._secrets.get(self._secret_name)
        if not secret:
            raise ProviderUnavailable(
                f"{provider_id}: credentials are not configured ({self._secret_name})",
                provider_id=provider_id,
            )

        url = f"{self._base_url}{path}"
        headers = {"Authorization": self.auth_header(secret)}
        try:
            response = self._http.request(
                method, url, json=json_body, headers=headers, timeout=self._timeout_sec
            )
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"{provider_id}: request timed out", provider_id=provider_id) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(
                f"{provider_id}: transport error ({type(e).__name__})", provider_id=provider_id
            ) from e

        if not response.is_success:
            logger.warning(
                f"[{self.family}] {method} {path} -> HTTP {response.status_code}: {response.text[:500]}"
            )
            raise ProviderUnavailable(
                f"{provider_id}: provider returned HTTP {response.status_code}",
                provider_id=provider_id,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"[{self.family}] malformed body from {path}: {response.text[:500]}")
            raise ProviderUnavailable(f"{provider_id}: malformed response body", provider_id=provider_id) from e
        if not isinstance(data, dict):
            raise ProviderUnavailable(f"{provider_id}: unexpected response shape", provider_id=provider_id)
        return data

    def try_request(self, method: str, path: str, provider_id: str) -> Optional[dict[str, Any]]:
        """Like ``request`` but logs and returns None instead of raising."""
        try:
            return self.request(method, path, provider_id)
        except ProviderUnavailable as e:
            logger.warning(f"[{self.family}] {method} {path} failed: {e}")
            return None

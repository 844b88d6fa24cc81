from __future__ import annotations

import base64
import io

import pytest

from fakes import make_config
from genrelay_cli.gen.credentials import CredentialResolver
from genrelay_cli.gen.errors import ProviderUnavailable
from genrelay_cli.gen.payloads import PlaceholderPayload, RunpodEmbeddingPayload
from genrelay_cli.gen.providers import placeholder
from genrelay_cli.gen.providers.placeholder import PlaceholderClient
from genrelay_cli.gen.types import JobStatus

Image = pytest.importorskip("PIL.Image")


@pytest.fixture
def descriptor():
    config = make_config(providers={"runpod": None, "replicate": None, "placeholder": {}})
    return CredentialResolver(config, {}).get("placeholder")


class TestPlaceholderClient:
    def test_submit_completes_immediately(self, descriptor) -> None:
        client = PlaceholderClient()

        result = client.submit(descriptor, PlaceholderPayload(prompt="a red bicycle", width=320, height=200))

        assert result.job_id.startswith("placeholder-")
        assert result.report.status == JobStatus.SUCCEEDED
        uri = result.report.output["image"]
        assert uri.startswith("data:image/png;base64,")
        img = Image.open(io.BytesIO(base64.b64decode(uri.split(",", 1)[1])))
        assert img.size == (320, 200)

    def test_same_payload_same_job_id(self, descriptor) -> None:
        client = PlaceholderClient()
        payload = PlaceholderPayload(prompt="p", width=128, height=128)

        assert client.submit(descriptor, payload).job_id == client.submit(descriptor, payload).job_id

    def test_rejects_other_payloads(self, descriptor) -> None:
        with pytest.raises(ProviderUnavailable):
            PlaceholderClient().submit(descriptor, RunpodEmbeddingPayload(texts=("x",)))

    def test_missing_pillow_is_provider_unavailable(self, descriptor, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(placeholder, "Image", None)

        with pytest.raises(ProviderUnavailable) as exc_info:
            PlaceholderClient().submit(descriptor, PlaceholderPayload(prompt="p", width=64, height=64))

        assert exc_info.value.provider_id == "placeholder"
        assert "Pillow" in str(exc_info.value)

    def test_poll_is_unavailable(self, descriptor) -> None:
        with pytest.raises(ProviderUnavailable):
            PlaceholderClient().poll(descriptor, "placeholder-abc")
        assert PlaceholderClient().cancel(descriptor, "placeholder-abc") is False

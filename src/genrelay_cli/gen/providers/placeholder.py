from __future__ import annotations

import base64
import hashlib
import io
from typing import TYPE_CHECKING

from ..errors import ProviderUnavailable
from ..payloads import PlaceholderPayload, ProviderPayload
from ..provider import ProviderClient
from ..types import JobStatus, PollReport, ProviderDescriptor, SubmitResult

if TYPE_CHECKING:
    from ..config import PlaceholderProviderConfig

try:
    from PIL import Image, ImageDraw
except ImportError:
    Image = None  # type: ignore
    ImageDraw = None  # type: ignore


def _require_pillow(provider_id: str) -> None:
    if Image is None:
        raise ProviderUnavailable(
            "Pillow is required for placeholder generation. "
            "Install with: pip install -e '.[placeholders]'",
            provider_id=provider_id,
        )


BACKGROUND = (200, 220, 255, 255)


class PlaceholderClient(ProviderClient):
    """Renders a labelled PNG locally; completes inside ``submit``."""

    def __init__(self, config: "PlaceholderProviderConfig | None" = None):
        self._config = config

    @property
    def family(self) -> str:
        return "placeholder"

    def submit(self, descriptor: ProviderDescriptor, payload: ProviderPayload) -> SubmitResult:
        if not isinstance(payload, PlaceholderPayload):
            raise ProviderUnavailable(
                f"placeholder cannot render {type(payload).__name__}", provider_id=descriptor.provider_id
            )
        _require_pillow(descriptor.provider_id)

        img = Image.new("RGBA", (payload.width, payload.height), BACKGROUND)
        d = ImageDraw.Draw(img)
        margin = min(payload.width, payload.height) // 16
        d.rectangle(
            [margin, margin, payload.width - margin, payload.height - margin],
            outline=(0, 0, 0, 255),
            width=4,
        )
        label_lines = [
            "Placeholder",
            f"Size: {payload.width}x{payload.height}",
            payload.prompt[:80],
        ]
        d.text((margin + 16, margin + 16), "\n".join(label_lines), fill=(0, 0, 0, 255))

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        png = buf.getvalue()
        job_id = f"placeholder-{hashlib.sha256(png).hexdigest()[:16]}"
        data_uri = "data:image/png;base64," + base64.b64encode(png).decode("ascii")

        return SubmitResult(
            job_id=job_id,
            report=PollReport(
                status=JobStatus.SUCCEEDED,
                raw_status="COMPLETED",
                output={"image": data_uri},
            ),
        )

    def poll(self, descriptor: ProviderDescriptor, job_id: str) -> PollReport:
        raise ProviderUnavailable(
            "placeholder jobs complete on submit and cannot be polled",
            provider_id=descriptor.provider_id,
        )

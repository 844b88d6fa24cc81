from __future__ import annotations

from dataclasses import dataclass

from .types import TransportMode


@dataclass(frozen=True)
class ModelEntry:
    provider_id: str
    family: str
    model: str
    media_kinds: frozenset[str]
    transport: TransportMode
    # Replicate model reference ("owner/name" or "owner/name:version").
    reference: str = ""
    requires_source_image: bool = False


def _entry(
    provider_id: str,
    family: str,
    model: str,
    kinds: tuple[str, ...],
    transport: TransportMode,
    reference: str = "",
    requires_source_image: bool = False,
) -> ModelEntry:
    return ModelEntry(
        provider_id=provider_id,
        family=family,
        model=model,
        media_kinds=frozenset(kinds),
        transport=transport,
        reference=reference,
        requires_source_image=requires_source_image,
    )


CATALOG: tuple[ModelEntry, ...] = (
    # Runpod serverless endpoints, one endpoint id per model.
    _entry("runpod-flux", "runpod", "flux", ("image",), "sync-wait"),
    _entry("runpod-sdxl", "runpod", "sdxl", ("image",), "sync-wait"),
    _entry("runpod-sd15", "runpod", "sd15", ("image",), "sync-wait"),
    _entry("runpod-svd", "runpod", "svd", ("video",), "submit-poll", requires_source_image=True),
    _entry("runpod-llama", "runpod", "llama", ("llm-text",), "sync-wait"),
    _entry("runpod-mistral", "runpod", "mistral", ("llm-text",), "sync-wait"),
    _entry("runpod-tts", "runpod", "tts", ("audio",), "sync-wait"),
    _entry("runpod-embedding", "runpod", "embedding", ("embedding",), "sync-wait"),
    # Replicate predictions.
    _entry(
        "replicate-flux-schnell", "replicate", "flux-schnell", ("image",), "submit-poll",
        reference="black-forest-labs/flux-schnell",
    ),
    _entry(
        "replicate-flux-dev", "replicate", "flux-dev", ("image",), "submit-poll",
        reference="black-forest-labs/flux-dev",
    ),
    _entry(
        "replicate-sdxl", "replicate", "sdxl", ("image",), "submit-poll",
        reference="stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
    ),
    _entry(
        "replicate-upscale", "replicate", "upscale", ("image",), "submit-poll",
        reference="nightmareai/real-esrgan:f121d640bd286e1fdc67f9799164c1d5be36ff74576ee11c803ae5b665dd46aa",
        requires_source_image=True,
    ),
    _entry(
        "replicate-stable-video", "replicate", "stable-video", ("video",), "submit-poll",
        reference="stability-ai/stable-video-diffusion:3f0457e4619daac51203dedb472816fd4af51f3149fa7a9e0b5ffcf1b8172438",
        requires_source_image=True,
    ),
    _entry(
        "replicate-minimax-video", "replicate", "minimax-video", ("video",), "submit-poll",
        reference="minimax/video-01",
    ),
    _entry(
        "replicate-musicgen", "replicate", "musicgen", ("audio",), "submit-poll",
        reference="meta/musicgen:671ac645ce5e552cc63a54a2bbff63fcf798043055d2dac5fc9e36a837eedcfb",
    ),
    _entry(
        "replicate-bark", "replicate", "bark", ("audio",), "submit-poll",
        reference="suno-ai/bark:b76242b40d67c76ab6742e987628a2a9ac019e11d56ab96c4e91ce03b79b2787",
    ),
    # Local renderer for development without GPU credentials.
    _entry("placeholder", "placeholder", "placeholder", ("image",), "sync-wait"),
)

CATALOG_BY_ID: dict[str, ModelEntry] = {e.provider_id: e for e in CATALOG}

# Fast/cheap providers first, slow/expensive ones after.
DEFAULT_ORDER: dict[str, tuple[str, ...]] = {
    "image": (
        "runpod-flux",
        "replicate-flux-schnell",
        "runpod-sdxl",
        "replicate-sdxl",
        "replicate-flux-dev",
        "runpod-sd15",
        "replicate-upscale",
        "placeholder",
    ),
    "video": ("runpod-svd", "replicate-stable-video", "replicate-minimax-video"),
    "audio": ("runpod-tts", "replicate-bark", "replicate-musicgen"),
    "llm-text": ("runpod-llama", "runpod-mistral"),
    "embedding": ("runpod-embedding",),
}

RUNPOD_ENDPOINT_ENV: dict[str, str] = {
    "flux": "RUNPOD_FLUX_ENDPOINT",
    "sdxl": "RUNPOD_SDXL_ENDPOINT",
    "sd15": "RUNPOD_SD15_ENDPOINT",
    "svd": "RUNPOD_SVD_ENDPOINT",
    "llama": "RUNPOD_LLAMA_ENDPOINT",
    "mistral": "RUNPOD_MISTRAL_ENDPOINT",
    "tts": "RUNPOD_TTS_ENDPOINT",
    "embedding": "RUNPOD_EMBEDDING_ENDPOINT",
}


def known_provider_ids() -> set[str]:
    return set(CATALOG_BY_ID)

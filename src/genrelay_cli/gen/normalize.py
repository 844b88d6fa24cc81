"""Translate a logical GenerationRequest into a provider/model payload.

Each provider+model pair has one builder registered in ``_BUILDERS``; the
builder applies that model's defaults so callers never forward nulls. All
capability checks happen here, before any network call.
"""
from __future__ import annotations

import random
from typing import Callable, Optional

from .errors import CapabilityMismatch
from .payloads import (
    PlaceholderPayload,
    ProviderPayload,
    ReplicateImagePayload,
    ReplicateImageToVideoPayload,
    ReplicateMusicPayload,
    ReplicateSpeechPayload,
    ReplicateTextToVideoPayload,
    ReplicateUpscalePayload,
    RunpodDiffusionPayload,
    RunpodEmbeddingPayload,
    RunpodFluxPayload,
    RunpodLlmPayload,
    RunpodSpeechPayload,
    RunpodVideoPayload,
)
from .prompting import PromptResolutionError, PromptResolver
from .types import GenerationRequest, ProviderDescriptor

ASPECT_RATIOS: dict[str, float] = {
    "1:1": 1.0,
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
    "21:9": 21 / 9,
}

MAX_MUSIC_DURATION_SEC = 30
DEFAULT_MUSIC_DURATION_SEC = 5


def nearest_aspect_ratio(width: int, height: int) -> str:
    ratio = width / height
    return min(ASPECT_RATIOS, key=lambda name: abs(ASPECT_RATIOS[name] - ratio))


class RequestNormalizer:
    def __init__(self, prompts: Optional[PromptResolver] = None, rng: Optional[random.Random] = None):
        self.prompts = prompts or PromptResolver()
        self._rng = rng or random.Random()

    def normalize(self, request: GenerationRequest, descriptor: ProviderDescriptor) -> ProviderPayload:
        pid = descriptor.provider_id
        if not descriptor.supports(request.kind):
            raise CapabilityMismatch(
                f"{pid} does not support {request.kind} requests "
                f"(supports: {', '.join(sorted(descriptor.media_kinds))})",
                provider_id=pid,
            )
        if descriptor.requires_source_image and not request.source_image:
            raise CapabilityMismatch(f"{pid} requires a source image", provider_id=pid)

        builder = _BUILDERS.get((descriptor.family, descriptor.model))
        if builder is None:
            raise CapabilityMismatch(f"No payload mapping for {pid}", provider_id=pid)
        return builder(self, request, descriptor)

    # helpers used by the builders

    def prompt_text(self, request: GenerationRequest, descriptor: ProviderDescriptor) -> str:
        if not request.prompt or not request.prompt.strip():
            raise CapabilityMismatch(
                f"{descriptor.provider_id} needs a text prompt", provider_id=descriptor.provider_id
            )
        return request.prompt.strip()

    def styled_prompt(self, request: GenerationRequest, descriptor: ProviderDescriptor) -> str:
        try:
            return self.prompts.enhance(request.kind, self.prompt_text(request, descriptor), request.style_hint)
        except PromptResolutionError as e:
            raise CapabilityMismatch(
                f"{descriptor.provider_id}: cannot build prompt: {e}", provider_id=descriptor.provider_id
            ) from e

    def seed(self, request: GenerationRequest) -> int:
        if request.quality.seed is not None:
            return request.quality.seed
        return self._rng.randint(0, 999_999)


def normalize(request: GenerationRequest, descriptor: ProviderDescriptor) -> ProviderPayload:
    return RequestNormalizer().normalize(request, descriptor)


Builder = Callable[[RequestNormalizer, GenerationRequest, ProviderDescriptor], ProviderPayload]


def _runpod_flux(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return RunpodFluxPayload(
        prompt=n.styled_prompt(req, d),
        width=req.dimensions.width,
        height=req.dimensions.height,
        num_inference_steps=req.quality.steps or 4,
        guidance_scale=req.quality.guidance_scale if req.quality.guidance_scale is not None else 3.5,
        seed=n.seed(req),
    )


def _runpod_diffusion(
    steps: int, negative: str, width: Optional[int] = None, height: Optional[int] = None
) -> Builder:
    def build(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
        explicit = "dimensions" in req.model_fields_set
        return RunpodDiffusionPayload(
            prompt=n.styled_prompt(req, d),
            negative_prompt=req.negative_prompt or negative,
            width=req.dimensions.width if explicit or width is None else width,
            height=req.dimensions.height if explicit or height is None else height,
            num_inference_steps=req.quality.steps or steps,
            guidance_scale=req.quality.guidance_scale if req.quality.guidance_scale is not None else 7.5,
            seed=n.seed(req),
        )

    return build


def _runpod_svd(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    fps = 7
    num_frames = 25
    if req.duration_sec:
        num_frames = max(1, min(int(req.duration_sec * fps), 100))
    return RunpodVideoPayload(
        image_url=req.source_image or "",
        motion_bucket_id=127,
        fps=fps,
        num_frames=num_frames,
    )


def _runpod_llm(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    q = req.quality
    return RunpodLlmPayload(
        prompt=n.prompt_text(req, d),
        max_tokens=q.max_tokens or 2048,
        temperature=q.temperature if q.temperature is not None else 0.7,
        top_p=q.top_p if q.top_p is not None else 0.9,
    )


def _runpod_tts(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return RunpodSpeechPayload(text=n.prompt_text(req, d), voice=req.voice or "default", speed=1.0)


def _runpod_embedding(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return RunpodEmbeddingPayload(texts=(n.prompt_text(req, d),))


def _replicate_image(steps: int, guidance: Optional[float], negative: bool = True) -> Builder:
    def build(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
        w, h = req.dimensions.width, req.dimensions.height
        return ReplicateImagePayload(
            prompt=n.styled_prompt(req, d),
            negative_prompt=(req.negative_prompt or "ugly, blurry, low quality, distorted") if negative else "",
            aspect_ratio=nearest_aspect_ratio(w, h),
            width=w,
            height=h,
            num_inference_steps=req.quality.steps or steps,
            guidance_scale=req.quality.guidance_scale if req.quality.guidance_scale is not None else guidance,
        )

    return build


def _replicate_upscale(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return ReplicateUpscalePayload(image=req.source_image or "")


def _replicate_stable_video(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return ReplicateImageToVideoPayload(input_image=req.source_image or "")


def _replicate_minimax(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return ReplicateTextToVideoPayload(prompt=n.styled_prompt(req, d), first_frame_image=req.source_image)


def _replicate_musicgen(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    duration = int(req.duration_sec or DEFAULT_MUSIC_DURATION_SEC)
    return ReplicateMusicPayload(
        prompt=n.styled_prompt(req, d),
        duration=max(1, min(duration, MAX_MUSIC_DURATION_SEC)),
    )


def _replicate_bark(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    temp = req.quality.temperature if req.quality.temperature is not None else 0.7
    return ReplicateSpeechPayload(prompt=n.prompt_text(req, d), text_temp=temp, waveform_temp=temp)


def _placeholder(n: RequestNormalizer, req: GenerationRequest, d: ProviderDescriptor) -> ProviderPayload:
    return PlaceholderPayload(
        prompt=req.prompt or "image enhancement",
        width=req.dimensions.width,
        height=req.dimensions.height,
    )


_BUILDERS: dict[tuple[str, str], Builder] = {
    ("runpod", "flux"): _runpod_flux,
    ("runpod", "sdxl"): _runpod_diffusion(30, "blurry, low quality, distorted"),
    ("runpod", "sd15"): _runpod_diffusion(25, "blurry, low quality", width=512, height=512),
    ("runpod", "svd"): _runpod_svd,
    ("runpod", "llama"): _runpod_llm,
    ("runpod", "mistral"): _runpod_llm,
    ("runpod", "tts"): _runpod_tts,
    ("runpod", "embedding"): _runpod_embedding,
    ("replicate", "flux-schnell"): _replicate_image(4, None),
    ("replicate", "flux-dev"): _replicate_image(28, 3.0),
    ("replicate", "sdxl"): _replicate_image(30, 7.5),
    ("replicate", "upscale"): _replicate_upscale,
    ("replicate", "stable-video"): _replicate_stable_video,
    ("replicate", "minimax-video"): _replicate_minimax,
    ("replicate", "musicgen"): _replicate_musicgen,
    ("replicate", "bark"): _replicate_bark,
    ("placeholder", "placeholder"): _placeholder,
}

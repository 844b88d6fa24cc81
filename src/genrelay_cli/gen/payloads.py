from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class RunpodFluxPayload:
    prompt: str
    width: int
    height: int
    num_inference_steps: int
    guidance_scale: float
    seed: int

    def to_input(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "width": self.width,
            "height": self.height,
            "num_inference_steps": self.num_inference_steps,
            "guidance_scale": self.guidance_scale,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class RunpodDiffusionPayload:
    """SDXL and SD 1.5 style workers."""

    prompt: str
    negative_prompt: str
    width: int
    height: int
    num_inference_steps: int
    guidance_scale: float
    seed: int

    def to_input(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "negative_prompt": self.negative_prompt,
            "width": self.width,
            "height": self.height,
            "num_inference_steps": self.num_inference_steps,
            "guidance_scale": self.guidance_scale,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class RunpodVideoPayload:
    image_url: str
    motion_bucket_id: int
    fps: int
    num_frames: int

    def to_input(self) -> dict[str, Any]:
        return {
            "image_url": self.image_url,
            "motion_bucket_id": self.motion_bucket_id,
            "fps": self.fps,
            "num_frames": self.num_frames,
        }


@dataclass(frozen=True)
class RunpodLlmPayload:
    prompt: str
    max_tokens: int
    temperature: float
    top_p: float

    def to_input(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }


@dataclass(frozen=True)
class RunpodSpeechPayload:
    text: str
    voice: str
    speed: float

    def to_input(self) -> dict[str, Any]:
        return {"text": self.text, "voice": self.voice, "speed": self.speed}


@dataclass(frozen=True)
class RunpodEmbeddingPayload:
    texts: tuple[str, ...]

    def to_input(self) -> dict[str, Any]:
        return {"input": list(self.texts)}


@dataclass(frozen=True)
class ReplicateImagePayload:
    prompt: str
    negative_prompt: str
    aspect_ratio: str
    width: int
    height: int
    num_inference_steps: int
    guidance_scale: Optional[float]
    output_format: str = "webp"
    output_quality: int = 90

    def to_input(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prompt": self.prompt,
            "negative_prompt": self.negative_prompt,
            "aspect_ratio": self.aspect_ratio,
            "width": self.width,
            "height": self.height,
            "num_inference_steps": self.num_inference_steps,
            "num_outputs": 1,
            "output_format": self.output_format,
            "output_quality": self.output_quality,
        }
        if self.guidance_scale is not None:
            data["guidance_scale"] = self.guidance_scale
        return data


@dataclass(frozen=True)
class ReplicateUpscalePayload:
    image: str
    scale: int = 4
    face_enhance: bool = True

    def to_input(self) -> dict[str, Any]:
        return {"image": self.image, "scale": self.scale, "face_enhance": self.face_enhance}


@dataclass(frozen=True)
class ReplicateImageToVideoPayload:
    input_image: str
    frames_per_second: int = 6
    motion_bucket_id: int = 127
    sizing_strategy: str = "maintain_aspect_ratio"

    def to_input(self) -> dict[str, Any]:
        return {
            "input_image": self.input_image,
            "sizing_strategy": self.sizing_strategy,
            "frames_per_second": self.frames_per_second,
            "motion_bucket_id": self.motion_bucket_id,
        }


@dataclass(frozen=True)
class ReplicateTextToVideoPayload:
    prompt: str
    prompt_optimizer: bool = True
    first_frame_image: Optional[str] = None

    def to_input(self) -> dict[str, Any]:
        data: dict[str, Any] = {"prompt": self.prompt, "prompt_optimizer": self.prompt_optimizer}
        if self.first_frame_image:
            data["first_frame_image"] = self.first_frame_image
        return data


@dataclass(frozen=True)
class ReplicateMusicPayload:
    prompt: str
    duration: int
    model_version: str = "stereo-melody-large"
    output_format: str = "mp3"

    def to_input(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "model_version": self.model_version,
            "duration": self.duration,
            "output_format": self.output_format,
        }


@dataclass(frozen=True)
class ReplicateSpeechPayload:
    prompt: str
    text_temp: float = 0.7
    waveform_temp: float = 0.7

    def to_input(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "text_temp": self.text_temp, "waveform_temp": self.waveform_temp}


@dataclass(frozen=True)
class PlaceholderPayload:
    prompt: str
    width: int
    height: int

    def to_input(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "width": self.width, "height": self.height}


ProviderPayload = Union[
    RunpodFluxPayload,
    RunpodDiffusionPayload,
    RunpodVideoPayload,
    RunpodLlmPayload,
    RunpodSpeechPayload,
    RunpodEmbeddingPayload,
    ReplicateImagePayload,
    ReplicateUpscalePayload,
    ReplicateImageToVideoPayload,
    ReplicateTextToVideoPayload,
    ReplicateMusicPayload,
    ReplicateSpeechPayload,
    PlaceholderPayload,
]

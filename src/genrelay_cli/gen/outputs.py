"""Turn provider-native output into ``GenerationResult.outputs``.

This is the only place that knows the shapes providers return, so adding a
provider means adding a branch here and a builder in normalize.py.
"""
from __future__ import annotations

from typing import Any


MEDIA_KEYS = ("images", "image", "image_url", "video", "video_url", "audio", "audio_url", "url", "urls")
TEXT_KEYS = ("text", "generated_text", "response")

MIME_BY_KIND = {"image": "image/png", "video": "video/mp4", "audio": "audio/wav"}


def _as_uri(value: str, kind: str) -> str:
    if value.startswith(("data:", "http://", "https://")):
        return value
    # Runpod workers commonly return bare base64 payloads.
    mime = MIME_BY_KIND.get(kind)
    if mime and len(value) > 100:
        return f"data:{mime};base64,{value}"
    return value


def _flatten(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items: list[Any] = []
        for v in value:
            items.extend(_flatten(v))
        return items
    return [value]


def _llm_text(output: Any) -> list[str]:
    # vLLM workers: [{"choices": [{"tokens": [...]}]}] or {"choices": [{"text": ...}]}
    texts: list[str] = []
    for chunk in _flatten(output):
        if isinstance(chunk, str):
            texts.append(chunk)
            continue
        if not isinstance(chunk, dict):
            continue
        for choice in chunk.get("choices", []) or []:
            if not isinstance(choice, dict):
                continue
            if "tokens" in choice:
                texts.append("".join(str(t) for t in _flatten(choice["tokens"])))
            elif "text" in choice:
                texts.append(str(choice["text"]))
            elif isinstance(choice.get("message"), dict):
                texts.append(str(choice["message"].get("content", "")))
        for key in TEXT_KEYS:
            if isinstance(chunk.get(key), str):
                texts.append(chunk[key])
    return ["".join(texts)] if texts else []


def _embeddings(output: Any) -> list[Any]:
    if isinstance(output, dict):
        for key in ("embeddings", "embedding", "data"):
            if key in output:
                output = output[key]
                break
    if isinstance(output, list) and output and all(isinstance(x, (int, float)) for x in output):
        return [output]
    vectors = []
    for item in output if isinstance(output, list) else []:
        if isinstance(item, dict) and "embedding" in item:
            vectors.append(item["embedding"])
        elif isinstance(item, list):
            vectors.append(item)
    return vectors


def _media(output: Any, kind: str) -> list[Any]:
    if isinstance(output, str):
        return [_as_uri(output, kind)]
    if isinstance(output, (list, tuple)):
        return [_as_uri(v, kind) if isinstance(v, str) else v for v in _flatten(output)]
    if isinstance(output, dict):
        for key in MEDIA_KEYS:
            if key in output and output[key]:
                return _media(output[key], kind)
        for key in TEXT_KEYS:
            if isinstance(output.get(key), str):
                return [output[key]]
    return []


def extract_outputs(kind: str, raw_output: Any) -> list[Any]:
    """Ordered outputs for a succeeded job; empty when nothing usable came back."""
    if kind == "llm-text":
        return _llm_text(raw_output)
    if kind == "embedding":
        return _embeddings(raw_output)
    return [o for o in _media(raw_output, kind) if o not in ("", None)]

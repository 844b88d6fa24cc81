from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def read_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping: {p}")
    return data


def load_model(model_cls: type[T], path: str | Path, **overrides: Any) -> T:
    """Validate a YAML file into ``model_cls``; non-None overrides win."""
    data = read_yaml(path)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return model_cls.model_validate(data)


def read_source_image(value: str) -> str:
    """Pass URLs and data URIs through; inline local files as data URIs."""
    if value.startswith(("http://", "https://", "data:")):
        return value
    p = Path(value)
    mime = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(p.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"

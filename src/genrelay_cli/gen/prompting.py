from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, UndefinedError

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"

STYLE_PHRASES: dict[str, str] = {
    "professional": "professional, corporate, clean, modern, high quality",
    "modern": "modern, minimalist, sleek, contemporary",
    "creative": "creative, artistic, unique, vibrant colors",
    "tech": "technology, futuristic, digital, innovative",
    "nature": "natural, organic, environmental, sustainable",
    "luxury": "luxury, premium, elegant, sophisticated",
    "playful": "fun, playful, colorful, energetic",
    "minimal": "minimalist, simple, clean, white space",
    "vintage": "vintage, retro, nostalgic, classic",
    "dark": "dark mode, moody, dramatic lighting",
    "bright": "bright, cheerful, well-lit, optimistic",
    "photorealistic": "8k, ultra detailed, realistic lighting",
    "illustration": "clean vector style, modern illustration",
}

# Kinds whose prompts are rewritten through a template; everything else is
# forwarded verbatim.
TEMPLATED_KINDS = {"image": "image.j2", "video": "video.j2", "audio": "music.j2"}


class PromptResolutionError(Exception):
    """Raised when a prompt template cannot be resolved."""

    pass


@dataclass
class ResolvedPrompt:
    """Container for a resolved prompt with its metadata."""

    template_name: str
    params: dict[str, Any]
    resolved_text: str


def style_phrase(style_hint: Optional[str]) -> str:
    if not style_hint:
        return ""
    key = style_hint.strip().lower()
    return STYLE_PHRASES.get(key, style_hint.strip())


class PromptResolver:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = templates_dir or DEFAULT_TEMPLATES_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, params: dict[str, Any]) -> str:
        """Render a template and return the resolved text.

        Raises:
            PromptResolutionError: If template not found or variable undefined.
        """
        try:
            tpl = self.env.get_template(template_name)
            return " ".join(tpl.render(**params).split())
        except TemplateNotFound as e:
            raise PromptResolutionError(
                f"Template '{template_name}' not found in {self.templates_dir}"
            ) from e
        except UndefinedError as e:
            raise PromptResolutionError(
                f"Undefined variable in template '{template_name}': {e}"
            ) from e

    def resolve(self, template_name: str, params: dict[str, Any]) -> ResolvedPrompt:
        resolved_text = self.render(template_name, params)
        return ResolvedPrompt(
            template_name=template_name,
            params=params,
            resolved_text=resolved_text,
        )

    def enhance(self, kind: str, prompt: str, style_hint: Optional[str] = None) -> str:
        """Apply the kind's prompt template, folding in the style hint."""
        template_name = TEMPLATED_KINDS.get(kind)
        if template_name is None:
            return prompt
        params = {"prompt": prompt.strip(), "style": style_phrase(style_hint)}
        return self.resolve(template_name, params).resolved_text

from __future__ import annotations

from pathlib import Path

import pytest

from genrelay_cli.gen.prompting import (
    PromptResolutionError,
    PromptResolver,
    ResolvedPrompt,
    style_phrase,
)


@pytest.fixture
def resolver() -> PromptResolver:
    return PromptResolver()


class TestPromptResolver:
    def test_resolve_image_prompt(self, resolver: PromptResolver) -> None:
        params = {"prompt": "a red bicycle", "style": "bright, cheerful"}
        result = resolver.resolve("image.j2", params)

        assert isinstance(result, ResolvedPrompt)
        assert result.template_name == "image.j2"
        assert result.params == params
        assert result.resolved_text == "a red bicycle, bright, cheerful, high resolution, 4k, detailed"

    def test_missing_template_raises(self, resolver: PromptResolver) -> None:
        with pytest.raises(PromptResolutionError) as exc_info:
            resolver.resolve("nonexistent.j2", {})
        assert "not found" in str(exc_info.value)

    def test_missing_variable_raises(self, resolver: PromptResolver) -> None:
        with pytest.raises(PromptResolutionError) as exc_info:
            resolver.resolve("image.j2", {"style": ""})
        assert "Undefined" in str(exc_info.value)

    def test_custom_templates_dir(self, tmp_path: Path) -> None:
        (tmp_path / "image.j2").write_text("{{ prompt }} in watercolor\n")
        resolver = PromptResolver(tmp_path)

        assert resolver.enhance("image", "a fox") == "a fox in watercolor"


class TestEnhance:
    def test_known_style_is_expanded(self, resolver: PromptResolver) -> None:
        text = resolver.enhance("image", "a logo", "minimal")
        assert text == "a logo, minimalist, simple, clean, white space, high resolution, 4k, detailed"

    def test_unknown_style_is_used_verbatim(self, resolver: PromptResolver) -> None:
        assert resolver.enhance("audio", "jazz", "smoky bar") == "jazz, smoky bar"

    def test_untemplated_kinds_pass_through(self, resolver: PromptResolver) -> None:
        assert resolver.enhance("llm-text", "  keep   spacing ", "dark") == "  keep   spacing "

    def test_style_phrase(self) -> None:
        assert style_phrase(None) == ""
        assert style_phrase(" Tech ") == "technology, futuristic, digital, innovative"

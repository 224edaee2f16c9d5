from __future__ import annotations

import pytest

from masked_edit_core.design_tokens import (
    DEFAULT_TOKENS,
    generate_design_tokens,
    tokens_to_prompt_description,
)
from masked_edit_core.types import RestyleStyle


@pytest.mark.parametrize("style", list(RestyleStyle))
def test_every_style_has_tokens(style: RestyleStyle) -> None:
    tokens = generate_design_tokens(style)
    assert tokens == DEFAULT_TOKENS[style]
    assert tokens.colors.primary.startswith("#")


def test_unknown_style_falls_back_to_professional() -> None:
    assert generate_design_tokens("vaporwave") == DEFAULT_TOKENS[RestyleStyle.PROFESSIONAL]


def test_color_scheme_overrides_palette_only() -> None:
    tokens = generate_design_tokens("luxury", color_scheme="green")
    assert tokens.colors.primary == "#22C55E"
    assert tokens.colors.text == DEFAULT_TOKENS[RestyleStyle.LUXURY].colors.text
    assert tokens.typography == DEFAULT_TOKENS[RestyleStyle.LUXURY].typography
    # defaults stay untouched
    assert DEFAULT_TOKENS[RestyleStyle.LUXURY].colors.primary == "#000000"


def test_monochrome_overrides_text_colours() -> None:
    tokens = generate_design_tokens("pops", color_scheme="monochrome")
    assert tokens.colors.text == "#000000"
    assert tokens.colors.muted == "#9CA3AF"


def test_original_scheme_and_keep_layout_are_identity() -> None:
    assert generate_design_tokens("minimal", "original", "keep") == DEFAULT_TOKENS[RestyleStyle.MINIMAL]


def test_layout_options() -> None:
    assert generate_design_tokens("pops", layout_option="compact").spacing.density == "compact"
    modern = generate_design_tokens("emotional", layout_option="modernize")
    assert (modern.spacing.density, modern.spacing.section_padding) == ("spacious", "large")


def test_prompt_description_mentions_tokens() -> None:
    text = tokens_to_prompt_description(generate_design_tokens("pops"))
    assert "#EC4899" in text
    assert "fully rounded (pill), radius=9999px" in text
    assert "- Gradients: yes" in text
    assert "- Glass effect: no" in text

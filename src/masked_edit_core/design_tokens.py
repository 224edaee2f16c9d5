"""Per-style design tokens shared by every segment of a restyle run.

The tokens are fixed up front and interpolated into each segment's prompt, so the
model is told the same palette, typography and component rules every time.
"""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel

from .types import ColorScheme, LayoutOption, RestyleStyle


class TokenColors(BaseModel):
    primary: str
    secondary: str
    accent: str
    background: str
    text: str
    muted: str


class TokenTypography(BaseModel):
    heading_style: str  # gothic | mincho | rounded
    body_style: str
    heading_weight: str  # normal | medium | bold | extrabold
    line_height: str  # tight | normal | relaxed


class TokenSpacing(BaseModel):
    density: str  # compact | normal | spacious
    section_padding: str  # small | medium | large


class TokenComponents(BaseModel):
    button_style: str  # rounded | pill | square
    button_radius: str
    shadow_depth: str  # none | subtle | medium | strong
    border_style: str  # none | subtle | prominent


class TokenEffects(BaseModel):
    gradients: bool = False
    animations: bool = False
    glassmorphism: bool = False


class DesignTokens(BaseModel):
    colors: TokenColors
    typography: TokenTypography
    spacing: TokenSpacing
    components: TokenComponents
    effects: TokenEffects


def _tokens(colors, typography, spacing, components, effects=(False, False, False)) -> DesignTokens:
    return DesignTokens(
        colors=TokenColors(**dict(zip(("primary", "secondary", "accent", "background", "text", "muted"), colors))),
        typography=TokenTypography(
            **dict(zip(("heading_style", "body_style", "heading_weight", "line_height"), typography))
        ),
        spacing=TokenSpacing(density=spacing[0], section_padding=spacing[1]),
        components=TokenComponents(
            **dict(zip(("button_style", "button_radius", "shadow_depth", "border_style"), components))
        ),
        effects=TokenEffects(gradients=effects[0], animations=effects[1], glassmorphism=effects[2]),
    )


DEFAULT_TOKENS: Dict[RestyleStyle, DesignTokens] = {
    RestyleStyle.SAMPLING: _tokens(
        ("#3B82F6", "#1E40AF", "#60A5FA", "#FFFFFF", "#1F2937", "#6B7280"),
        ("gothic", "gothic", "bold", "normal"),
        ("normal", "medium"),
        ("rounded", "8px", "subtle", "none"),
    ),
    RestyleStyle.PROFESSIONAL: _tokens(
        ("#1E3A5F", "#2C5282", "#4299E1", "#FFFFFF", "#1A202C", "#718096"),
        ("gothic", "gothic", "bold", "relaxed"),
        ("normal", "large"),
        ("rounded", "6px", "subtle", "subtle"),
    ),
    RestyleStyle.POPS: _tokens(
        ("#EC4899", "#F97316", "#8B5CF6", "#FEFCE8", "#1F2937", "#6B7280"),
        ("rounded", "gothic", "extrabold", "normal"),
        ("normal", "medium"),
        ("pill", "9999px", "medium", "none"),
        (True, True, False),
    ),
    RestyleStyle.LUXURY: _tokens(
        ("#000000", "#1F2937", "#D4AF37", "#FAFAFA", "#111827", "#4B5563"),
        ("mincho", "gothic", "normal", "relaxed"),
        ("spacious", "large"),
        ("square", "0px", "none", "prominent"),
    ),
    RestyleStyle.MINIMAL: _tokens(
        ("#111827", "#374151", "#3B82F6", "#FFFFFF", "#111827", "#9CA3AF"),
        ("gothic", "gothic", "medium", "relaxed"),
        ("spacious", "large"),
        ("square", "4px", "none", "subtle"),
    ),
    RestyleStyle.EMOTIONAL: _tokens(
        ("#C41E3A", "#991B1B", "#F97316", "#FFFBEB", "#1F2937", "#6B7280"),
        ("gothic", "gothic", "extrabold", "tight"),
        ("compact", "medium"),
        ("rounded", "12px", "strong", "none"),
        (True, True, False),
    ),
}

COLOR_OVERRIDES: Dict[ColorScheme, Dict[str, str]] = {
    ColorScheme.ORIGINAL: {},
    ColorScheme.BLUE: {"primary": "#3B82F6", "secondary": "#1E40AF", "accent": "#60A5FA", "background": "#F0F9FF"},
    ColorScheme.GREEN: {"primary": "#22C55E", "secondary": "#15803D", "accent": "#86EFAC", "background": "#F0FDF4"},
    ColorScheme.PURPLE: {"primary": "#A855F7", "secondary": "#7C3AED", "accent": "#C4B5FD", "background": "#FAF5FF"},
    ColorScheme.ORANGE: {"primary": "#F97316", "secondary": "#EA580C", "accent": "#FDBA74", "background": "#FFF7ED"},
    ColorScheme.MONOCHROME: {
        "primary": "#000000",
        "secondary": "#374151",
        "accent": "#6B7280",
        "background": "#FFFFFF",
        "text": "#000000",
        "muted": "#9CA3AF",
    },
}


def apply_color_scheme(tokens: DesignTokens, color_scheme: ColorScheme) -> DesignTokens:
    override = COLOR_OVERRIDES.get(color_scheme, {})
    return tokens.model_copy(update={"colors": tokens.colors.model_copy(update=override)})


def apply_layout_option(tokens: DesignTokens, layout_option: LayoutOption) -> DesignTokens:
    if layout_option == LayoutOption.MODERNIZE:
        spacing = TokenSpacing(density="spacious", section_padding="large")
    elif layout_option == LayoutOption.COMPACT:
        spacing = TokenSpacing(density="compact", section_padding="small")
    else:
        return tokens
    return tokens.model_copy(update={"spacing": spacing})


def generate_design_tokens(
    style: str,
    color_scheme: Optional[str] = None,
    layout_option: Optional[str] = None,
) -> DesignTokens:
    try:
        tokens = DEFAULT_TOKENS[RestyleStyle(style)]
    except ValueError:
        tokens = DEFAULT_TOKENS[RestyleStyle.PROFESSIONAL]
    if color_scheme and color_scheme != ColorScheme.ORIGINAL:
        tokens = apply_color_scheme(tokens, ColorScheme(color_scheme))
    if layout_option and layout_option != LayoutOption.KEEP:
        tokens = apply_layout_option(tokens, LayoutOption(layout_option))
    return tokens


_FONT = {"mincho": "serif (mincho)", "rounded": "rounded sans-serif"}
_WEIGHT = {"extrabold": "extra bold", "bold": "bold", "medium": "medium"}
_LINE_HEIGHT = {"tight": "tight", "relaxed": "relaxed"}
_DENSITY = {"compact": "compact (little whitespace)", "spacious": "spacious (generous whitespace)"}
_PADDING = {"small": "narrow", "large": "wide"}
_BUTTON = {"pill": "fully rounded (pill)", "square": "square"}
_SHADOW = {"none": "none", "subtle": "subtle", "strong": "strong"}
_BORDER = {"none": "none", "prominent": "prominent"}


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def tokens_to_prompt_description(tokens: DesignTokens) -> str:
    c, t, s, k, e = tokens.colors, tokens.typography, tokens.spacing, tokens.components, tokens.effects
    return "\n".join(
        [
            "[Design tokens - keep these identical across all segments]",
            "",
            "Color palette (use exactly these colors)",
            f"- Primary: {c.primary}",
            f"- Secondary: {c.secondary}",
            f"- Accent: {c.accent}",
            f"- Background: {c.background}",
            f"- Text: {c.text}",
            f"- Muted text: {c.muted}",
            "",
            "Typography",
            f"- Headings: {_FONT.get(t.heading_style, 'sans-serif (gothic)')}, "
            f"{_WEIGHT.get(t.heading_weight, 'regular')}",
            f"- Body: {_FONT.get(t.body_style, 'sans-serif (gothic)')}",
            f"- Line height: {_LINE_HEIGHT.get(t.line_height, 'normal')}",
            "",
            "Spacing and layout",
            f"- Density: {_DENSITY.get(s.density, 'normal')}",
            f"- Between sections: {_PADDING.get(s.section_padding, 'normal')}",
            "",
            "Components",
            f"- Buttons: {_BUTTON.get(k.button_style, 'rounded corners')}, radius={k.button_radius}",
            f"- Shadows: {_SHADOW.get(k.shadow_depth, 'medium')}",
            f"- Borders: {_BORDER.get(k.border_style, 'subtle')}",
            "",
            "Effects",
            f"- Gradients: {_yes_no(e.gradients)}",
            f"- Sense of motion: {_yes_no(e.animations)}",
            f"- Glass effect: {_yes_no(e.glassmorphism)}",
        ]
    )

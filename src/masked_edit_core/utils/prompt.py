from __future__ import annotations

import re
from typing import Optional, Sequence

from ..region_math import describe_regions
from ..types import (
    BusinessInfo,
    DesignDefinition,
    EditRequest,
    MaskRegion,
    RestyleMode,
    RestyleStyle,
    SegmentRole,
)

TEXT_ADDITION_RE = re.compile(
    r"\b(add|insert|write|change|replace|text|title|heading|caption|label)\b", re.I
)


def is_text_addition(instruction: str) -> bool:
    return bool(TEXT_ADDITION_RE.search(instruction or ""))


def add_preserve_guardrails(prompt: str) -> str:
    guard = (
        "Important: Only change the highlighted areas. "
        "Keep everything outside them exactly as it is: same layout, colors, text and size. "
        "Output the complete image without any explanation."
    )
    if prompt:
        return f"{prompt.strip()}\n\n{guard}"
    return guard


def design_style_section(design: DesignDefinition) -> str:
    p = design.color_palette
    return (
        "[Reference design style]\n"
        "- Color palette:\n"
        f"  - Primary: {p.primary}\n"
        f"  - Secondary: {p.secondary}\n"
        f"  - Accent: {p.accent}\n"
        f"  - Background: {p.background}\n"
        f"- Typography: {design.typography.style} ({design.typography.mood})\n"
        f"- Layout: {design.layout.style} (density: {design.layout.density})\n"
        f"- Vibe: {design.vibe}\n"
        f"- Style notes: {design.description}\n\n"
        "Match the edited areas to this design style (colors, mood, tone)."
    )


def render_instruction(request: EditRequest) -> str:
    """Instruction text sent to the model, with the design style interpolated."""
    text = request.instruction.strip()
    if request.design_style is not None:
        text = f"{text}\n\n{design_style_section(request.design_style)}"
    return text


# Masked edit

REFERENCE_IMAGE_NOTE = (
    "[About the reference image]\n"
    "The second image is a design reference. Edit the first image using its design "
    "style (colors, mood, tone, texture)."
)

TEXT_ADDITION_RULES = (
    "[When adding text]\n"
    "- Never add white boxes or white margins.\n"
    "- Draw the text directly over the existing background of the area.\n"
    "- Keep the surrounding background and design; only add the text.\n"
    "- Pick a text color that contrasts with the background."
)


def build_masked_edit_prompt(
    instruction: str,
    regions: Sequence[MaskRegion],
    *,
    has_reference_image: bool = False,
    has_design_style: bool = False,
) -> str:
    styled = has_reference_image or has_design_style
    sections = [
        "You are an expert image editor. Edit the provided image and output a new image.",
        f"[Edit instruction]\n{instruction.strip()}",
        "[Target areas] (highlighted in red on the image)\n" + describe_regions(regions),
    ]
    if has_reference_image:
        sections.append(REFERENCE_IMAGE_NOTE)
    rules = [
        "1. Only modify elements inside the target areas.",
        "2. If text changes are requested, replace it with exactly the requested string.",
        "3. "
        + (
            "Reflect the colors, mood and tone of the reference design."
            if styled
            else "Keep the original style, fonts and colors as closely as possible."
        ),
        "4. Do not change anything outside the target areas.",
        "5. Do not keep the red highlight in the output.",
    ]
    sections.append("[Rules]\n" + "\n".join(rules))
    if is_text_addition(instruction):
        sections.append(TEXT_ADDITION_RULES)
    sections.append("Generate the complete edited image now.")
    return add_preserve_guardrails("\n\n".join(sections))


# Design unify

UNIFY_REFERENCE_LABEL = "[Reference image] This design style is the correct one."


def build_unify_prompt(extra: Optional[str] = None) -> str:
    prompt = (
        "[Design unification task]\n\n"
        "Two images are provided.\n\n"
        "[Image 1: reference]\n"
        "Its design style (colors, icons, decoration, fonts) is correct.\n\n"
        "[Image 2: target]\n"
        "The areas painted red in this image have the wrong design. "
        "Fix the red areas so they match the style of the reference image.\n\n"
        "[Rules]\n"
        "1. Only modify the red areas.\n"
        "2. Never change anything outside the red areas.\n"
        "3. Keep the text content unchanged.\n"
        "4. Unify with the reference style (colors, icon shapes, decoration)."
    )
    if extra:
        prompt += f"\n\n[Additional instruction]\n{extra.strip()}"
    return prompt + "\n\nOutput the complete corrected image."


# Restyle

STYLE_DESCRIPTIONS = {
    RestyleStyle.SAMPLING: (
        "Keep the original design: colors, fonts, button shapes and decoration stay as they are"
    ),
    RestyleStyle.PROFESSIONAL: (
        "Corporate and trustworthy: navy blue (#1E3A5F) and white, clean sans-serif type"
    ),
    RestyleStyle.POPS: (
        "Pop and lively: bright pink-to-orange gradients, rounded shapes, bold type"
    ),
    RestyleStyle.LUXURY: "Luxury and elegant: black and gold (#D4AF37), serif type, thin elegant lines",
    RestyleStyle.MINIMAL: "Minimal and simple: monochrome plus a single accent color, maximum whitespace",
    RestyleStyle.EMOTIONAL: (
        "Passionate and energetic: warm colors (crimson #C41E3A, orange), strong contrast"
    ),
}

SEGMENT_FRAMING = {
    SegmentRole.FIRST: ("header / hero section", "navigation, logo, main visual"),
    SegmentRole.LAST: ("footer section", "call to action, contact, copyright"),
    SegmentRole.MIDDLE: ("content section", "body content"),
}

STYLE_REFERENCE_INSTRUCTION = (
    "[Most important: style consistency]\n"
    "The attached style reference image is the first segment of this page.\n"
    "Match it exactly for:\n"
    "- background color and gradient\n"
    "- button color, shape and corner radius\n"
    "- font style\n"
    "- icon style\n"
    "- shadow strength\n"
    "- decorative elements"
)
STYLE_REFERENCE_LABEL = "^ Style reference image (match this style)"
TARGET_LABEL = "^ Image to process"


def build_restyle_prompt(
    *,
    mode: RestyleMode,
    role: SegmentRole,
    index: int,
    total: int,
    style_description: str,
    tokens_description: str,
    custom_prompt: Optional[str] = None,
    has_style_reference: bool = False,
) -> str:
    position, duty = SEGMENT_FRAMING[role]
    if role == SegmentRole.MIDDLE:
        position = f"{position} ({index + 1}/{total})"
    head = []
    if has_style_reference:
        head.append(STYLE_REFERENCE_INSTRUCTION)
    segment = (
        "[Segment]\n"
        f"- Position: {position} (of {total} segments)\n"
        f"- Role: {duty}"
    )
    if mode == RestyleMode.LIGHT:
        intro = (
            "You are a professional web designer. Convert this part of a web page "
            "(a segment image) to a new style."
        )
        body = [
            "[Important] This image is one part of a whole page and will be joined to "
            "the other segments.",
            segment,
            "[Strict rules]\n"
            "1. Keep the image size: exactly the same aspect ratio and resolution as the input.\n"
            "2. Fixed layout: do not move, resize or re-space any element.\n"
            "3. Top and bottom edges join other segments: do not break background colors or patterns.",
            "[Style rules]\n"
            f"4. Style to apply: {style_description}\n"
            "5. Rewrite text: keep the meaning, change the wording.",
        ]
    else:
        intro = (
            "You are a creative web designer. Create a new design based on this part of "
            "a web page (a segment image)."
        )
        body = [
            segment,
            "[Strict rules]\n"
            "1. Keep the image size: exactly the same aspect ratio and resolution as the input.\n"
            "2. Top and bottom edges join other segments: keep background colors continuous.",
            "[Design rules]\n"
            f"3. New style: {style_description}\n"
            "4. Re-compose the layout freely, but keep the role of the section.",
        ]
    parts = [intro, *head, *body, tokens_description]
    if custom_prompt:
        parts.append(f"[User instruction] {custom_prompt.strip()}")
    parts.append("[Output] A high quality web design image of the same size as the input.")
    return "\n\n".join(parts)


# Section image generation

_TONE_ADJECTIVE = {
    "luxury": "luxurious",
    "friendly": "friendly",
    "energetic": "lively",
}

TONE_STYLES = {
    "professional": "calm blue tones, clean and professional, trustworthy business style",
    "friendly": "bright and colorful, approachable, cheerful and lively style",
    "luxury": "dark or gold tones, luxurious, minimal and refined style",
    "energetic": "warm reds and oranges, dynamic, emotionally engaging style",
}

SECTION_IMAGE_PROMPTS = {
    "hero": lambda i: (
        f"Hero section image for {i.business_name}, a business in the {i.industry} industry. "
        f"A {_TONE_ADJECTIVE.get(i.tone, 'professional')} visual that symbolizes {i.service}. "
        f"Target audience: {i.target}. An impressive main image; people or products are fine."
    ),
    "features": lambda i: (
        f"Image expressing the features and benefits of {i.business_name} ({i.industry}). "
        f"Visualize {i.strengths}. A clean visual conveying trust and value, no icons or diagrams."
    ),
    "pricing": lambda i: (
        f"Background image for the pricing section of {i.business_name} ({i.industry}). "
        f"A {'premium' if i.tone == 'luxury' else 'simple and clean'} background that does not "
        "distract from a price table."
    ),
    "testimonials": lambda i: (
        f"Image for the customer testimonials section of {i.business_name} ({i.industry}). "
        f"A trustworthy visual evoking real users that resonates with {i.target}; smiles and satisfaction."
    ),
    "faq": lambda i: (
        f"Background image for the FAQ section of {i.business_name} ({i.industry}). "
        "A bright, clean visual expressing answers, support and reassurance."
    ),
    "cta": lambda i: (
        f"Image for the call-to-action section of {i.business_name} ({i.industry}). "
        + {
            "energetic": "A dynamic, passionate visual. ",
            "luxury": "A refined, luxurious visual. ",
        }.get(i.tone, "A strong visual that drives action. ")
        + "An impactful image that makes people want to act now."
    ),
}

SECTION_IMAGE_REQUIREMENTS = (
    "[Requirements]\n"
    "- Portrait image (aspect ratio 9:16)\n"
    "- High resolution, sharp\n"
    "- Composition suited to a landing page or advert\n"
    "- No text or letters at all"
)


def build_section_prompt(section_type: str, info: BusinessInfo) -> Optional[str]:
    template = SECTION_IMAGE_PROMPTS.get(section_type)
    if template is None:
        return None
    prompt = template(info)
    if info.tone in TONE_STYLES:
        prompt += f"\nStyle: {TONE_STYLES[info.tone]}"
    return f"{prompt}\n\n{SECTION_IMAGE_REQUIREMENTS}"

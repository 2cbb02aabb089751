from __future__ import annotations

from typing import Tuple

from .state import StyleDefinition


CUSTOM_EDIT_LABEL = "Custom Edit"

CUSTOM_EDIT_ERROR = "Failed to apply custom edit. Please try again."

STYLE_ERROR = "Failed to generate this style. Please try again."

STYLES: Tuple[StyleDefinition, ...] = (
    StyleDefinition(
        name="Cyberpunk",
        prompt="Transform this image into a cyberpunk neon-lit digital art style with futuristic vibes.",
    ),
    StyleDefinition(
        name="Oil Painting",
        prompt="Recreate this image as a classic Renaissance oil painting with rich textures.",
    ),
    StyleDefinition(
        name="Pencil Sketch",
        prompt="Convert this image into a detailed hand-drawn charcoal pencil sketch.",
    ),
    StyleDefinition(
        name="Studio Ghibli",
        prompt="Reimagine this image in a whimsical Studio Ghibli anime aesthetic with lush backgrounds.",
    ),
    StyleDefinition(
        name="3D Render",
        prompt="Convert this image into a high-quality 3D claymation render with soft lighting.",
    ),
)


def style_by_name(name: str) -> StyleDefinition:
    for style in STYLES:
        if style.name.lower() == name.strip().lower():
            return style
    raise ValueError(f"Unknown style: {name}")

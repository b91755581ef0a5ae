"""
Style presets - fixed prompt suffixes per style label.
"""

from structlog import get_logger

from app.models.api import ImageStyle

logger = get_logger(__name__)

STYLE_SUFFIXES: dict[ImageStyle, str] = {
    ImageStyle.PHOTOREALISTIC: (
        ", photorealistic, ultra detailed, natural lighting, shot on a DSLR, 8k"
    ),
    ImageStyle.ANIME: ", anime style, vibrant colors, clean line art, studio quality",
    ImageStyle.DIGITAL_ART: ", digital art, highly detailed, trending on artstation",
    ImageStyle.OIL_PAINTING: ", oil painting, visible brush strokes, rich textures, classical",
    ImageStyle.WATERCOLOR: ", watercolor painting, soft washes, paper texture, delicate",
    ImageStyle.CYBERPUNK: ", cyberpunk aesthetic, neon lights, futuristic city, moody atmosphere",
    ImageStyle.FANTASY: ", fantasy art, epic, magical atmosphere, intricate details",
    ImageStyle.MINIMALIST: ", minimalist design, clean composition, simple shapes, negative space",
}


def enrich_prompt(prompt: str, style: str) -> str:
    """
    Append the style suffix for ``style`` to ``prompt``.

    "auto" and unknown labels return the prompt unchanged.
    """
    try:
        image_style = ImageStyle(style)
    except ValueError:
        logger.warning("unknown_style_passed_through", style=style)
        return prompt

    return prompt + STYLE_SUFFIXES.get(image_style, "")

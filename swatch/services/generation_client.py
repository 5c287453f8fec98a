"""Gemini image generation client for recoloring and try-on images."""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any

from google import genai
from google.genai import types

from swatch.config import Settings
from swatch.services.claude_client import ClaudeClient, create_claude_client, strip_code_fence
from swatch.services.materializer import sniff_mime_type

logger = logging.getLogger(__name__)

# Returned whenever color suggestion fails for any reason.
FALLBACK_PALETTE = ("#A0D2DB", "#7A6E9E", "#E8A0BF", "#B4E1D2")

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")

PALETTE_PROMPT = (
    "Analyze the main color of the clothing item in this image. Based on that color, "
    "generate an array of 4 complementary and aesthetically pleasing harmonic color hex codes. "
    "The background of the garment is transparent, so ignore it. Focus only on the garment itself. "
    'Return ONLY a valid JSON object of the form {"colors": ["#RRGGBB", ...]}.'
)

RECOLOR_PROMPT = (
    "Recolor the garment in this image to the hex code {color_hex}. The garment has a transparent "
    "background which you must preserve. Maintain the original texture, shadows, and details of "
    "the garment perfectly. Only change the color. Return ONLY the final image."
)

MODEL_PHOTO_PROMPT = (
    "You are an expert fashion photographer AI. Transform the person in this image into a "
    "full-body fashion model photo suitable for an e-commerce website. The background must be a "
    "clean, neutral studio backdrop (light gray, #f0f0f0). The person should have a neutral, "
    "professional model expression. Preserve the person's identity, unique features, and body "
    "type, but place them in a standard, relaxed standing model pose. The final image must be "
    "photorealistic. Return ONLY the final image."
)

TRY_ON_PROMPT = """You are an expert virtual try-on AI. You will be given a 'model image' and a 'garment image'. Your task is to create a new photorealistic image where the person from the 'model image' is wearing the clothing from the 'garment image'.

**Crucial Rules:**
1.  **Complete Garment Replacement:** You MUST completely REMOVE and REPLACE the clothing item worn by the person in the 'model image' with the new garment. No part of the original clothing (e.g., collars, sleeves, patterns) should be visible in the final image.
2.  **Preserve the Model:** The person's face, hair, body shape, and pose from the 'model image' MUST remain unchanged.
3.  **Preserve the Background:** The entire background from the 'model image' MUST be preserved perfectly.
4.  **Apply the Garment:** Realistically fit the new garment onto the person. It should adapt to their pose with natural folds, shadows, and lighting consistent with the original scene.
5.  **Output:** Return ONLY the final, edited image. Do not include any text."""

POSE_PROMPT = (
    "You are an expert fashion photographer AI. Take this image and regenerate it from a "
    "different perspective. The person, clothing, and background style must remain identical. "
    'The new perspective should be: "{pose_instruction}". Return ONLY the final image.'
)


class ImageGenerationError(Exception):
    """The image model did not produce an image."""


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value)


def _response_parts(response: Any):
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            yield part


def _response_text(response: Any) -> str:
    return "".join(getattr(part, "text", None) or "" for part in _response_parts(response)).strip()


def extract_image_url(response: Any) -> str:
    """Return the first inline image of a response as a data URL.

    Raises ImageGenerationError when the prompt was blocked, generation stopped
    for a reason other than STOP, or the model answered without an image.
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None)
    if block_reason:
        message = getattr(feedback, "block_reason_message", None) or ""
        raise ImageGenerationError(f"Request was blocked. Reason: {_enum_name(block_reason)}. {message}".strip())

    for part in _response_parts(response):
        inline_data = getattr(part, "inline_data", None)
        data = getattr(inline_data, "data", None) if inline_data is not None else None
        if not data:
            continue
        mime_type = getattr(inline_data, "mime_type", None) or "image/png"
        encoded = data if isinstance(data, str) else base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"

    candidates = getattr(response, "candidates", None) or []
    finish_reason = getattr(candidates[0], "finish_reason", None) if candidates else None
    if finish_reason and _enum_name(finish_reason) != "STOP":
        raise ImageGenerationError(
            f"Image generation stopped unexpectedly. Reason: {_enum_name(finish_reason)}. "
            "This often relates to safety settings."
        )

    text = _response_text(response)
    if text:
        raise ImageGenerationError(f'The AI model did not return an image. The model responded with text: "{text}"')
    raise ImageGenerationError(
        "The AI model did not return an image. This can happen due to safety filters "
        "or if the request is too complex. Please try a different image."
    )


def parse_palette(text: str | None) -> list[str]:
    """Parse a ``{"colors": [...]}`` reply into normalized ``#RRGGBB`` codes.

    Raises ValueError if the reply holds no usable colors.
    """
    if not text:
        raise ValueError("Empty palette response.")
    result = json.loads(strip_code_fence(text))
    colors = result.get("colors") if isinstance(result, dict) else None
    if not isinstance(colors, list):
        raise ValueError("Invalid JSON structure in response.")

    palette = []
    for color in colors:
        match = _HEX_RE.match(color.strip()) if isinstance(color, str) else None
        if match:
            palette.append(f"#{match.group(1).upper()}")
    if not palette:
        raise ValueError("Palette response contained no valid hex colors.")
    return palette


class GenerationClient:
    """Request/response wrapper around the Gemini image and text models.

    Harmonic color suggestions go to ``palette_advisor`` (Claude) when one is
    given, otherwise to the Gemini text model.
    """

    def __init__(
        self,
        client: genai.Client,
        image_model: str,
        text_model: str,
        palette_advisor: ClaudeClient | None = None,
    ):
        self.client = client
        self.image_model = image_model
        self.text_model = text_model
        self.palette_advisor = palette_advisor

    async def suggest_harmonic_colors(self, image: bytes) -> list[str]:
        """Suggest harmonic colors for the garment in ``image``. Never raises."""
        try:
            return parse_palette(await self._request_palette(image))
        except Exception as e:
            logger.warning(f"Failed to get harmonic colors, using fallback palette: {e}")
            return list(FALLBACK_PALETTE)

    async def _request_palette(self, image: bytes) -> str | None:
        mime_type = sniff_mime_type(image)
        if self.palette_advisor is not None:
            return await self.palette_advisor.analyze_image(image, PALETTE_PROMPT, media_type=mime_type)

        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=[types.Part.from_bytes(data=image, mime_type=mime_type), PALETTE_PROMPT],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=types.Schema(
                    type=types.Type.OBJECT,
                    properties={
                        "colors": types.Schema(
                            type=types.Type.ARRAY,
                            items=types.Schema(type=types.Type.STRING),
                        )
                    },
                ),
            ),
        )
        return _response_text(response)

    async def recolor(self, image: bytes, color_hex: str) -> str:
        """Recolor the garment in ``image`` and return the result as a data URL."""
        return await self._generate_image([image], RECOLOR_PROMPT.format(color_hex=color_hex))

    async def transform_to_model(self, image: bytes) -> str:
        return await self._generate_image([image], MODEL_PHOTO_PROMPT)

    async def virtual_try_on(self, model_image: bytes, garment_image: bytes) -> str:
        return await self._generate_image([model_image, garment_image], TRY_ON_PROMPT)

    async def pose_variation(self, image: bytes, pose_instruction: str) -> str:
        return await self._generate_image([image], POSE_PROMPT.format(pose_instruction=pose_instruction))

    async def _generate_image(self, images: list[bytes], prompt: str) -> str:
        contents: list[Any] = [types.Part.from_bytes(data=img, mime_type=sniff_mime_type(img)) for img in images]
        contents.append(prompt)
        response = await self.client.aio.models.generate_content(
            model=self.image_model,
            contents=contents,
            config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        return extract_image_url(response)


def create_generation_client(settings: Settings) -> GenerationClient | None:
    """Build the generation client from settings.

    Returns None if no Gemini API key is configured.
    """
    if not settings.gemini_api_key:
        return None
    palette_advisor = create_claude_client(settings) if settings.use_claude_palette else None
    return GenerationClient(
        client=genai.Client(api_key=settings.gemini_api_key),
        image_model=settings.image_model,
        text_model=settings.text_model,
        palette_advisor=palette_advisor,
    )

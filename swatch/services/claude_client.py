"""Claude API client wrapper."""

from __future__ import annotations

import base64
import logging

import anthropic

from swatch.config import Settings

logger = logging.getLogger(__name__)

# Image media types accepted by the Messages API.
_SUPPORTED_MEDIA_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class ClaudeClient:
    """Wrapper around the Anthropic SDK for image analysis prompts."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model

    async def analyze_image(
        self,
        image: bytes,
        prompt: str,
        media_type: str = "image/png",
        max_tokens: int = 1024,
    ) -> str:
        """Send an image and a prompt to Claude and return the text response.

        The prompt should request JSON output. Markdown code fences around the
        reply are stripped; the caller is responsible for parsing.
        """
        if media_type not in _SUPPORTED_MEDIA_TYPES:
            media_type = "image/png"
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": base64.b64encode(image).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
            text = ""
            for block in message.content:
                if block.type == "text":
                    text += block.text
            return strip_code_fence(text)
        except Exception as e:
            logger.error(f"Claude API error: {e}")
            raise


def create_claude_client(settings: Settings) -> ClaudeClient | None:
    """Build a Claude client from settings.

    Returns None if no API key is configured.
    """
    if not settings.anthropic_api_key:
        return None
    return ClaudeClient(api_key=settings.anthropic_api_key, model=settings.claude_model)

"""
Tests for the Gemini generation client.
"""
import base64
from types import SimpleNamespace

import pytest
from google.genai import types

from fakes import fake_genai_client, image_response, make_png, text_response
from swatch.config import Settings
from swatch.services.generation_client import (
    FALLBACK_PALETTE,
    GenerationClient,
    ImageGenerationError,
    create_generation_client,
    extract_image_url,
    parse_palette,
)


def make_client(responses, palette_advisor=None):
    client, models = fake_genai_client(responses)
    generation = GenerationClient(
        client,
        image_model="image-model",
        text_model="text-model",
        palette_advisor=palette_advisor,
    )
    return generation, models


class TestExtractImageUrl:
    def test_returns_data_url_for_inline_image(self):
        png = make_png()
        url = extract_image_url(image_response(png, mime_type="image/png"))

        assert url == "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    def test_blocked_prompt(self):
        response = SimpleNamespace(
            candidates=[],
            prompt_feedback=SimpleNamespace(
                block_reason=types.BlockedReason.SAFETY,
                block_reason_message="Unsafe content",
            ),
        )
        with pytest.raises(ImageGenerationError, match="Request was blocked. Reason: SAFETY. Unsafe content"):
            extract_image_url(response)

    def test_unexpected_finish_reason(self):
        response = text_response("", finish_reason=types.FinishReason.SAFETY)

        with pytest.raises(ImageGenerationError, match="stopped unexpectedly. Reason: SAFETY"):
            extract_image_url(response)

    def test_text_only_reply_is_reported(self):
        response = text_response("I cannot recolor this garment.", finish_reason=types.FinishReason.STOP)

        with pytest.raises(ImageGenerationError, match="I cannot recolor this garment."):
            extract_image_url(response)

    def test_empty_reply(self):
        response = SimpleNamespace(candidates=[], prompt_feedback=None)

        with pytest.raises(ImageGenerationError, match="did not return an image"):
            extract_image_url(response)


class TestParsePalette:
    def test_plain_json(self):
        assert parse_palette('{"colors": ["#a0d2db", "7A6E9E"]}') == ["#A0D2DB", "#7A6E9E"]

    def test_fenced_json(self):
        assert parse_palette('```json\n{"colors": ["#112233"]}\n```') == ["#112233"]

    def test_invalid_entries_dropped(self):
        assert parse_palette('{"colors": ["blue", "#12345", 7, "#abcdef"]}') == ["#ABCDEF"]

    @pytest.mark.parametrize(
        "text",
        [None, "", "not json", '{"colors": []}', '{"colors": "red"}', '["#112233"]', '{"colors": ["red"]}'],
    )
    def test_unusable_replies_raise(self, text):
        with pytest.raises(ValueError):
            parse_palette(text)


@pytest.mark.asyncio
async def test_suggest_uses_gemini_text_model(png_bytes):
    generation, models = make_client(text_response('{"colors": ["#111111", "#222222"]}'))

    colors = await generation.suggest_harmonic_colors(png_bytes)

    assert colors == ["#111111", "#222222"]
    request = models.requests[0]
    assert request["model"] == "text-model"
    assert request["config"].response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_suggest_falls_back_on_transport_error(png_bytes):
    generation, _ = make_client(ConnectionError("unreachable"))

    assert await generation.suggest_harmonic_colors(png_bytes) == list(FALLBACK_PALETTE)


@pytest.mark.asyncio
async def test_suggest_falls_back_on_malformed_reply(png_bytes):
    generation, _ = make_client(text_response('{"palette": ["#111111"]}'))

    colors = await generation.suggest_harmonic_colors(png_bytes)

    assert colors == ["#A0D2DB", "#7A6E9E", "#E8A0BF", "#B4E1D2"]


@pytest.mark.asyncio
async def test_suggest_prefers_palette_advisor(png_bytes):
    prompts = []

    async def analyze_image(image, prompt, media_type="image/png"):
        prompts.append((image, media_type))
        return '```json\n{"colors": ["#0A0B0C"]}\n```'

    advisor = SimpleNamespace(analyze_image=analyze_image)
    generation, models = make_client(RuntimeError("should not be called"), palette_advisor=advisor)

    assert await generation.suggest_harmonic_colors(png_bytes) == ["#0A0B0C"]
    assert prompts == [(png_bytes, "image/png")]
    assert models.requests == []


@pytest.mark.asyncio
async def test_recolor_requests_image_model(png_bytes):
    result = make_png((9, 9, 9))
    generation, models = make_client(image_response(result))

    url = await generation.recolor(png_bytes, "#123456")

    assert url.startswith("data:image/png;base64,")
    request = models.requests[0]
    assert request["model"] == "image-model"
    assert "#123456" in request["contents"][-1]
    assert request["config"].response_modalities == ["IMAGE", "TEXT"]


@pytest.mark.asyncio
async def test_recolor_propagates_generation_error(png_bytes):
    generation, _ = make_client(text_response("No.", finish_reason=types.FinishReason.STOP))

    with pytest.raises(ImageGenerationError):
        await generation.recolor(png_bytes, "#123456")


@pytest.mark.asyncio
async def test_virtual_try_on_sends_both_images(png_bytes):
    generation, models = make_client(image_response(make_png()))

    await generation.virtual_try_on(png_bytes, make_png((1, 1, 1), fmt="JPEG"))

    contents = models.requests[0]["contents"]
    assert len(contents) == 3
    assert contents[0].inline_data.mime_type == "image/png"
    assert contents[1].inline_data.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_pose_variation_includes_instruction(png_bytes):
    generation, models = make_client(image_response(make_png()))

    await generation.pose_variation(png_bytes, "Side profile view")

    assert '"Side profile view"' in models.requests[0]["contents"][-1]


def test_create_generation_client_requires_key():
    assert create_generation_client(Settings()) is None


def test_create_generation_client_with_claude_palette():
    settings = Settings(gemini_api_key="g-key", anthropic_api_key="a-key", palette_provider="auto")

    generation = create_generation_client(settings)

    assert generation is not None
    assert generation.palette_advisor is not None
    assert generation.palette_advisor.model == settings.claude_model


def test_create_generation_client_gemini_palette():
    settings = Settings(gemini_api_key="g-key", anthropic_api_key="a-key", palette_provider="gemini")

    assert create_generation_client(settings).palette_advisor is None

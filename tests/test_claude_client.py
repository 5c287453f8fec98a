"""
Tests for the Claude palette advisor wrapper.
"""
from types import SimpleNamespace

import pytest

from swatch.config import Settings
from swatch.services.claude_client import ClaudeClient, create_claude_client, strip_code_fence


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence("```\n[]\n```") == "[]"
    assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


def test_create_claude_client():
    assert create_claude_client(Settings()) is None
    client = create_claude_client(Settings(anthropic_api_key="key", claude_model="claude-test"))
    assert client.model == "claude-test"


@pytest.mark.asyncio
async def test_analyze_image_sends_image_block(png_bytes):
    requests = []

    async def create(**kwargs):
        requests.append(kwargs)
        return SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='```json\n{"colors": '),
                SimpleNamespace(type="text", text='["#112233"]}\n```'),
            ]
        )

    claude = ClaudeClient(api_key="key", model="claude-test")
    claude.client = SimpleNamespace(messages=SimpleNamespace(create=create))

    text = await claude.analyze_image(png_bytes, "Suggest colors", media_type="image/tiff")

    assert text == '{"colors": ["#112233"]}'
    request = requests[0]
    assert request["model"] == "claude-test"
    image_block, text_block = request["messages"][0]["content"]
    assert image_block["source"]["media_type"] == "image/png"
    assert text_block == {"type": "text", "text": "Suggest colors"}


@pytest.mark.asyncio
async def test_analyze_image_reraises_api_errors(png_bytes):
    async def create(**kwargs):
        raise RuntimeError("overloaded")

    claude = ClaudeClient(api_key="key")
    claude.client = SimpleNamespace(messages=SimpleNamespace(create=create))

    with pytest.raises(RuntimeError, match="overloaded"):
        await claude.analyze_image(png_bytes, "Suggest colors")

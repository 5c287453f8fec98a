"""
Shared fixtures for the swatch sidecar tests.
"""
import pytest
from fastapi.testclient import TestClient

from fakes import FakeGenerator, make_png
from swatch.config import Settings
from swatch.models.garment import Garment
from swatch.server import create_app
from swatch.services.materializer import Materializer, to_data_url


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def garment(png_bytes):
    """A garment whose image lives in a data URL, so no network is needed."""
    return Garment(
        id="tee-01",
        name="Linen Tee",
        url=to_data_url(png_bytes),
        description="Relaxed linen t-shirt",
        brand="Atelier",
    )


@pytest.fixture
def materializer():
    return Materializer()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def app(fake_generator, materializer):
    return create_app(
        settings=Settings(gemini_api_key="test-key"),
        generation_client=fake_generator,
        materializer=materializer,
    )


@pytest.fixture
def test_client(app):
    """Create test client for the FastAPI app."""
    return TestClient(app)

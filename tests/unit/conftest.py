"""Shared fixtures for unit tests.

Unit tests never reach the network: every generation call is patched. The
shared config object is pinned to known values so a local .env cannot change
pipeline behavior under test.
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from src.utils.config import config

# Minimal magic-byte payload; filetype only inspects the header
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


@pytest.fixture(autouse=True)
def pinned_config(monkeypatch):
    """Pin configuration values that change pipeline behavior."""
    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(config, "ENABLE_IMAGE_GENERATION", True)
    monkeypatch.setattr(config, "SUGGESTION_IMAGE_MODE", "background")
    monkeypatch.setattr(config, "RECIPE_IMAGE_SOURCE", "generate")
    monkeypatch.setattr(config, "MAX_SUGGESTIONS", 10)
    monkeypatch.setattr(config, "COMPRESS_IMG", True)
    monkeypatch.setattr(config, "COMPRESS_IMG_THRESHOLD_KB", 300)
    monkeypatch.setattr(config, "MAX_IMAGE_SIZE_MB", 5)
    return config


@pytest.fixture
def png_data_uri():
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def small_image():
    """A real 16x12 RGB image."""
    return Image.new("RGB", (16, 12), (200, 80, 40))


@pytest.fixture
def jpeg_bytes(small_image):
    output = BytesIO()
    small_image.save(output, format="JPEG")
    return output.getvalue()

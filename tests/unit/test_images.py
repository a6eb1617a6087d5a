"""Unit tests for image intake helpers.

Tests cover:
- Data URI encoding/decoding
- Image fetching from bytes, data URIs, base64 and URLs
- Format and size validation
- Compression and frame encoding with Pillow
"""

import base64
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from PIL import Image

from src.utils.config import config
from src.utils.images import (
    compress_image,
    decode_data_uri,
    encode_data_uri,
    encode_frame,
    fetch_image_bytes,
    get_image_bytes_from_source,
    guess_mime_type,
    validate_image_format,
    validate_image_size,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"


def png_image_bytes(size=(64, 32), mode="RGBA") -> bytes:
    output = BytesIO()
    Image.new(mode, size, (10, 120, 30, 128) if mode == "RGBA" else (10, 120, 30)).save(output, format="PNG")
    return output.getvalue()


class TestDataUri:
    """Test data URI helpers."""

    def test_decode_returns_mime_and_payload(self):
        uri = encode_data_uri(b"hello", "image/png")
        assert uri.startswith("data:image/png;base64,")
        assert decode_data_uri(uri) == ("image/png", b"hello")

    @pytest.mark.parametrize(
        "value",
        ["https://example.com/a.png", "data:image/png,plain", "data:image/png;base64,@@not-base64@@"],
    )
    def test_decode_rejects_invalid_uris(self, value):
        with pytest.raises(ValueError):
            decode_data_uri(value)


class TestFetchImageBytes:
    """Test image fetching from the supported source kinds."""

    @pytest.mark.asyncio
    async def test_bytes_returned_as_is(self):
        assert await fetch_image_bytes(PNG_BYTES) == PNG_BYTES

    @pytest.mark.asyncio
    async def test_data_uri_decoded(self, png_data_uri):
        assert await fetch_image_bytes(png_data_uri) == PNG_BYTES

    @pytest.mark.asyncio
    async def test_invalid_data_uri_returns_none(self):
        assert await fetch_image_bytes("data:image/png;base64,@@@") is None

    @pytest.mark.asyncio
    @patch("src.utils.images.aiohttp.ClientSession")
    async def test_url_fetched(self, mock_session_class):
        response = MagicMock()
        response.read = AsyncMock(return_value=JPEG_BYTES)
        session = MagicMock()
        session.get.return_value.__aenter__.return_value = response
        mock_session_class.return_value.__aenter__.return_value = session

        result = await fetch_image_bytes("https://example.com/fridge.jpg")

        assert result == JPEG_BYTES
        session.get.assert_called_once()
        response.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    @patch("src.utils.images.aiohttp.ClientSession")
    async def test_url_failure_returns_none(self, mock_session_class):
        session = MagicMock()
        session.get.side_effect = aiohttp.ClientError("connection refused")
        mock_session_class.return_value.__aenter__.return_value = session

        assert await fetch_image_bytes("https://example.com/missing.jpg") is None

    @pytest.mark.asyncio
    async def test_plain_base64_source(self):
        encoded = base64.b64encode(JPEG_BYTES).decode("ascii")
        assert await get_image_bytes_from_source(encoded) == JPEG_BYTES

    @pytest.mark.asyncio
    async def test_invalid_plain_base64_returns_none(self):
        assert await get_image_bytes_from_source("not base64 at all!") is None


class TestValidation:
    """Test format and size validation."""

    def test_guess_mime_type(self):
        assert guess_mime_type(JPEG_BYTES) == "image/jpeg"
        assert guess_mime_type(PNG_BYTES) == "image/png"
        assert guess_mime_type(b"GIF89a\x01\x00") is None

    def test_valid_formats(self):
        assert validate_image_format(JPEG_BYTES) is True
        assert validate_image_format(PNG_BYTES) is True

    def test_invalid_format(self):
        assert validate_image_format(b"not an image") is False

    def test_empty_bytes(self):
        assert validate_image_format(b"") is False

    def test_size_within_limit(self):
        assert validate_image_size(b"\x00" * 1024) is True

    def test_size_over_limit(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_IMAGE_SIZE_MB", 1)
        assert validate_image_size(b"\x00" * (1024 * 1024 + 1)) is False


class TestCompression:
    """Test Pillow recompression."""

    def test_small_image_untouched(self):
        data = png_image_bytes()
        assert compress_image(data) is data

    def test_compresses_to_jpeg_and_resizes(self, monkeypatch):
        monkeypatch.setattr(config, "COMPRESS_IMG_THRESHOLD_KB", 0)

        result = compress_image(png_image_bytes(size=(64, 32)), max_width=32)

        assert guess_mime_type(result) == "image/jpeg"
        with Image.open(BytesIO(result)) as img:
            assert img.size == (32, 16)

    def test_undecodable_image_returned_unchanged(self, monkeypatch):
        monkeypatch.setattr(config, "COMPRESS_IMG_THRESHOLD_KB", 0)
        assert compress_image(PNG_BYTES) == PNG_BYTES


class TestEncodeFrame:
    def test_rgba_frame_encoded_as_jpeg(self):
        frame = Image.new("RGBA", (8, 8), (255, 0, 0, 100))

        uri = encode_frame(frame)

        mime, payload = decode_data_uri(uri)
        assert mime == "image/jpeg"
        assert guess_mime_type(payload) == "image/jpeg"

"""Image intake helpers shared by the camera adapters and the generation client.

Images cross every boundary as base64 data URIs. This module converts between
data URIs, raw bytes and Pillow images, validates what the vision model will
accept, and recompresses oversized frames.

Core Functions:
- encode_data_uri() / decode_data_uri(): bytes <-> "data:<mime>;base64,<data>"
- fetch_image_bytes(): Get image bytes from URL, data URI or bytes (async)
- get_image_bytes_from_source(): Also accepts plain base64 strings (async)
- validate_image_format(): JPEG/PNG only, by magic bytes
- validate_image_size(): MAX_IMAGE_SIZE_MB limit
- compress_image(): JPEG recompression with Pillow
- encode_frame(): Pillow image -> JPEG data URI
"""

import base64
import binascii
from io import BytesIO
from typing import Optional

import aiohttp
import filetype
from PIL import Image

from src.utils.config import config
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_async, safe_execute_sync


def encode_data_uri(data: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its MIME type and decoded payload.

    Args:
        data_uri: String of the form "data:<mimetype>;base64,<encoded_data>".

    Returns:
        Tuple of (mime_type, payload_bytes).

    Raises:
        ValueError: If the string is not a base64 data URI or the payload is not valid base64.
    """
    if not data_uri.startswith("data:") or "," not in data_uri:
        raise ValueError("Expected a data URI: 'data:<mimetype>;base64,<encoded_data>'")

    header, encoded = data_uri[len("data:"):].split(",", 1)
    if not header.endswith(";base64"):
        raise ValueError("Only base64-encoded data URIs are supported")

    mime_type = header[: -len(";base64")] or "application/octet-stream"
    try:
        payload = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}") from e
    return mime_type, payload


async def fetch_image_bytes(image_source: str | bytes) -> Optional[bytes]:
    """Fetch image bytes from URL or return directly if bytes.

    Handles multiple image source formats:
    - Direct bytes: Returned as-is
    - HTTP/HTTPS URLs: Fetched asynchronously (10s timeout)
    - Data URIs (data:image/jpeg;base64,...): Decoded from base64

    Args:
        image_source: Either a URL string (http/https/data URI) or bytes object.

    Returns:
        Image bytes if fetch successful, None on any failure (logged as warning).
    """
    if isinstance(image_source, bytes):
        return image_source

    if isinstance(image_source, str):
        if image_source.startswith("data:"):
            return safe_execute_sync(
                lambda: decode_data_uri(image_source)[1],
                "Decode data URI",
                log_level="warning",
                default_return=None,
            )

        async def _fetch_url():
            async with aiohttp.ClientSession() as session:
                async with session.get(image_source, timeout=aiohttp.ClientTimeout(total=10)) as response:
                    response.raise_for_status()
                    return await response.read()

        return await safe_execute_async(
            _fetch_url(),
            f"Fetch image from URL: {image_source}",
            log_level="warning",
            default_return=None,
        )

    return None


async def get_image_bytes_from_source(image_source: str | bytes) -> Optional[bytes]:
    """Extract image bytes from a URL, data URI, plain base64 string or bytes.

    Returns:
        Image bytes or None if extraction/fetch failed.
    """
    if isinstance(image_source, str) and not image_source.startswith(("http://", "https://", "data:")):
        return safe_execute_sync(
            lambda: base64.b64decode(image_source, validate=True),
            "Decode base64 image string",
            log_level="warning",
            default_return=None,
        )
    return await fetch_image_bytes(image_source)


def guess_mime_type(image_bytes: bytes) -> Optional[str]:
    """Return "image/jpeg" or "image/png" from magic bytes, None for anything else."""
    kind = filetype.guess(image_bytes)
    if kind is None:
        return None
    if kind.extension in ("jpg", "jpeg"):
        return "image/jpeg"
    if kind.extension == "png":
        return "image/png"
    return None


def validate_image_format(image_bytes: bytes) -> bool:
    """Validate image format (JPEG or PNG only).

    Uses filetype library to detect actual file format from magic bytes,
    not from extension.

    Args:
        image_bytes: Raw image bytes.

    Returns:
        True if valid format, False otherwise.
    """
    if guess_mime_type(image_bytes) is None:
        logger.warning(f"Invalid image format: {filetype.guess(image_bytes)}. Only JPEG and PNG supported.")
        return False
    return True


def validate_image_size(image_bytes: bytes) -> bool:
    """Validate image size against MAX_IMAGE_SIZE_MB.

    Args:
        image_bytes: Raw image bytes.

    Returns:
        True if size valid, False if exceeds limit.
    """
    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > config.MAX_IMAGE_SIZE_MB:
        logger.warning(f"Image size {size_mb:.2f}MB exceeds limit of {config.MAX_IMAGE_SIZE_MB}MB")
        return False
    return True


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel; flatten onto white
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        rgb_img = Image.new("RGB", img.size, (255, 255, 255))
        rgb_img.paste(img, mask=img.split()[-1])
        return rgb_img
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def compress_image(image_bytes: bytes, max_width: int = 1024) -> bytes:
    """Compress image for API transmission using Pillow.

    Uses JPEG format with quality=85 + optimize + progressive. Resizes oversized
    images and converts color modes to RGB. Images below COMPRESS_IMG_THRESHOLD_KB
    are returned untouched.

    Args:
        image_bytes: Raw image bytes to compress
        max_width: Maximum image width in pixels

    Returns:
        Compressed image bytes (or original if below threshold or compression failed)
    """
    size_kb = len(image_bytes) / 1024
    if size_kb < config.COMPRESS_IMG_THRESHOLD_KB:
        logger.debug(
            f"Image size {size_kb:.1f}KB below compression threshold "
            f"({config.COMPRESS_IMG_THRESHOLD_KB}KB), skipping compression"
        )
        return image_bytes

    def _compress():
        img = _to_rgb(Image.open(BytesIO(image_bytes)))

        if img.width > max_width:
            ratio = max_width / img.width
            img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="JPEG", quality=85, optimize=True, progressive=True)
        compressed_bytes = output.getvalue()

        logger.debug(
            f"Image compressed: {size_kb:.1f}KB → {len(compressed_bytes) / 1024:.1f}KB"
        )
        return compressed_bytes

    return safe_execute_sync(_compress, "Image compression", log_level="warning", default_return=image_bytes)


def encode_frame(frame: Image.Image, quality: Optional[int] = None) -> str:
    """Encode a captured frame as a JPEG data URI.

    Args:
        frame: Pillow image holding the current camera frame.
        quality: JPEG quality, defaults to CAPTURE_JPEG_QUALITY.

    Returns:
        "data:image/jpeg;base64,..." string.
    """
    output = BytesIO()
    _to_rgb(frame).save(output, format="JPEG", quality=quality or config.CAPTURE_JPEG_QUALITY)
    return encode_data_uri(output.getvalue(), "image/jpeg")

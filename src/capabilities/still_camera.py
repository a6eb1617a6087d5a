"""Camera backend that serves still images.

Each image source (file path, http(s) URL, data URI, plain base64 or raw bytes)
is exposed as one video input, so the pipeline can run from the command line
and in tests without a physical camera.
"""

import asyncio
import os
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence

from PIL import Image

from src.capabilities.camera import CameraBackend, StreamHandle, VideoDevice
from src.utils.images import get_image_bytes_from_source, validate_image_format, validate_image_size
from src.utils.logger import logger


class StillImageStream(StreamHandle):
    def __init__(self, image: Image.Image) -> None:
        self._image: Optional[Image.Image] = image

    def is_ready(self) -> bool:
        return self._image is not None

    def read_frame(self) -> Optional[Image.Image]:
        return self._image.copy() if self._image is not None else None

    def release(self) -> None:
        if self._image is not None:
            self._image.close()
            self._image = None


class StillImageBackend(CameraBackend):
    def __init__(self, sources: Sequence[str | bytes]) -> None:
        self._sources = list(sources)

    async def enumerate_video_inputs(self) -> List[VideoDevice]:
        return [
            VideoDevice(device_id=f"still-{index}", label=self._label(index, source))
            for index, source in enumerate(self._sources)
        ]

    async def acquire_stream(self, device_id: Optional[str], facing: Optional[str] = None) -> StillImageStream:
        index = self._index(device_id)
        image_bytes = await self._load(self._sources[index])
        if image_bytes is None:
            raise IOError(f"Could not load image for {device_id or 'default camera'}")
        if not validate_image_format(image_bytes):
            raise ValueError("Invalid image format. Only JPEG and PNG are supported")
        if not validate_image_size(image_bytes):
            raise ValueError("Image too large")

        image = Image.open(BytesIO(image_bytes))
        image.load()
        logger.debug(f"Opened still image {index} ({image.width}x{image.height})")
        return StillImageStream(image)

    def release_stream(self, handle: StreamHandle) -> None:
        if isinstance(handle, StillImageStream):
            handle.release()

    def _index(self, device_id: Optional[str]) -> int:
        if not self._sources:
            raise IOError("No image sources configured")
        if device_id is None:
            return 0
        try:
            index = int(device_id.removeprefix("still-"))
        except ValueError:
            raise ValueError(f"Unknown device: {device_id}") from None
        if not 0 <= index < len(self._sources):
            raise ValueError(f"Unknown device: {device_id}")
        return index

    @staticmethod
    def _label(index: int, source: str | bytes) -> str:
        if isinstance(source, str):
            if source.startswith(("http://", "https://")):
                return source
            if not source.startswith("data:") and Path(source).suffix:
                return Path(source).name
        return f"Image {index + 1}"

    @staticmethod
    async def _load(source: str | bytes) -> Optional[bytes]:
        if isinstance(source, str) and not source.startswith(("http://", "https://", "data:")):
            if os.path.isfile(source):
                return await asyncio.to_thread(Path(source).read_bytes)
        return await get_image_bytes_from_source(source)

"""Camera adapter: device enumeration, default selection, stream lifecycle and frame capture.

The platform media APIs are reached through an injected CameraBackend. The
adapter owns the one open stream and guarantees it is released on every
disable, switch and close path, including streams that finish opening after
the camera was switched or turned off.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from PIL import Image

from src.pipeline.state import Notice, NoticeSink, log_notice
from src.utils.images import encode_frame
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_sync

DESKTOP_PREFERRED_LABELS = ("built-in", "integrated", "facetime")
MOBILE_PREFERRED_LABELS = ("back", "rear", "environment")
ENVIRONMENT_FACING = "environment"


@dataclass(frozen=True)
class VideoDevice:
    device_id: str
    label: str = ""


class StreamHandle(ABC):
    """An open camera stream."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the stream delivers frames."""

    @abstractmethod
    def read_frame(self) -> Optional[Image.Image]:
        """Return the current frame, or None when no frame is available."""


class CameraBackend(ABC):
    """Platform camera access."""

    def is_mobile(self) -> bool:
        return False

    @abstractmethod
    async def enumerate_video_inputs(self) -> List[VideoDevice]:
        ...

    @abstractmethod
    async def acquire_stream(self, device_id: Optional[str], facing: Optional[str] = None) -> StreamHandle:
        """Open a stream. `device_id=None` asks for any camera (optionally by facing mode)."""

    @abstractmethod
    def release_stream(self, handle: StreamHandle) -> None:
        ...


@dataclass
class CameraState:
    devices: List[VideoDevice] = field(default_factory=list)
    selected_device_id: Optional[str] = None
    is_on: bool = False


def choose_default_device(devices: List[VideoDevice], is_mobile: bool) -> Optional[VideoDevice]:
    """Pick the default camera.

    Desktop prefers the built-in webcam; mobile prefers the rear camera.
    Falls back to the first device.
    """
    if not devices:
        return None
    keywords = MOBILE_PREFERRED_LABELS if is_mobile else DESKTOP_PREFERRED_LABELS
    for device in devices:
        label = device.label.lower()
        if any(keyword in label for keyword in keywords):
            return device
    return devices[0]


class Camera:
    """Camera adapter with an explicit on/off lifecycle."""

    def __init__(self, backend: CameraBackend, notify: Optional[NoticeSink] = None) -> None:
        self.backend = backend
        self.state = CameraState()
        self._notify = notify or log_notice
        self._is_mobile = bool(safe_execute_sync(backend.is_mobile, "Probe mobile platform", default_return=False))
        self._stream: Optional[StreamHandle] = None
        # Bumped on every selection/lifecycle change; stale acquisitions compare against it
        self._epoch = 0

    @property
    def is_on(self) -> bool:
        return self.state.is_on

    @property
    def devices(self) -> List[VideoDevice]:
        return list(self.state.devices)

    @property
    def selected_device_id(self) -> Optional[str]:
        return self.state.selected_device_id

    @property
    def has_stream(self) -> bool:
        return self._stream is not None

    async def set_enabled(self, enabled: bool) -> bool:
        """Turn the camera on or off. Returns True when the requested state was reached."""
        if not enabled:
            self._turn_off()
            return True
        if self.state.is_on and self._stream is not None:
            return True

        self.state.is_on = True
        epoch = self._bump()
        try:
            devices = await self.backend.enumerate_video_inputs()
        except Exception as e:
            return self._acquisition_failed(epoch, e)
        if epoch != self._epoch:
            return False

        self.state.devices = list(devices)
        device, by_default = self._repair_selection()
        if device is None:
            return self._acquisition_failed(epoch, "no video input devices found")
        return await self._open(epoch, device, by_default)

    async def switch_to_next(self) -> bool:
        """Select the next camera cyclically and restart capture on it."""
        devices = self.state.devices
        if len(devices) < 2:
            self._notify(Notice("No other camera", "Only one camera was found on this device."))
            return False

        ids = [device.device_id for device in devices]
        current = ids.index(self.state.selected_device_id) if self.state.selected_device_id in ids else -1
        device = devices[(current + 1) % len(devices)]
        self.state.selected_device_id = device.device_id
        logger.info(f"Switching camera to {device.label or device.device_id}")

        if not self.state.is_on:
            return True
        epoch = self._bump()
        self._release_current()
        return await self._open(epoch, device, by_default=False)

    async def refresh_devices(self) -> bool:
        """Re-enumerate devices (e.g. after a device was unplugged) and repair the selection."""
        if not self.state.is_on:
            return False
        epoch = self._epoch
        try:
            devices = await self.backend.enumerate_video_inputs()
        except Exception as e:
            logger.warning(f"Camera enumeration failed: {e}")
            return False
        if epoch != self._epoch or not self.state.is_on:
            return False

        previous = self.state.selected_device_id
        self.state.devices = list(devices)
        device, by_default = self._repair_selection()
        if device is None:
            return self._acquisition_failed(self._epoch, "no video input devices found")
        if device.device_id == previous and self._stream is not None:
            return True

        epoch = self._bump()
        self._release_current()
        return await self._open(epoch, device, by_default)

    def capture_frame(self) -> Optional[str]:
        """Return the current frame as a JPEG data URI, or None when no frame is available."""
        stream = self._stream
        if stream is None or not self.state.is_on or not stream.is_ready():
            return None
        frame = stream.read_frame()
        if frame is None:
            return None
        return encode_frame(frame)

    def close(self) -> None:
        self._turn_off()

    def _bump(self) -> int:
        self._epoch += 1
        return self._epoch

    def _repair_selection(self) -> tuple[Optional[VideoDevice], bool]:
        """Keep the selection if still present, otherwise apply the default policy."""
        for device in self.state.devices:
            if device.device_id == self.state.selected_device_id:
                return device, False
        device = choose_default_device(self.state.devices, self._is_mobile)
        self.state.selected_device_id = device.device_id if device else None
        return device, True

    async def _open(self, epoch: int, device: VideoDevice, by_default: bool) -> bool:
        try:
            stream = await self._acquire(device, by_default)
        except Exception as e:
            return self._acquisition_failed(epoch, e)

        if epoch != self._epoch or not self.state.is_on:
            # Selection changed or camera turned off while the stream was opening
            logger.debug(f"Releasing stale stream for {device.device_id}")
            self._release(stream)
            return False

        self._stream = stream
        logger.info(f"Camera on: {device.label or device.device_id}")
        return True

    async def _acquire(self, device: VideoDevice, by_default: bool) -> StreamHandle:
        if not (self._is_mobile and by_default):
            return await self.backend.acquire_stream(device.device_id)
        try:
            return await self.backend.acquire_stream(device.device_id, facing=ENVIRONMENT_FACING)
        except Exception as e:
            logger.debug(f"Environment-facing camera unavailable ({e}), falling back to any camera")
            return await self.backend.acquire_stream(None)

    def _acquisition_failed(self, epoch: int, error: Exception | str) -> bool:
        if epoch != self._epoch:
            return False
        logger.error(f"Error accessing webcam: {error}")
        self._notify(
            Notice(
                "Webcam Error",
                "Could not access the webcam. Please check permissions and try again.",
                level="error",
            )
        )
        self._turn_off()
        return False

    def _turn_off(self) -> None:
        self._bump()
        self._release_current()
        self.state.is_on = False
        self.state.devices = []
        self.state.selected_device_id = None

    def _release_current(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            self._release(stream)

    def _release(self, stream: StreamHandle) -> None:
        safe_execute_sync(lambda: self.backend.release_stream(stream), "Release camera stream")

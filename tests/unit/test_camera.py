"""Unit tests for the camera adapter and the still-image backend.

Tests cover:
- Default device policy (desktop built-in, mobile rear with environment facing)
- Stream release on disable, switch and close
- Streams that finish opening after a switch/disable are released
- Selection repair after device changes
- Acquisition failure notices
"""

import asyncio
import base64
from unittest.mock import Mock

import pytest
from PIL import Image

from src.capabilities.camera import Camera, CameraBackend, StreamHandle, VideoDevice, choose_default_device
from src.capabilities.still_camera import StillImageBackend
from src.utils.images import decode_data_uri, guess_mime_type


class FakeStream(StreamHandle):
    def __init__(self, device_id, ready=True):
        self.device_id = device_id
        self.ready = ready

    def is_ready(self):
        return self.ready

    def read_frame(self):
        return Image.new("RGB", (8, 8), (0, 128, 0))


class FakeBackend(CameraBackend):
    def __init__(self, devices, mobile=False):
        self.devices = list(devices)
        self.mobile = mobile
        self.acquired = []
        self.released = []
        self.fail_facing = False
        self.fail_all = False
        self.gate = None

    def is_mobile(self):
        return self.mobile

    async def enumerate_video_inputs(self):
        return list(self.devices)

    async def acquire_stream(self, device_id, facing=None):
        self.acquired.append((device_id, facing))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_all or (facing and self.fail_facing):
            raise PermissionError("NotAllowedError")
        return FakeStream(device_id)

    def release_stream(self, handle):
        self.released.append(handle)


DESKTOP_DEVICES = [
    VideoDevice("usb", "USB Camera"),
    VideoDevice("builtin", "FaceTime HD Camera (Built-in)"),
]


@pytest.fixture
def notices():
    return []


class TestChooseDefaultDevice:
    """Test the default camera policy."""

    def test_desktop_prefers_built_in(self):
        assert choose_default_device(DESKTOP_DEVICES, is_mobile=False).device_id == "builtin"

    @pytest.mark.parametrize("label", ["Integrated Webcam", "FaceTime HD Camera", "Built-in camera"])
    def test_desktop_keywords(self, label):
        devices = [VideoDevice("a", "External"), VideoDevice("b", label)]
        assert choose_default_device(devices, is_mobile=False).device_id == "b"

    def test_mobile_prefers_rear(self):
        devices = [VideoDevice("front", "Front Camera"), VideoDevice("back", "Back Camera")]
        assert choose_default_device(devices, is_mobile=True).device_id == "back"

    def test_falls_back_to_first(self):
        devices = [VideoDevice("a", "Cam A"), VideoDevice("b", "Cam B")]
        assert choose_default_device(devices, is_mobile=False).device_id == "a"

    def test_no_devices(self):
        assert choose_default_device([], is_mobile=True) is None


class TestCameraLifecycle:
    """Test enable/disable/switch/close."""

    @pytest.mark.asyncio
    async def test_enable_selects_default_and_opens_stream(self, notices):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=notices.append)

        assert await camera.set_enabled(True) is True

        assert camera.is_on
        assert camera.selected_device_id == "builtin"
        assert backend.acquired == [("builtin", None)]
        assert camera.has_stream

    @pytest.mark.asyncio
    async def test_capture_frame_returns_jpeg_data_uri(self):
        camera = Camera(FakeBackend(DESKTOP_DEVICES), notify=Mock())
        await camera.set_enabled(True)

        mime, payload = decode_data_uri(camera.capture_frame())

        assert mime == "image/jpeg"
        assert guess_mime_type(payload) == "image/jpeg"

    @pytest.mark.asyncio
    async def test_capture_frame_none_when_off_or_not_ready(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        assert camera.capture_frame() is None

        await camera.set_enabled(True)
        camera._stream.ready = False
        assert camera.capture_frame() is None

    @pytest.mark.asyncio
    async def test_disable_releases_and_clears(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)
        stream = camera._stream

        await camera.set_enabled(False)

        assert backend.released == [stream]
        assert not camera.is_on
        assert camera.devices == []
        assert camera.selected_device_id is None
        assert camera.capture_frame() is None

    @pytest.mark.asyncio
    async def test_switch_cycles_and_restarts(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)
        first_stream = camera._stream

        assert await camera.switch_to_next() is True
        assert camera.selected_device_id == "usb"
        assert backend.released == [first_stream]

        await camera.switch_to_next()
        assert camera.selected_device_id == "builtin"
        assert [device_id for device_id, _ in backend.acquired] == ["builtin", "usb", "builtin"]

    @pytest.mark.asyncio
    async def test_switch_with_single_device_is_noop(self, notices):
        backend = FakeBackend([VideoDevice("only", "Webcam")])
        camera = Camera(backend, notify=notices.append)
        await camera.set_enabled(True)

        assert await camera.switch_to_next() is False

        assert notices[-1].title == "No other camera"
        assert backend.released == []
        assert camera.selected_device_id == "only"

    @pytest.mark.asyncio
    async def test_close_releases_stream(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)

        camera.close()

        assert len(backend.released) == 1
        assert not camera.is_on


class TestStaleAcquisition:
    """Streams that open after the target changed are released immediately."""

    @pytest.mark.asyncio
    async def test_disable_during_acquisition(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        backend.gate = asyncio.Event()
        camera = Camera(backend, notify=Mock())

        task = asyncio.create_task(camera.set_enabled(True))
        await asyncio.sleep(0)
        await camera.set_enabled(False)
        backend.gate.set()

        assert await task is False
        assert len(backend.released) == 1
        assert not camera.has_stream
        assert not camera.is_on

    @pytest.mark.asyncio
    async def test_switch_during_acquisition(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)

        backend.gate = asyncio.Event()
        first_switch = asyncio.create_task(camera.switch_to_next())
        await asyncio.sleep(0)
        second_switch = asyncio.create_task(camera.switch_to_next())
        await asyncio.sleep(0)
        backend.gate.set()

        assert await first_switch is False
        assert await second_switch is True
        assert camera.selected_device_id == "builtin"
        assert camera._stream.device_id == "builtin"
        # initial stream plus the stale "usb" stream
        assert [s.device_id for s in backend.released] == ["builtin", "usb"]


class TestSelectionRepair:
    @pytest.mark.asyncio
    async def test_unplugged_selection_replaced(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)
        assert camera.selected_device_id == "builtin"

        backend.devices = [VideoDevice("usb", "USB Camera")]
        assert await camera.refresh_devices() is True

        assert camera.selected_device_id == "usb"
        assert camera._stream.device_id == "usb"
        assert camera.selected_device_id in [d.device_id for d in camera.devices]

    @pytest.mark.asyncio
    async def test_present_selection_kept(self):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=Mock())
        await camera.set_enabled(True)
        await camera.switch_to_next()

        backend.devices = DESKTOP_DEVICES + [VideoDevice("new", "Another Camera")]
        await camera.refresh_devices()

        assert camera.selected_device_id == "usb"
        assert len(backend.acquired) == 2

    @pytest.mark.asyncio
    async def test_all_devices_gone_turns_off(self, notices):
        backend = FakeBackend(DESKTOP_DEVICES)
        camera = Camera(backend, notify=notices.append)
        await camera.set_enabled(True)

        backend.devices = []
        assert await camera.refresh_devices() is False

        assert not camera.is_on
        assert notices[-1].title == "Webcam Error"


class TestMobileAndFailures:
    @pytest.mark.asyncio
    async def test_mobile_requests_environment_facing(self):
        backend = FakeBackend([VideoDevice("front", "Front Camera"), VideoDevice("rear", "Rear Camera")], mobile=True)
        camera = Camera(backend, notify=Mock())

        await camera.set_enabled(True)

        assert camera.selected_device_id == "rear"
        assert backend.acquired == [("rear", "environment")]

    @pytest.mark.asyncio
    async def test_mobile_falls_back_to_any_camera(self):
        backend = FakeBackend([VideoDevice("front", "Front Camera")], mobile=True)
        backend.fail_facing = True
        camera = Camera(backend, notify=Mock())

        assert await camera.set_enabled(True) is True

        assert backend.acquired == [("front", "environment"), (None, None)]
        assert camera.has_stream

    @pytest.mark.asyncio
    async def test_acquisition_failure_turns_camera_off(self, notices):
        backend = FakeBackend(DESKTOP_DEVICES)
        backend.fail_all = True
        camera = Camera(backend, notify=notices.append)

        assert await camera.set_enabled(True) is False

        assert not camera.is_on
        assert notices[-1].title == "Webcam Error"
        assert notices[-1].level == "error"

    @pytest.mark.asyncio
    async def test_no_devices(self, notices):
        camera = Camera(FakeBackend([]), notify=notices.append)

        assert await camera.set_enabled(True) is False
        assert notices[-1].title == "Webcam Error"


class TestStillImageBackend:
    """Test the still-image camera backend."""

    @pytest.mark.asyncio
    async def test_images_as_devices(self, tmp_path, jpeg_bytes):
        image_path = tmp_path / "fridge.jpg"
        image_path.write_bytes(jpeg_bytes)
        data_uri = "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")
        backend = StillImageBackend([str(image_path), data_uri])

        devices = await backend.enumerate_video_inputs()

        assert [d.device_id for d in devices] == ["still-0", "still-1"]
        assert devices[0].label == "fridge.jpg"
        assert devices[1].label == "Image 2"

    @pytest.mark.asyncio
    async def test_camera_over_still_images(self, tmp_path, jpeg_bytes):
        image_path = tmp_path / "pantry.jpg"
        image_path.write_bytes(jpeg_bytes)
        backend = StillImageBackend([str(image_path), jpeg_bytes])
        camera = Camera(backend, notify=Mock())

        assert await camera.set_enabled(True) is True
        frame = camera.capture_frame()
        assert frame.startswith("data:image/jpeg;base64,")

        await camera.switch_to_next()
        assert camera.selected_device_id == "still-1"
        assert camera.capture_frame() is not None

        camera.close()
        assert camera.capture_frame() is None

    @pytest.mark.asyncio
    async def test_unreadable_source_fails_acquisition(self, notices):
        camera = Camera(StillImageBackend([b"not an image"]), notify=notices.append)

        assert await camera.set_enabled(True) is False
        assert notices[-1].title == "Webcam Error"

    @pytest.mark.asyncio
    async def test_released_stream_yields_no_frames(self, jpeg_bytes):
        backend = StillImageBackend([jpeg_bytes])
        stream = await backend.acquire_stream(None)
        assert stream.is_ready()

        backend.release_stream(stream)

        assert not stream.is_ready()
        assert stream.read_frame() is None

"""Tests for the simulated session and the picamera2 adapter (with a mocked picamera2)."""
import sys
import threading
import types
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from squarecam.errors import CameraOpenFailure, PreviewStartFailure
from squarecam.flash import FlashMode
from squarecam.orientation import CameraFacing
from squarecam.session import Picamera2Session, SimulatedCameraSession, make_test_frame
from squarecam.sizes import Size


def test_make_test_frame_size_and_gradient():
    img = make_test_frame((64, 48))
    assert img.size == (64, 48)
    assert img.getpixel((0, 0))[0] < img.getpixel((63, 0))[0]
    assert img.getpixel((0, 0))[1] < img.getpixel((0, 47))[1]


def test_parameters_are_copies():
    session = SimulatedCameraSession(deliver_async=False)
    session.open(0)
    params = session.get_parameters()
    params.picture_size = Size(1, 1)
    assert session.get_parameters().picture_size != Size(1, 1)
    session.set_parameters(params)
    assert session.get_parameters().picture_size == Size(1, 1)


def test_back_camera_reports_flash_and_front_does_not():
    session = SimulatedCameraSession(deliver_async=False)
    session.open(0)
    assert session.get_parameters().supported_flash_modes == [FlashMode.OFF, FlashMode.AUTO, FlashMode.ON]
    session.close()
    session.open(1)
    assert session.get_parameters().supported_flash_modes == []
    assert session.camera_info(1).facing == CameraFacing.FRONT


def test_open_twice_without_release_fails():
    session = SimulatedCameraSession(deliver_async=False)
    session.open(0)
    with pytest.raises(CameraOpenFailure):
        session.open(1)


def test_unknown_camera_fails():
    session = SimulatedCameraSession(deliver_async=False)
    with pytest.raises(CameraOpenFailure):
        session.open(5)
    with pytest.raises(CameraOpenFailure):
        session.camera_info(5)


def test_take_picture_delivers_jpeg_at_picture_size():
    session = SimulatedCameraSession()
    session.open(0)
    params = session.get_parameters()
    params.picture_size = Size(320, 240)
    session.set_parameters(params)

    received = []
    session.take_picture(received.append)
    session.join()

    img = Image.open(BytesIO(received[0]))
    assert img.format == "JPEG"
    assert img.size == (320, 240)


def test_take_picture_uses_supplied_frame():
    frame = Image.new("RGB", (10, 10), color=(200, 0, 0))
    session = SimulatedCameraSession(frame=frame, picture_sizes=[(40, 30)], deliver_async=False)
    session.open(0)
    received = []
    session.take_picture(received.append)
    img = Image.open(BytesIO(received[0])).convert("RGB")
    assert img.size == (40, 30)
    assert img.getpixel((20, 15))[0] > 150


def test_preview_failure():
    session = SimulatedCameraSession(deliver_async=False)
    session.fail_preview = True
    session.open(0)
    with pytest.raises(PreviewStartFailure):
        session.start_preview()


# ---------------------------------------------------------------------------
# Picamera2 adapter
# ---------------------------------------------------------------------------

def _fake_picamera2(camera):
    module = types.ModuleType("picamera2")
    cls = MagicMock(return_value=camera)
    cls.global_camera_info.return_value = [
        {"Model": "imx708", "Location": 1, "Rotation": 180},
        {"Model": "ov5647", "Location": 0, "Rotation": 0},
    ]
    module.Picamera2 = cls
    return module


def test_picamera2_session_maps_camera_metadata():
    camera = MagicMock()
    camera.sensor_modes = [{"size": (1536, 864)}, {"size": (2304, 1296)}, {"size": (4608, 2592)}, {"size": (1536, 864)}]
    with patch.dict(sys.modules, {"picamera2": _fake_picamera2(camera)}):
        session = Picamera2Session()
        assert session.camera_count() == 2
        assert session.camera_info(0).facing == CameraFacing.BACK
        assert session.camera_info(0).orientation == 180
        assert session.camera_info(1).facing == CameraFacing.FRONT

        session.open(0)
        params = session.get_parameters()
        assert params.supported_picture_sizes == [Size(4608, 2592), Size(2304, 1296), Size(1536, 864)]
        assert params.supported_flash_modes == []

        session.start_preview()
        camera.configure.assert_called_once()
        camera.start.assert_called_once()

        session.close()
        camera.close.assert_called_once()


def test_picamera2_take_picture_delivers_bytes():
    camera = MagicMock()
    camera.sensor_modes = [{"size": (640, 480)}]

    def _capture(config, buf, format=None):
        Image.new("RGB", (640, 480)).save(buf, format="JPEG")

    camera.switch_mode_and_capture_file.side_effect = _capture

    with patch.dict(sys.modules, {"picamera2": _fake_picamera2(camera)}):
        session = Picamera2Session()
        session.open(0)
        session.start_preview()

        done = threading.Event()
        received = []

        def on_picture(data):
            received.append(data)
            done.set()

        session.take_picture(on_picture)
        assert done.wait(timeout=5.0)
        assert Image.open(BytesIO(received[0])).size == (640, 480)


def test_picamera2_missing_raises_open_failure():
    with patch.dict(sys.modules, {"picamera2": None}):
        with pytest.raises(CameraOpenFailure):
            Picamera2Session()

"""Camera session and display abstractions.

The controller only talks to hardware through `CameraSession` and
`DisplayProvider`. `SimulatedCameraSession` and `StaticDisplay` are used for
development and tests; `Picamera2Session` drives a Raspberry Pi camera.
"""
from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, List, Optional, Tuple

import numpy as np
from PIL import Image

from squarecam.config import DEFAULT_SIMULATION
from squarecam.errors import CameraOpenFailure, PreviewStartFailure
from squarecam.flash import FlashMode, to_flash_modes
from squarecam.orientation import CameraFacing, Rotation
from squarecam.sizes import Size, to_size, to_sizes

logger = logging.getLogger(__name__)

PictureCallback = Callable[[bytes], None]


@dataclass
class CameraInfo:
    facing: CameraFacing
    orientation: int  # sensor orientation in degrees


@dataclass
class CameraParameters:
    supported_preview_sizes: List[Size] = field(default_factory=list)
    supported_picture_sizes: List[Size] = field(default_factory=list)
    supported_flash_modes: List[FlashMode] = field(default_factory=list)
    preview_size: Optional[Size] = None
    picture_size: Optional[Size] = None
    flash_mode: Optional[FlashMode] = None


class CameraSession(ABC):
    """Hardware camera interface used by the controller."""

    @abstractmethod
    def camera_count(self) -> int:
        pass

    @abstractmethod
    def camera_info(self, camera_id: int) -> CameraInfo:
        pass

    @abstractmethod
    def open(self, camera_id: int) -> None:
        """Open a camera. Raises CameraOpenFailure."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def get_parameters(self) -> CameraParameters:
        """Return a copy of the open camera's parameters."""
        pass

    @abstractmethod
    def set_parameters(self, params: CameraParameters) -> None:
        pass

    def set_display_orientation(self, degrees: int) -> None:
        """Rotate the live preview; cameras without a preview surface may ignore it."""
        return None

    @abstractmethod
    def start_preview(self) -> None:
        """Start the preview stream. Raises PreviewStartFailure."""
        pass

    @abstractmethod
    def stop_preview(self) -> None:
        pass

    @abstractmethod
    def take_picture(self, callback: PictureCallback) -> None:
        """Request one still frame. `callback(data)` runs later on a camera thread."""
        pass


class DisplayProvider(ABC):
    """Display metadata: rotation, visible size and real size (in pixels)."""

    @abstractmethod
    def rotation(self) -> Rotation:
        pass

    @abstractmethod
    def size(self) -> Tuple[int, int]:
        pass

    def real_size(self) -> Tuple[int, int]:
        return self.size()


class StaticDisplay(DisplayProvider):
    """Display with fixed metadata; rotation and sizes can be changed by the caller."""

    def __init__(self, size: Tuple[int, int] = None, real_size: Tuple[int, int] = None, rotation: Rotation = Rotation.ROTATION_0):
        self._size = tuple(size or DEFAULT_SIMULATION["display_size"])
        self._real_size = tuple(real_size or self._size)
        self._rotation = rotation

    def set_rotation(self, rotation: Rotation):
        self._rotation = rotation

    def set_size(self, size: Tuple[int, int], real_size: Tuple[int, int] = None):
        self._size = tuple(size)
        self._real_size = tuple(real_size or size)

    def rotation(self) -> Rotation:
        return self._rotation

    def size(self) -> Tuple[int, int]:
        return self._size

    def real_size(self) -> Tuple[int, int]:
        return self._real_size


def make_test_frame(size: Tuple[int, int]) -> Image.Image:
    """Synthetic sensor frame: horizontal red and vertical green gradients."""
    w, h = size
    xs = np.linspace(0, 255, w, dtype=np.float32)
    ys = np.linspace(0, 255, h, dtype=np.float32)
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :, 0] = xs[np.newaxis, :].astype(np.uint8)
    arr[:, :, 1] = ys[:, np.newaxis].astype(np.uint8)
    arr[:, :, 2] = 128
    return Image.fromarray(arr, "RGB")


class SimulatedCameraSession(CameraSession):
    """In-memory camera session for development and tests.

    Usage: configure cameras and supported sizes at construction, then drive it
    through the controller. `take_picture` encodes `frame` (or a synthetic gradient)
    as JPEG at the configured picture size and delivers it on a background thread
    unless `deliver_async` is False. Set `frame_bytes` to deliver raw bytes as-is.
    """

    def __init__(
        self,
        cameras: Optional[List[CameraInfo]] = None,
        preview_sizes=None,
        picture_sizes=None,
        flash_modes=None,
        frame: Optional[Image.Image] = None,
        deliver_async: bool = True,
    ):
        if cameras is None:
            cameras = [CameraInfo(CameraFacing(c["facing"]), int(c["orientation"])) for c in DEFAULT_SIMULATION["cameras"]]
        self.cameras = cameras
        self.preview_sizes = to_sizes(preview_sizes if preview_sizes is not None else DEFAULT_SIMULATION["preview_sizes"])
        self.picture_sizes = to_sizes(picture_sizes if picture_sizes is not None else DEFAULT_SIMULATION["picture_sizes"])
        self.flash_modes = to_flash_modes(flash_modes if flash_modes is not None else DEFAULT_SIMULATION["flash_modes"])
        self.frame = frame
        self.frame_bytes: Optional[bytes] = None
        self.deliver_async = deliver_async

        self.fail_open = False
        self.fail_preview = False

        self.open_id: Optional[int] = None
        self.previewing = False
        self.display_orientation = 0
        self._params: Optional[CameraParameters] = None
        self.open_count = 0
        self.release_count = 0
        self._threads: List[threading.Thread] = []

    def camera_count(self) -> int:
        return len(self.cameras)

    def camera_info(self, camera_id: int) -> CameraInfo:
        if not 0 <= camera_id < len(self.cameras):
            raise CameraOpenFailure(camera_id, reason="no such camera")
        return self.cameras[camera_id]

    def open(self, camera_id: int) -> None:
        if self.open_id is not None:
            raise CameraOpenFailure(camera_id, reason=f"camera {self.open_id} still open")
        if self.fail_open or not 0 <= camera_id < len(self.cameras):
            raise CameraOpenFailure(camera_id, reason="simulated open failure")
        self.open_id = camera_id
        self.open_count += 1
        flash_modes = list(self.flash_modes) if self.cameras[camera_id].facing == CameraFacing.BACK else []
        self._params = CameraParameters(
            supported_preview_sizes=list(self.preview_sizes),
            supported_picture_sizes=list(self.picture_sizes),
            supported_flash_modes=flash_modes,
            preview_size=self.preview_sizes[0] if self.preview_sizes else None,
            picture_size=self.picture_sizes[0] if self.picture_sizes else None,
            flash_mode=FlashMode.OFF if flash_modes else None,
        )
        logger.info(f"Simulated camera {camera_id} opened")

    def close(self) -> None:
        if self.open_id is None:
            return
        self.previewing = False
        logger.info(f"Simulated camera {self.open_id} released")
        self.open_id = None
        self._params = None
        self.release_count += 1

    def _require_open(self):
        if self.open_id is None or self._params is None:
            raise RuntimeError("Camera is not open")

    def get_parameters(self) -> CameraParameters:
        self._require_open()
        return copy.deepcopy(self._params)

    def set_parameters(self, params: CameraParameters) -> None:
        self._require_open()
        self._params = copy.deepcopy(params)

    def set_display_orientation(self, degrees: int) -> None:
        self.display_orientation = degrees

    def start_preview(self) -> None:
        self._require_open()
        if self.fail_preview:
            raise PreviewStartFailure(self.open_id, reason="simulated preview failure")
        self.previewing = True

    def stop_preview(self) -> None:
        self.previewing = False

    def _encode_frame(self) -> bytes:
        if self.frame_bytes is not None:
            return self.frame_bytes
        size = self._params.picture_size or Size(640, 480)
        img = self.frame.resize(size.as_tuple()) if self.frame is not None else make_test_frame(size.as_tuple())
        buf = BytesIO()
        img.convert("RGB").save(buf, format="JPEG", quality=90)
        return buf.getvalue()

    def take_picture(self, callback: PictureCallback) -> None:
        self._require_open()
        data = self._encode_frame()
        if not self.deliver_async:
            callback(data)
            return
        t = threading.Thread(target=callback, args=(data,), name="squarecam-picture", daemon=True)
        self._threads.append(t)
        t.start()

    def join(self, timeout: float = 2.0):
        """Wait for delivered pictures (tests)."""
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = [t for t in self._threads if t.is_alive()]


# libcamera properties::Location
_PICAMERA_LOCATION_FRONT = 0


class Picamera2Session(CameraSession):
    """Raspberry Pi camera session backed by picamera2.

    Pi camera modules have no flash and no live preview surface here, so flash
    modes are empty and the display orientation is only recorded.
    """

    def __init__(self):
        try:
            from picamera2 import Picamera2
        except ImportError as e:
            raise CameraOpenFailure(0, reason=f"picamera2 not available: {e}")
        self._Picamera2 = Picamera2
        self._camera = None
        self._camera_id: Optional[int] = None
        self._params: Optional[CameraParameters] = None
        self._still_config = None
        self.display_orientation = 0

    def camera_count(self) -> int:
        return len(self._Picamera2.global_camera_info())

    def camera_info(self, camera_id: int) -> CameraInfo:
        info = self._Picamera2.global_camera_info()
        if not 0 <= camera_id < len(info):
            raise CameraOpenFailure(camera_id, reason="no such camera")
        entry = info[camera_id]
        facing = CameraFacing.FRONT if entry.get("Location") == _PICAMERA_LOCATION_FRONT else CameraFacing.BACK
        return CameraInfo(facing=facing, orientation=int(entry.get("Rotation", 0)) % 360)

    def open(self, camera_id: int) -> None:
        try:
            self._camera = self._Picamera2(camera_id)
        except Exception as e:
            raise CameraOpenFailure(camera_id, reason=str(e))
        self._camera_id = camera_id
        sizes = []
        for mode in self._camera.sensor_modes:
            size = to_size(mode["size"])
            if size not in sizes:
                sizes.append(size)
        sizes.sort(key=lambda s: s.width, reverse=True)
        self._params = CameraParameters(
            supported_preview_sizes=list(sizes),
            supported_picture_sizes=list(sizes),
            preview_size=sizes[-1] if sizes else None,
            picture_size=sizes[0] if sizes else None,
        )
        logger.info(f"Opened Pi camera {camera_id} with sensor sizes {[str(s) for s in sizes]}")

    def close(self) -> None:
        if self._camera is None:
            return
        try:
            self._camera.close()
        finally:
            logger.info(f"Pi camera {self._camera_id} released")
            self._camera = None
            self._camera_id = None

    def get_parameters(self) -> CameraParameters:
        return copy.deepcopy(self._params)

    def set_parameters(self, params: CameraParameters) -> None:
        self._params = copy.deepcopy(params)

    def set_display_orientation(self, degrees: int) -> None:
        self.display_orientation = degrees

    def start_preview(self) -> None:
        p = self._params
        try:
            preview_config = self._camera.create_preview_configuration(main={"size": p.preview_size.as_tuple()})
            self._still_config = self._camera.create_still_configuration(main={"size": p.picture_size.as_tuple()})
            self._camera.configure(preview_config)
            self._camera.start()
        except Exception as e:
            raise PreviewStartFailure(self._camera_id, reason=str(e))

    def stop_preview(self) -> None:
        if self._camera is not None:
            self._camera.stop()

    def take_picture(self, callback: PictureCallback) -> None:
        camera = self._camera
        still_config = self._still_config

        def _capture():
            buf = BytesIO()
            try:
                camera.switch_mode_and_capture_file(still_config, buf, format="jpeg")
            except Exception:
                # deliver an empty frame so the request still completes (as a decode failure)
                logger.exception("Pi camera still capture failed")
                buf = BytesIO()
            callback(buf.getvalue())

        threading.Thread(target=_capture, name="squarecam-picamera2", daemon=True).start()

"""Orientation math for preview and still capture.

Three angles matter when a still frame is rotated upright:

* the display orientation applied to the preview (sensor vs. device rotation),
* the layout orientation, i.e. the device rotation when the preview was set up,
* the device orientation remembered when the capture was requested.

The last one is stored in a single slot written by `OrientationResolver.remember`
and read once by `compute_capture_orientation`, because the device may turn while
the camera is still producing the frame.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional, Union

from squarecam.errors import CaptureInProgress

logger = logging.getLogger(__name__)

ORIENTATION_UNKNOWN = -1


class Rotation(Enum):
    ROTATION_0 = 0
    ROTATION_90 = 90
    ROTATION_180 = 180
    ROTATION_270 = 270

    @property
    def degrees(self) -> int:
        return self.value

    @classmethod
    def from_degrees(cls, degrees: int) -> "Rotation":
        try:
            return cls(int(degrees))
        except ValueError:
            raise ValueError(f"Rotation must be one of 0, 90, 180, 270 (got {degrees})")


class CameraFacing(Enum):
    BACK = "back"
    FRONT = "front"


def rotation_degrees(rotation: Union[Rotation, int]) -> int:
    if isinstance(rotation, Rotation):
        return rotation.degrees
    return Rotation.from_degrees(rotation).degrees


def compute_display_orientation(facing: CameraFacing, sensor_orientation: int, device_rotation: Union[Rotation, int]) -> int:
    """Angle to rotate the live preview by so it renders upright.

    Front camera images are mirrored, so the correction runs the other way.
    """
    degrees = rotation_degrees(device_rotation)
    if facing == CameraFacing.FRONT:
        display_orientation = (sensor_orientation + degrees) % 360
        display_orientation = (360 - display_orientation) % 360
    else:
        display_orientation = (sensor_orientation - degrees + 360) % 360
    return display_orientation


def normalize_orientation(degrees: int) -> int:
    """Snap a raw orientation-sensor reading (0..359) to 0/90/180/270."""
    degrees = int(degrees) % 360
    if degrees > 315 or degrees <= 45:
        return 0
    if degrees <= 135:
        return 90
    if degrees <= 225:
        return 180
    return 270


class DeviceOrientationListener:
    """Tracks the physical device orientation reported by an orientation sensor.

    Readings arrive through `on_orientation_changed` while the listener is enabled.
    """

    def __init__(self):
        self.enabled = False
        self.current = 0
        self.remembered = 0

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False

    def on_orientation_changed(self, degrees: int):
        if not self.enabled or degrees == ORIENTATION_UNKNOWN:
            return
        self.current = normalize_orientation(degrees)

    def remember_orientation(self) -> int:
        self.remembered = self.current
        return self.remembered


class OrientationResolver:
    """Keeps the display and layout orientation and the remembered capture slot."""

    def __init__(self):
        self.display_orientation = 0
        self.layout_orientation = 0
        self._remembered: Optional[int] = None
        self._slot_lock = threading.Lock()

    def update_display(self, facing: CameraFacing, sensor_orientation: int, device_rotation: Union[Rotation, int]) -> int:
        degrees = rotation_degrees(device_rotation)
        self.display_orientation = compute_display_orientation(facing, sensor_orientation, degrees)
        self.layout_orientation = degrees
        logger.debug(
            f"Display orientation {self.display_orientation} "
            f"(facing={facing.value}, sensor={sensor_orientation}, rotation={degrees})"
        )
        return self.display_orientation

    @property
    def pending(self) -> bool:
        return self._remembered is not None

    def remember(self, device_orientation: int):
        """Record the device orientation for the capture being requested."""
        with self._slot_lock:
            if self._remembered is not None:
                raise CaptureInProgress("remember orientation")
            self._remembered = normalize_orientation(device_orientation)

    def discard(self):
        """Drop a remembered value whose capture will never complete."""
        with self._slot_lock:
            self._remembered = None

    def compute_capture_orientation(self) -> int:
        """Rotation for the still frame; consumes the remembered orientation."""
        with self._slot_lock:
            if self._remembered is None:
                raise RuntimeError("No orientation remembered for this capture")
            remembered = self._remembered
            self._remembered = None
        rotation = (self.display_orientation + remembered + self.layout_orientation) % 360
        logger.debug(
            f"Capture orientation {rotation} (display={self.display_orientation}, "
            f"remembered={remembered}, layout={self.layout_orientation})"
        )
        return rotation

"""Camera controller for the square camera.

`SquareCameraCore` owns one camera session at a time. It configures the camera
(preview/picture sizes and display orientation), arms captures, runs the capture
pipeline when a frame arrives and reports results through two user-supplied
callbacks:

``on_picture_taken(image)``
    Receives the final square Pillow image. Called on the camera's thread.

``on_camera_error(error)``
    Receives a CameraError when the camera can't be opened, no size matches or
    the preview fails to start. The controller never retries.

``on_capture_failed(error)`` (optional)
    Receives a CaptureError when one captured frame could not be processed.
    Defaults to logging only; the session stays usable.

Configuration, camera swaps, flash swaps, start and stop hold the same lock and
are refused with CaptureInProgress while a capture waits for its frame.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from PIL import Image

from squarecam.config import DEFAULT_CAPTURE
from squarecam.cropper import ViewportGeometry
from squarecam.errors import CameraError, CaptureError, CaptureFailure, CaptureInProgress, log_error
from squarecam.flash import FlashButtonState, camera_switch_visible, flash_button_state, next_flash_mode
from squarecam.orientation import DeviceOrientationListener, OrientationResolver
from squarecam.pipeline import CapturePipeline
from squarecam.session import CameraSession, DisplayProvider
from squarecam.sizes import Size, select_best_size

logger = logging.getLogger(__name__)

BACK_CAMERA_ID = 0


@dataclass(frozen=True)
class CameraConfiguration:
    preview_size: Size
    capture_size: Size
    display_orientation: int


class SquareCameraCore:
    def __init__(
        self,
        session: CameraSession,
        display: DisplayProvider,
        on_picture_taken: Optional[Callable[[Image.Image], None]] = None,
        on_camera_error: Optional[Callable[[CameraError], None]] = None,
        on_capture_failed: Optional[Callable[[CaptureError], None]] = None,
        config: Optional[Dict] = None,
        camera_id: int = BACK_CAMERA_ID,
    ):
        self.session = session
        self.display = display
        self.config = {**DEFAULT_CAPTURE, **(config or {})}
        self.camera_id = camera_id

        self._on_picture_taken = on_picture_taken or (lambda image: None)
        self._on_camera_error = on_camera_error or (lambda error: None)
        self._on_capture_failed = on_capture_failed or (lambda error: None)

        self.resolver = OrientationResolver()
        self.orientation_listener = DeviceOrientationListener()
        self.pipeline = CapturePipeline(
            self.resolver,
            self.viewport_geometry,
            landscape_offset_correction=self.config["landscape_offset_correction"],
        )

        self.configuration: Optional[CameraConfiguration] = None
        self._camera_open = False
        self._lock = threading.RLock()
        self._capture_in_flight = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Enable orientation tracking and open the current camera.

        Errors go to on_camera_error; returns False if the camera did not start.
        """
        self.orientation_listener.enable()
        try:
            self.configure(self.camera_id)
            return True
        except CameraError as e:
            self._report_camera_error(e)
            return False

    def stop(self):
        with self._lock:
            self._ensure_idle("stop camera")
            self.orientation_listener.disable()
            self._stop_camera()

    @property
    def capture_in_flight(self) -> bool:
        return self._capture_in_flight.is_set()

    def _ensure_idle(self, operation: str):
        if self._capture_in_flight.is_set():
            raise CaptureInProgress(operation)

    def _stop_camera(self):
        if not self._camera_open:
            return
        try:
            self.session.stop_preview()
        except Exception:
            logger.info("Exception during stopping camera preview")
        self.session.close()
        self._camera_open = False
        self.configuration = None

    def _report_camera_error(self, error: CameraError):
        log_error(error)
        self._on_camera_error(error)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, camera_id: int) -> CameraConfiguration:
        """Stop and release any open camera, then open and set up `camera_id`.

        Raises CameraOpenFailure when the camera can't be opened. If anything fails
        after the camera opened, the camera is released before the error propagates.
        A size fallback or a preview that fails to start is reported to
        on_camera_error and the configuration is still returned.
        """
        with self._lock:
            self._ensure_idle("reconfigure camera")
            self._stop_camera()

            logger.info(f"Opening camera {camera_id}")
            self.session.open(camera_id)
            self._camera_open = True
            self.camera_id = camera_id

            try:
                display_orientation = self._determine_display_orientation()
                preview_size, capture_size = self._setup_camera()
            except Exception:
                logger.error(f"Setting up camera {camera_id} failed; releasing it")
                self._stop_camera()
                raise
            self.configuration = CameraConfiguration(preview_size, capture_size, display_orientation)

            try:
                self.session.start_preview()
            except CameraError as e:
                self._report_camera_error(e)

            logger.info(
                f"Camera {camera_id} configured: preview {preview_size}, picture {capture_size}, "
                f"display orientation {display_orientation}"
            )
            return self.configuration

    def _determine_display_orientation(self) -> int:
        info = self.session.camera_info(self.camera_id)
        rotation = self.display.rotation()
        display_orientation = self.resolver.update_display(info.facing, info.orientation, rotation)
        self.session.set_display_orientation(display_orientation)
        return display_orientation

    def _setup_camera(self):
        params = self.session.get_parameters()
        cfg = self.config
        aspect = (cfg["aspect_numerator"], cfg["aspect_denominator"])

        preview_size = select_best_size(
            params.supported_preview_sizes, cfg["preview_max_width"], *aspect, on_error=self._report_camera_error
        )
        picture_size = select_best_size(
            params.supported_picture_sizes, cfg["picture_max_width"], *aspect, on_error=self._report_camera_error
        )

        params.preview_size = preview_size
        params.picture_size = picture_size
        self.session.set_parameters(params)
        return preview_size, picture_size

    def refresh_display_orientation(self) -> int:
        """Recompute the preview orientation after the display rotated."""
        with self._lock:
            self._ensure_idle("refresh orientation")
            display_orientation = self._determine_display_orientation()
            if self.configuration is not None:
                self.configuration = CameraConfiguration(
                    self.configuration.preview_size, self.configuration.capture_size, display_orientation
                )
            return display_orientation

    def viewport_geometry(self) -> ViewportGeometry:
        return ViewportGeometry.from_sizes(self.display.size(), self.display.real_size())

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def request_capture(self):
        """Remember the device orientation and ask the camera for one frame.

        Returns immediately; the result arrives through on_picture_taken.
        """
        with self._lock:
            self._ensure_idle("take picture")
            if not self._camera_open:
                raise RuntimeError("Camera is not open")
            remembered = self.orientation_listener.remember_orientation()
            self.resolver.remember(remembered)
            self._capture_in_flight.set()
            logger.info(f"Capture requested (remembered orientation {remembered})")
            try:
                self.session.take_picture(self.on_frame_captured)
            except Exception:
                self.resolver.discard()
                self._capture_in_flight.clear()
                raise

    def on_frame_captured(self, data: bytes) -> Optional[Image.Image]:
        """Frame callback: run the pipeline and hand the result to the listener.

        Whatever happens while processing, the request ends here: the in-flight
        flag and the remembered orientation are cleared before any listener runs.
        """
        error = None
        square = None
        try:
            square = self.pipeline.on_frame_captured(data)
        except CaptureError as e:
            error = e
        except Exception as e:
            logger.exception("Unexpected error while processing captured frame")
            error = CaptureFailure("process", reason=f"{type(e).__name__}: {e}")
        finally:
            self.resolver.discard()
            self._capture_in_flight.clear()

        if error is not None:
            log_error(error)
            self._on_capture_failed(error)
            return None
        self._on_picture_taken(square)
        return square

    # ------------------------------------------------------------------
    # Camera / flash swapping and UI state
    # ------------------------------------------------------------------

    def swap_camera(self) -> Optional[CameraConfiguration]:
        count = self.session.camera_count()
        if count > 1 and self.camera_id < count - 1:
            next_id = self.camera_id + 1
        else:
            next_id = BACK_CAMERA_ID
        try:
            return self.configure(next_id)
        except CaptureInProgress:
            raise
        except CameraError as e:
            self._report_camera_error(e)
            return None

    def swap_flash(self):
        with self._lock:
            self._ensure_idle("swap flash")
            params = self.session.get_parameters()
            if not params.supported_flash_modes:
                return params.flash_mode
            new_mode = next_flash_mode(params.flash_mode, params.supported_flash_modes)
            if new_mode != params.flash_mode:
                logger.info(f"Flash mode {params.flash_mode.value} -> {new_mode.value}")
            params.flash_mode = new_mode
            self.session.set_parameters(params)
            return new_mode

    def flash_button_state(self) -> FlashButtonState:
        params = self.session.get_parameters()
        return flash_button_state(params.supported_flash_modes, params.flash_mode)

    def camera_switch_available(self) -> bool:
        return camera_switch_visible(self.session.camera_count())

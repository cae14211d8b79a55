"""Capture pipeline: raw frame bytes -> upright square image."""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Callable

from PIL import Image, UnidentifiedImageError

from squarecam.cropper import ViewportGeometry, crop_to_square, rotate_image
from squarecam.errors import CaptureFailure, DecodeFailure
from squarecam.orientation import OrientationResolver

logger = logging.getLogger(__name__)


def decode_frame(data: bytes) -> Image.Image:
    """Decode captured bytes (JPEG from most sensors) into a loaded Pillow image."""
    if not data:
        raise DecodeFailure(0, reason="empty frame")
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeFailure(len(data), reason=str(e))
    except Exception as e:
        raise DecodeFailure(len(data), reason=f"{type(e).__name__}: {e}") from e
    return img


class CapturePipeline:
    """Turns one captured frame into the square the user saw.

    `geometry_provider` is called at frame time so the crop uses the display
    geometry current when the frame arrives.
    """

    def __init__(self, resolver: OrientationResolver, geometry_provider: Callable[[], ViewportGeometry], landscape_offset_correction: bool = False):
        self.resolver = resolver
        self.geometry_provider = geometry_provider
        self.landscape_offset_correction = landscape_offset_correction

    def on_frame_captured(self, data: bytes) -> Image.Image:
        try:
            bitmap = decode_frame(data)
        except DecodeFailure:
            # the request is over either way
            self.resolver.discard()
            raise

        rotation = self.resolver.compute_capture_orientation()
        logger.info(f"Captured frame {bitmap.size[0]}x{bitmap.size[1]}, rotating by {rotation}")

        try:
            if rotation != 0:
                bitmap = rotate_image(bitmap, rotation)
        except Exception as e:
            raise CaptureFailure("rotate", reason=str(e)) from e

        try:
            geometry = self.geometry_provider()
            square = crop_to_square(bitmap, geometry, self.landscape_offset_correction)
        except Exception as e:
            raise CaptureFailure("crop", reason=str(e)) from e

        logger.info(f"Square image ready: {square.size[0]}x{square.size[1]}")
        return square

"""Rotate and crop captured frames into the square the overlay mask shows.

Uses Pillow. The viewport is the visible display area; the real area also counts
pixels hidden behind system chrome. Both are in screen pixels and are scaled to
image pixels before cropping.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from PIL import Image

logger = logging.getLogger(__name__)

# Clockwise rotation (sensor convention) -> exact Pillow transpose
_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


@dataclass
class ViewportGeometry:
    width: int
    height: int
    real_width: int
    real_height: int

    @property
    def offset_w(self) -> int:
        return self.real_width - self.width

    @property
    def offset_h(self) -> int:
        return self.real_height - self.height

    @classmethod
    def from_sizes(cls, visible: Tuple[int, int], real: Tuple[int, int]) -> "ViewportGeometry":
        return cls(int(visible[0]), int(visible[1]), int(real[0]), int(real[1]))


def compute_crop_box(image_size: Tuple[int, int], geometry: ViewportGeometry, landscape_offset_correction: bool = False) -> Tuple[int, int, int, int]:
    """Return the (left, top, right, bottom) square box to extract from an image.

    Landscape-leaning and square frames keep the top-left h x h square. With
    `landscape_offset_correction` the square is shifted right by the proportional
    width offset instead (the only axis it can move along). Portrait frames take a
    w x w square centered vertically and moved down by the proportional chrome
    height. The box is always clamped inside the image.
    """
    w, h = image_size
    if geometry.width <= 0 or geometry.height <= 0:
        raise ValueError(f"Viewport must be positive (got {geometry.width}x{geometry.height})")

    aspect_x = w / geometry.width
    aspect_y = h / geometry.height

    if w >= h:
        left = 0
        if landscape_offset_correction:
            left = int(geometry.offset_w * aspect_x)
            left = max(0, min(w - h, left))
        return (left, 0, left + h, h)

    top = (h // 2 - w // 2) + int(geometry.offset_h * aspect_y)
    top = max(0, min(h - w, top))
    return (0, top, w, top + w)


def crop_to_square(image: Image.Image, geometry: ViewportGeometry, landscape_offset_correction: bool = False, release_source: bool = True) -> Image.Image:
    """Crop `image` to the square matching the on-screen mask.

    A new image is returned; the source is closed afterwards when `release_source`.
    """
    box = compute_crop_box(image.size, geometry, landscape_offset_correction)
    cropped = image.crop(box)
    cropped.load()
    logger.debug(f"Cropped {image.size[0]}x{image.size[1]} to box {box}")
    if release_source:
        image.close()
    return cropped


def rotate_image(image: Image.Image, degrees: int, release_source: bool = True) -> Image.Image:
    """Rotate clockwise by `degrees`. Zero returns the same image untouched."""
    degrees = int(degrees) % 360
    if degrees == 0:
        return image

    method = _TRANSPOSE.get(degrees)
    if method is not None:
        rotated = image.transpose(method)
    else:
        rotated = image.rotate(-degrees, expand=True)
    rotated.load()
    logger.debug(f"Rotated {image.size[0]}x{image.size[1]} by {degrees} -> {rotated.size[0]}x{rotated.size[1]}")
    if release_source:
        image.close()
    return rotated

"""Overlay mask composition for the camera preview.

Uses Pillow to paint the regions outside the capture square black on a
transparent canvas. The square sits at the top of the display, horizontally
centered.

The mask and the crop do not line up exactly. For portrait frames
`cropper.compute_crop_box` centers the square vertically and adds the chrome
offset, while the mask stays at the top; landscape frames are cropped from
the left edge, not the center. Both keep their own placement; see the mask versus
crop region decision in DESIGN.md.
"""
from typing import List, Tuple

from PIL import Image, ImageDraw

Rect = Tuple[int, int, int, int]


def mask_square(w: int, h: int) -> Rect:
    sq = min(w, h)
    left = (w - sq) // 2
    top = 0
    return (left, top, left + sq, top + sq)


def mask_regions(w: int, h: int) -> List[Rect]:
    """Left, right and bottom rectangles outside the square (empty ones dropped)."""
    l, t, r, b = mask_square(w, h)
    regions = [
        (0, t, l, b),   # left
        (r, t, w, b),   # right
        (0, b, w, h),   # bottom
    ]
    return [rect for rect in regions if rect[2] > rect[0] and rect[3] > rect[1]]


def compose_mask(full_screen: Tuple[int, int]) -> Image.Image:
    """Return an RGBA overlay sized to full_screen with the mask painted black."""
    w, h = full_screen
    img = Image.new("RGBA", (w, h), color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    for x0, y0, x1, y1 in mask_regions(w, h):
        # Pillow rectangles include the end coordinate
        draw.rectangle((x0, y0, x1 - 1, y1 - 1), fill=(0, 0, 0, 255))
    return img

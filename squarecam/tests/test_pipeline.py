"""Tests for the capture pipeline: decode, rotate by capture orientation, crop."""
from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from squarecam.cropper import ViewportGeometry, rotate_image
from squarecam.errors import CaptureFailure, DecodeFailure
from squarecam.orientation import CameraFacing, OrientationResolver
from squarecam.pipeline import CapturePipeline, decode_frame


def _jpeg_bytes(img):
    buf = BytesIO()
    img.save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def _split_frame(size=(640, 480)):
    """Left half red, right half blue, like a sensor frame lying on its side."""
    w, h = size
    img = Image.new("RGB", size, color=(0, 0, 255))
    img.paste((255, 0, 0), (0, 0, w // 2, h))
    return img


def _pipeline(display_orientation_args=(CameraFacing.BACK, 90, 0), geometry=None):
    resolver = OrientationResolver()
    resolver.update_display(*display_orientation_args)
    geometry = geometry or ViewportGeometry(480, 640, 480, 640)
    return resolver, CapturePipeline(resolver, lambda: geometry)


def test_decode_frame_png_and_jpeg():
    img = Image.new("RGB", (32, 24), color=(10, 20, 30))
    buf = BytesIO()
    img.save(buf, format="PNG")
    assert decode_frame(buf.getvalue()).size == (32, 24)
    assert decode_frame(_jpeg_bytes(img)).size == (32, 24)


def test_decode_failure_on_garbage_and_empty():
    with pytest.raises(DecodeFailure) as exc:
        decode_frame(b"definitely not an image")
    assert exc.value.details["size"] == len(b"definitely not an image")
    with pytest.raises(DecodeFailure):
        decode_frame(b"")


def test_truncated_jpeg_is_decode_failure():
    data = _jpeg_bytes(_split_frame())
    with pytest.raises(DecodeFailure):
        decode_frame(data[: len(data) // 3])


def test_oversized_frame_is_decode_failure():
    buf = BytesIO()
    Image.new("L", (100, 100)).save(buf, format="PNG")
    # anything over twice the limit is refused by Pillow
    with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
        with pytest.raises(DecodeFailure):
            decode_frame(buf.getvalue())


def test_unexpected_decoder_error_is_decode_failure():
    with patch("squarecam.pipeline.Image.open", side_effect=RuntimeError("decoder crashed")):
        with pytest.raises(DecodeFailure) as exc:
            decode_frame(b"\x00" * 16)
    assert "RuntimeError" in exc.value.details["reason"]


def test_back_camera_portrait_frame_is_rotated_and_squared():
    resolver, pipeline = _pipeline()
    resolver.remember(0)

    square = pipeline.on_frame_captured(_jpeg_bytes(_split_frame()))

    assert square.size == (480, 480)
    # rotating clockwise puts the left (red) half on top
    r, g, b = square.getpixel((240, 10))
    assert r > 200 and b < 60
    r, g, b = square.getpixel((240, 470))
    assert b > 200 and r < 60


def test_zero_rotation_skips_rotate_step():
    resolver, pipeline = _pipeline((CameraFacing.BACK, 0, 0), ViewportGeometry(640, 480, 640, 480))
    resolver.remember(0)
    with patch("squarecam.pipeline.rotate_image", wraps=rotate_image) as rotate:
        square = pipeline.on_frame_captured(_jpeg_bytes(_split_frame()))
    rotate.assert_not_called()
    assert square.size == (480, 480)


def test_remembered_orientation_is_used():
    resolver, pipeline = _pipeline()
    resolver.remember(90)
    with patch("squarecam.pipeline.rotate_image", wraps=rotate_image) as rotate:
        square = pipeline.on_frame_captured(_jpeg_bytes(_split_frame()))
    assert rotate.call_args[0][1] == 180
    assert square.size == (480, 480)
    assert not resolver.pending


def test_decode_failure_releases_remembered_orientation():
    resolver, pipeline = _pipeline()
    resolver.remember(0)
    with pytest.raises(DecodeFailure):
        pipeline.on_frame_captured(b"\xff\xd8 broken")
    assert not resolver.pending
    # next request works
    resolver.remember(0)
    assert pipeline.on_frame_captured(_jpeg_bytes(_split_frame())).size == (480, 480)


def test_crop_failure_is_capture_failure():
    resolver = OrientationResolver()
    resolver.update_display(CameraFacing.BACK, 0, 0)
    pipeline = CapturePipeline(resolver, lambda: ViewportGeometry(0, 0, 0, 0))
    resolver.remember(0)
    with pytest.raises(CaptureFailure) as exc:
        pipeline.on_frame_captured(_jpeg_bytes(_split_frame()))
    assert exc.value.details["stage"] == "crop"


if __name__ == "__main__":
    test_decode_frame_png_and_jpeg()
    test_back_camera_portrait_frame_is_rotated_and_squared()
    test_zero_rotation_skips_rotate_step()
    print("Pipeline OK")

from PIL import Image

from squarecam.cropper import ViewportGeometry, compute_crop_box, crop_to_square, rotate_image


def _geometry(w, h, real_w=None, real_h=None):
    return ViewportGeometry(w, h, real_w or w, real_h or h)


def test_landscape_crops_top_left_square():
    assert compute_crop_box((400, 300), _geometry(400, 300)) == (0, 0, 300, 300)


def test_square_image_is_unchanged_box():
    assert compute_crop_box((500, 500), _geometry(500, 500)) == (0, 0, 500, 500)


def test_landscape_ignores_chrome_offset_by_default():
    assert compute_crop_box((400, 300), _geometry(400, 300, 500, 350)) == (0, 0, 300, 300)


def test_landscape_offset_correction_shifts_horizontally():
    geometry = _geometry(400, 300, 450, 300)
    assert compute_crop_box((400, 300), geometry, landscape_offset_correction=True) == (50, 0, 350, 300)
    # clamped inside the image
    geometry = _geometry(400, 300, 900, 300)
    assert compute_crop_box((400, 300), geometry, landscape_offset_correction=True) == (100, 0, 400, 300)


def test_portrait_crops_centered_square():
    assert compute_crop_box((300, 400), _geometry(300, 400)) == (0, 50, 300, 350)


def test_portrait_applies_proportional_chrome_offset():
    # 126px of navigation bar hidden below a 1794px viewport
    geometry = _geometry(1080, 1794, 1080, 1920)
    left, top, right, bottom = compute_crop_box((960, 1280), geometry)
    assert (left, right) == (0, 960)
    assert top == (640 - 480) + int(126 * (1280 / 1794))
    assert bottom - top == 960


def test_portrait_offset_is_clamped():
    geometry = _geometry(300, 400, 300, 2000)
    assert compute_crop_box((300, 400), geometry) == (0, 100, 300, 400)


def test_crop_to_square_side_is_min_dimension():
    for size in [(640, 480), (480, 640), (333, 333), (1280, 720), (7, 19)]:
        img = Image.new("RGB", size)
        out = crop_to_square(img, _geometry(360, 640, 360, 700), release_source=False)
        assert out.size[0] == out.size[1] == min(size)


def test_crop_does_not_mutate_source():
    img = Image.new("L", (200, 100), color=7)
    out = crop_to_square(img, _geometry(200, 100), release_source=False)
    assert out is not img
    assert img.size == (200, 100)
    assert img.getpixel((150, 50)) == 7


def test_crop_extracts_expected_region():
    img = Image.new("L", (100, 200), color=0)
    # mark the row the centered square starts on
    for x in range(100):
        img.putpixel((x, 50), 255)
    out = crop_to_square(img, _geometry(100, 200))
    assert out.getpixel((10, 0)) == 255
    assert out.getpixel((10, 1)) == 0


def test_rotate_zero_is_identity():
    img = Image.new("RGB", (40, 30), color=(1, 2, 3))
    assert rotate_image(img, 0) is img
    assert rotate_image(img, 360) is img
    assert img.getpixel((0, 0)) == (1, 2, 3)


def test_rotate_round_trip_restores_dimensions():
    for d in (90, 180, 270):
        img = Image.new("RGB", (64, 48))
        once = rotate_image(img, d)
        back = rotate_image(once, 360 - d)
        assert back.size == (64, 48)


def test_rotate_is_clockwise():
    img = Image.new("RGB", (4, 2), color=(0, 0, 0))
    img.putpixel((0, 0), (255, 0, 0))
    out = rotate_image(img, 90)
    assert out.size == (2, 4)
    # top-left moves to top-right
    assert out.getpixel((1, 0)) == (255, 0, 0)


def test_rotate_arbitrary_angle_expands():
    img = Image.new("RGB", (100, 50))
    out = rotate_image(img, 45, release_source=False)
    assert out.size[0] > 100 or out.size[1] > 50

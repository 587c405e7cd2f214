import numpy as np
import pytest

from edit_spec import CropRect, FlipDirection, ResizeMode
from errors import InvalidSpec
from processors.geometry import (
    crop, fit_dimensions, flip, resize, resize_to, rotate, rotated_canvas_size,
)
from utils.image_utils import PixelBuffer

from helpers import make_gradient


def numbered(width, height):
    """Buffer whose red channel encodes the pixel index, for tracking moves."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = np.arange(width * height).reshape(height, width) % 256
    pixels[:, :, 3] = 255
    return PixelBuffer(pixels)


@pytest.mark.parametrize("degrees", [0, 90, 180, 270, -90, -180])
def test_four_rotations_restore_the_image(gradient, degrees):
    result = gradient
    for _ in range(4):
        result = rotate(result, degrees)
    assert result.size == gradient.size
    assert result == gradient


def test_quarter_turn_swaps_dimensions(gradient):
    assert rotate(gradient, 90).size == (30, 40)
    assert rotate(gradient, -90).size == (30, 40)
    assert rotate(gradient, 180).size == (40, 30)


def test_positive_rotation_is_clockwise():
    buffer = numbered(3, 2)
    rotated = rotate(buffer, 90)
    # Top-left corner moves to the top-right
    assert rotated.pixels[0, -1, 0] == buffer.pixels[0, 0, 0]
    # Bottom-left corner moves to the top-left
    assert rotated.pixels[0, 0, 0] == buffer.pixels[-1, 0, 0]


def test_minus_ninety_equals_two_seventy(gradient):
    assert rotate(gradient, -90) == rotate(gradient, 270)


def test_arbitrary_angle_grows_canvas_and_fills_transparent():
    buffer = PixelBuffer.blank(40, 40, (255, 0, 0, 255))
    rotated = rotate(buffer, 45)
    assert rotated.size == rotated_canvas_size(40, 40, 45)
    assert rotated.width == round(40 * 2 ** 0.5)
    # Corners of the bounding box lie outside the rotated square
    assert rotated.pixels[0, 0, 3] == 0
    center = rotated.pixels[rotated.height // 2, rotated.width // 2]
    assert tuple(center) == (255, 0, 0, 255)


def test_canvas_size_for_quarter_turn():
    assert rotated_canvas_size(40, 30, 90) == (30, 40)
    assert rotated_canvas_size(40, 30, 180) == (40, 30)


@pytest.mark.parametrize("direction", [FlipDirection.HORIZONTAL, FlipDirection.VERTICAL, FlipDirection.BOTH])
def test_flip_is_self_inverse(gradient, direction):
    assert flip(flip(gradient, direction), direction) == gradient


def test_flip_both_is_horizontal_then_vertical(gradient):
    expected = flip(flip(gradient, FlipDirection.HORIZONTAL), FlipDirection.VERTICAL)
    assert flip(gradient, FlipDirection.BOTH) == expected


def test_flip_horizontal_mirrors_columns():
    buffer = numbered(4, 3)
    flipped = flip(buffer, FlipDirection.HORIZONTAL)
    assert flipped.size == buffer.size
    assert np.array_equal(flipped.pixels[:, 0], buffer.pixels[:, -1])


def test_flip_vertical_mirrors_rows():
    buffer = numbered(4, 3)
    flipped = flip(buffer, FlipDirection.VERTICAL)
    assert np.array_equal(flipped.pixels[0], buffer.pixels[-1])


def test_flip_returns_new_buffer(gradient):
    flipped = flip(gradient, FlipDirection.HORIZONTAL)
    flipped.pixels[0, 0] = (1, 2, 3, 4)
    assert flip(flipped, FlipDirection.HORIZONTAL) != gradient
    assert gradient == make_gradient(40, 30)


def test_crop_extracts_rectangle_verbatim():
    buffer = numbered(10, 8)
    cropped = crop(buffer, CropRect(2, 3, 4, 5))
    assert cropped.size == (4, 5)
    assert np.array_equal(cropped.pixels, buffer.pixels[3:8, 2:6])


def test_crop_full_image(gradient):
    assert crop(gradient, CropRect(0, 0, 40, 30)) == gradient


@pytest.mark.parametrize("rect", [
    CropRect(30, 0, 20, 10),   # past the right edge
    CropRect(0, 25, 10, 10),   # past the bottom edge
    CropRect(0, 0, 41, 30),    # one pixel too wide
])
def test_crop_outside_bounds_raises(gradient, rect):
    with pytest.raises(InvalidSpec) as info:
        crop(gradient, rect)
    assert info.value.parameter == "crop"


def test_fit_keeps_aspect_ratio():
    buffer = make_gradient(400, 300)
    result = resize(buffer, max_width=100, max_height=100)
    assert result.size == (100, 75)


@pytest.mark.parametrize("size,bounds", [
    ((1920, 1080), (800, None)),
    ((1000, 333), (None, 100)),
    ((777, 555), (300, 300)),
    ((123, 457), (50, 200)),
])
def test_fit_aspect_ratio_only_changes_by_rounding(size, bounds):
    width, height = size
    new_w, new_h = fit_dimensions(width, height, *bounds)
    assert new_w <= (bounds[0] or width)
    assert new_h <= (bounds[1] or height)
    # One pixel of rounding on the shorter side
    assert abs(new_w / new_h - width / height) <= (width / height) / min(new_w, new_h) + 1e-9


def test_fit_within_bounds_is_unchanged(gradient):
    assert resize(gradient, max_width=100, max_height=100) == gradient


def test_fit_without_aspect_stretches_to_bounds():
    buffer = make_gradient(400, 300)
    assert resize(buffer, max_width=100, maintain_aspect=False).size == (100, 300)
    assert resize(buffer, max_width=100, max_height=50, maintain_aspect=False).size == (100, 50)


@pytest.mark.parametrize("bounds,expected", [
    ((100, 500), (100, 300)),
    ((800, 200), (400, 200)),
])
def test_fit_without_aspect_never_enlarges_a_side(bounds, expected):
    buffer = make_gradient(400, 300)
    result = resize(buffer, *bounds, mode=ResizeMode.FIT, maintain_aspect=False)
    assert result.size == expected
    assert fit_dimensions(400, 300, *bounds, maintain_aspect=False) == expected


def test_fill_stretches_exactly():
    buffer = make_gradient(400, 300)
    assert resize(buffer, 50, 80, mode=ResizeMode.FILL).size == (50, 80)
    # Fill may enlarge
    assert resize(buffer, 800, 900, mode=ResizeMode.FILL).size == (800, 900)


def test_fill_with_one_bound_keeps_other_side():
    buffer = make_gradient(400, 300)
    assert resize(buffer, max_width=200, mode=ResizeMode.FILL).size == (200, 300)


def test_crop_mode_covers_then_centers():
    pixels = np.zeros((100, 300, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    pixels[:, 100:200, 1] = 255  # green middle third
    buffer = PixelBuffer(pixels)

    result = resize(buffer, 50, 50, mode=ResizeMode.CROP)
    assert result.size == (50, 50)
    # Only the middle third survives the center crop
    assert (result.pixels[:, 5:45, 1] == 255).all()


def test_resize_rejects_non_positive_bounds(gradient):
    with pytest.raises(InvalidSpec):
        resize(gradient, max_width=0, max_height=10, mode=ResizeMode.FILL)


def test_resize_to_floors_at_one_pixel(gradient):
    assert resize_to(gradient, 0, 0).size == (1, 1)


def test_resize_to_same_size_copies(gradient):
    result = resize_to(gradient, 40, 30)
    assert result == gradient
    assert result.pixels is not gradient.pixels

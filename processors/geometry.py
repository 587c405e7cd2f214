"""
Geometric transforms: rotate, flip, crop and resize.
Every operation maps one PixelBuffer to a new one.
"""

import math
from typing import Optional, Tuple

import cv2
import numpy as np

from edit_spec import CropRect, FlipDirection, ResizeMode
from errors import InvalidSpec
from utils.image_utils import PixelBuffer


def rotated_canvas_size(width: int, height: int, degrees: float) -> Tuple[int, int]:
    """
    Bounding box of a width x height image rotated by degrees.

    Returns:
        Tuple of (new_width, new_height)
    """
    rad = math.radians(degrees)
    cos = abs(math.cos(rad))
    sin = abs(math.sin(rad))
    new_w = int(round(width * cos + height * sin))
    new_h = int(round(width * sin + height * cos))
    return max(1, new_w), max(1, new_h)


def rotate(buffer: PixelBuffer, degrees: float) -> PixelBuffer:
    """
    Rotate clockwise about the image center.

    Quarter turns are exact. Other angles are resampled onto the rotated
    bounding box, and pixels not covered by the source are transparent.

    Args:
        buffer: Input buffer
        degrees: Clockwise angle

    Returns:
        Rotated buffer
    """
    if degrees % 90 == 0:
        # np.rot90 turns counter-clockwise for positive k
        quarter_turns = int(degrees // 90) % 4
        return PixelBuffer(np.rot90(buffer.pixels, k=-quarter_turns).copy())

    w, h = buffer.size
    new_w, new_h = rotated_canvas_size(w, h, degrees)

    # OpenCV angles are counter-clockwise in a y-down frame
    matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -degrees, 1.0)
    matrix[0, 2] += new_w / 2.0 - w / 2.0
    matrix[1, 2] += new_h / 2.0 - h / 2.0

    rotated = cv2.warpAffine(
        buffer.pixels, matrix, (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    return PixelBuffer(rotated)


def flip(buffer: PixelBuffer, direction: FlipDirection) -> PixelBuffer:
    """
    Mirror the buffer. BOTH is a horizontal flip followed by a vertical one.
    """
    pixels = buffer.pixels
    if direction in (FlipDirection.HORIZONTAL, FlipDirection.BOTH):
        pixels = pixels[:, ::-1]
    if direction in (FlipDirection.VERTICAL, FlipDirection.BOTH):
        pixels = pixels[::-1, :]
    return PixelBuffer(pixels.copy())


def crop(buffer: PixelBuffer, rect: CropRect) -> PixelBuffer:
    """
    Extract a rectangle verbatim.

    Raises:
        InvalidSpec: if the rectangle is not fully inside the buffer
    """
    if rect.x + rect.width > buffer.width or rect.y + rect.height > buffer.height:
        raise InvalidSpec(
            "crop",
            f"rectangle ({rect.x}, {rect.y}, {rect.width}x{rect.height}) "
            f"exceeds the {buffer.width}x{buffer.height} image",
        )
    region = buffer.pixels[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]
    return PixelBuffer(region.copy())


def resize_to(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    """
    Resample to exactly width x height (each floored at 1 px).
    """
    width = max(1, int(width))
    height = max(1, int(height))
    if (width, height) == buffer.size:
        return buffer.copy()

    # Area averaging for downscaling, Lanczos for upscaling
    if width < buffer.width or height < buffer.height:
        interp = cv2.INTER_AREA
    else:
        interp = cv2.INTER_LANCZOS4

    return PixelBuffer(cv2.resize(buffer.pixels, (width, height), interpolation=interp))


def fit_dimensions(width: int, height: int,
                   max_width: Optional[int],
                   max_height: Optional[int],
                   maintain_aspect: bool = True) -> Tuple[int, int]:
    """
    Dimensions after fitting within the given bounds. Nothing changes unless
    a bound is exceeded.

    Returns:
        Tuple of (width, height)
    """
    bound_w = max_width if max_width else math.inf
    bound_h = max_height if max_height else math.inf

    if width <= bound_w and height <= bound_h:
        return width, height

    if maintain_aspect:
        ratio = min(bound_w / width, bound_h / height)
        return max(1, int(round(width * ratio))), max(1, int(round(height * ratio)))

    # Without aspect, each side is clamped to its own bound independently
    return min(width, int(max_width or width)), min(height, int(max_height or height))


def resize(buffer: PixelBuffer,
           max_width: Optional[int] = None,
           max_height: Optional[int] = None,
           mode: ResizeMode = ResizeMode.FIT,
           maintain_aspect: bool = True) -> PixelBuffer:
    """
    Resize with various modes.

    Args:
        buffer: Input buffer
        max_width: Width bound (FIT) or target width (FILL, CROP)
        max_height: Height bound (FIT) or target height (FILL, CROP)
        mode: FIT scales within the bounds, FILL stretches to them exactly,
            CROP covers them then center-crops
        maintain_aspect: Only used by FIT

    Returns:
        Resized buffer
    """
    if max_width is not None and max_width <= 0:
        raise InvalidSpec("max_width", f"{max_width} is not a positive dimension")
    if max_height is not None and max_height <= 0:
        raise InvalidSpec("max_height", f"{max_height} is not a positive dimension")

    w, h = buffer.size

    if mode is ResizeMode.FIT:
        new_w, new_h = fit_dimensions(w, h, max_width, max_height, maintain_aspect)
        return resize_to(buffer, new_w, new_h)

    target_w = max_width or w
    target_h = max_height or h

    if mode is ResizeMode.FILL:
        return resize_to(buffer, target_w, target_h)

    # Cover the target box, then take its center
    scale = max(target_w / w, target_h / h)
    scaled_w = max(target_w, int(round(w * scale)))
    scaled_h = max(target_h, int(round(h * scale)))
    scaled = resize_to(buffer, scaled_w, scaled_h)

    x = (scaled_w - target_w) // 2
    y = (scaled_h - target_h) // 2
    return crop(scaled, CropRect(x, y, target_w, target_h))

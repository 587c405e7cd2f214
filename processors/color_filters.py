"""
Color filter compositing.
Folds brightness, contrast, saturation, blur, grayscale and sepia into one
ordered pass so the buffer is traversed once per group instead of once per filter.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import cv2
import numpy as np

from edit_spec import Filters
from utils.image_utils import PixelBuffer


# Luminance weights and sepia tone matrix of the CSS filter-effects module
GRAYSCALE_MATRIX = np.array([
    [0.2126, 0.7152, 0.0722],
    [0.2126, 0.7152, 0.0722],
    [0.2126, 0.7152, 0.0722],
])

SEPIA_MATRIX = np.array([
    [0.393, 0.769, 0.189],
    [0.349, 0.686, 0.168],
    [0.272, 0.534, 0.131],
])


def _affine(linear: np.ndarray, offset: Optional[np.ndarray] = None) -> np.ndarray:
    """Homogeneous 4x4 form of y = linear @ x + offset."""
    matrix = np.eye(4)
    matrix[:3, :3] = linear
    if offset is not None:
        matrix[:3, 3] = offset
    return matrix


def brightness_matrix(value: int) -> np.ndarray:
    return _affine(np.eye(3) * (1 + value / 100.0))


def contrast_matrix(value: int) -> np.ndarray:
    factor = 1 + value / 100.0
    return _affine(np.eye(3) * factor, np.full(3, 127.5 * (1 - factor)))


def saturation_matrix(value: int) -> np.ndarray:
    s = 1 + value / 100.0
    linear = np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ])
    return _affine(linear)


@dataclass
class FilterPass:
    """
    Composed filter pass: color matrix, optional blur, color matrix.

    Attributes:
        active: Filters that were requested, in application order
        pre_blur: 4x4 color matrix applied before the blur (None = identity)
        blur_sigma: Gaussian standard deviation in px (None = no blur)
        post_blur: 4x4 color matrix applied after the blur (None = identity)
    """
    active: List[str] = field(default_factory=list)
    pre_blur: Optional[np.ndarray] = None
    blur_sigma: Optional[float] = None
    post_blur: Optional[np.ndarray] = None

    @property
    def is_identity(self) -> bool:
        return self.pre_blur is None and self.blur_sigma is None and self.post_blur is None


def _fold(matrices: List[np.ndarray]) -> Optional[np.ndarray]:
    combined = np.eye(4)
    for matrix in matrices:
        combined = matrix @ combined
    if np.allclose(combined, np.eye(4)):
        return None
    return combined


def build_filter_pass(filters: Optional[Filters]) -> FilterPass:
    """
    Compose a filter set into one pass, ordered brightness, contrast,
    saturation, blur, grayscale, sepia.

    Args:
        filters: Requested filters (None or all-absent means no-op)

    Returns:
        FilterPass
    """
    result = FilterPass()
    if filters is None or filters.is_empty():
        return result

    before: List[np.ndarray] = []
    after: List[np.ndarray] = []

    if filters.brightness is not None:
        result.active.append("brightness")
        before.append(brightness_matrix(filters.brightness))
    if filters.contrast is not None:
        result.active.append("contrast")
        before.append(contrast_matrix(filters.contrast))
    if filters.saturation is not None:
        result.active.append("saturation")
        before.append(saturation_matrix(filters.saturation))
    if filters.blur is not None:
        result.active.append("blur")
        if filters.blur > 0:
            result.blur_sigma = float(filters.blur)
    if filters.grayscale is not None:
        result.active.append("grayscale")
        if filters.grayscale:
            after.append(_affine(GRAYSCALE_MATRIX))
    if filters.sepia is not None:
        result.active.append("sepia")
        if filters.sepia:
            after.append(_affine(SEPIA_MATRIX))

    result.pre_blur = _fold(before)
    result.post_blur = _fold(after)
    return result


def _apply_matrix(rgba: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    rgb = rgba[:, :, :3]
    rgba[:, :, :3] = np.clip(rgb @ matrix[:3, :3].T + matrix[:3, 3], 0.0, 255.0)
    return rgba


def apply_filter_pass(buffer: PixelBuffer, filter_pass: FilterPass) -> PixelBuffer:
    """
    Run a composed pass over a buffer. Alpha only changes through blur.
    """
    if filter_pass.is_identity:
        return buffer.copy()

    rgba = buffer.pixels.astype(np.float32)

    if filter_pass.pre_blur is not None:
        rgba = _apply_matrix(rgba, filter_pass.pre_blur)

    if filter_pass.blur_sigma is not None:
        rgba = cv2.GaussianBlur(rgba, (0, 0), sigmaX=filter_pass.blur_sigma,
                                borderType=cv2.BORDER_REPLICATE)

    if filter_pass.post_blur is not None:
        rgba = _apply_matrix(rgba, filter_pass.post_blur)

    return PixelBuffer(np.rint(np.clip(rgba, 0.0, 255.0)).astype(np.uint8))


def apply_filters(buffer: PixelBuffer, filters: Optional[Filters]) -> PixelBuffer:
    """
    Apply a filter set in a single composed pass.

    Args:
        buffer: Input buffer
        filters: Requested filters

    Returns:
        Filtered buffer (a copy when nothing needs doing)
    """
    return apply_filter_pass(buffer, build_filter_pass(filters))

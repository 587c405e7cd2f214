"""
Common image types and helpers for the converter.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from config import get_section
from edit_spec import ImageFormat


@dataclass(eq=False)
class PixelBuffer:
    """
    Decoded raster image: RGBA uint8 samples, row-major, top-left origin.

    The array has shape (height, width, 4), so its byte length is always
    width * height * 4. Each transform returns a new buffer.
    """
    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Pixel buffer must have shape (h, w, 4), got {pixels.shape}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError(f"Pixel buffer is empty: {pixels.shape}")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        self.pixels = np.ascontiguousarray(pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def nbytes(self) -> int:
        return int(self.pixels.nbytes)

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return np.array_equal(self.pixels, other.pixels)

    @classmethod
    def blank(cls, width: int, height: int, color: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> "PixelBuffer":
        """Create a buffer filled with one RGBA color."""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)


@dataclass(frozen=True)
class EncodedResult:
    """Encoded image bytes, the terminal artifact handed back to the caller."""
    data: bytes
    format: ImageFormat
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def mime_type(self) -> str:
        return self.format.mime_type

    def filename_for(self, name: str) -> str:
        """Swap the extension of name for the one of this result's format."""
        stem = name.rsplit(".", 1)[0] if "." in name else name
        return f"{stem}.{self.format.extension}"


def buffer_to_pil(buffer: PixelBuffer) -> Image.Image:
    """
    Convert a PixelBuffer to a PIL Image.

    Args:
        buffer: RGBA pixel buffer

    Returns:
        PIL Image (RGBA)
    """
    return Image.fromarray(buffer.pixels)


def pil_to_buffer(image: Image.Image) -> PixelBuffer:
    """
    Convert a PIL Image of any mode to a PixelBuffer.

    Args:
        image: PIL Image

    Returns:
        RGBA PixelBuffer
    """
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return PixelBuffer(np.array(image, dtype=np.uint8))


def format_file_size(num_bytes: int) -> str:
    """
    Format a byte count for display ("0 Bytes", "1.5 KB", "2.25 MB").
    """
    if num_bytes <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    while num_bytes >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = round(num_bytes / (1024 ** index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def size_change_label(original_bytes: int, new_bytes: int) -> str:
    """Describe how a conversion changed the file size, e.g. "35.2% smaller"."""
    if original_bytes <= 0 or new_bytes == original_bytes:
        return "same size"
    change = (new_bytes - original_bytes) / original_bytes * 100
    if change < 0:
        return f"{-change:.1f}% smaller"
    return f"{change:.1f}% larger"


def validate_image_file(data: bytes, mime_type: str,
                        max_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate an uploaded file before handing it to the converter.

    Args:
        data: Raw file bytes
        mime_type: MIME type declared by the upload
        max_bytes: Size cap (default: validation.max_file_bytes)

    Returns:
        Tuple of (is_valid, error_message)
    """
    settings = get_section("validation")
    if max_bytes is None:
        max_bytes = settings["max_file_bytes"]

    if mime_type not in settings["allowed_mime_types"]:
        return False, "Unsupported image format"

    if len(data) > max_bytes:
        return False, f"File size exceeds {format_file_size(max_bytes)} limit"

    return True, "OK"


def get_image_info(buffer: PixelBuffer) -> dict:
    """
    Get information about a pixel buffer.

    Args:
        buffer: Input buffer

    Returns:
        Dictionary with image information
    """
    rgb = buffer.pixels[:, :, :3]
    alpha = buffer.pixels[:, :, 3]

    return {
        "width": buffer.width,
        "height": buffer.height,
        "size_bytes": buffer.nbytes,
        "aspect_ratio": round(buffer.width / buffer.height, 3),
        "mean_brightness": round(float(np.mean(rgb)), 2),
        "has_transparency": bool((alpha < 255).any()),
    }

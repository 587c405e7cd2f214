"""Utility modules for pixel buffers, codecs and logging."""

from .image_utils import (
    PixelBuffer,
    EncodedResult,
    format_file_size,
    size_change_label,
    validate_image_file,
    get_image_info
)
from .codec import decode, encode, detect_format
from .logging import get_logger

__all__ = [
    'PixelBuffer',
    'EncodedResult',
    'format_file_size',
    'size_change_label',
    'validate_image_file',
    'get_image_info',
    'decode',
    'encode',
    'detect_format',
    'get_logger'
]

"""
Error types raised by the conversion engine.
All errors derive from ValueError so callers that only guard against bad input keep working.
"""

from typing import Optional


class ImageConversionError(ValueError):
    """Base class for every failure surfaced by the engine."""


class DecodeError(ImageConversionError):
    """Input bytes are malformed or in an unsupported format."""


class EncodeError(ImageConversionError):
    """The encoder rejected the buffer, format or quality combination."""

    def __init__(self, message: str, format_name: Optional[str] = None):
        super().__init__(message)
        self.format_name = format_name


class InvalidSpec(ImageConversionError):
    """
    An edit request is inconsistent with itself or with the image it is applied to.

    Attributes:
        parameter: Name of the offending EditSpec field, for user-facing messages
    """

    def __init__(self, parameter: str, message: str):
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter

"""
Codec adapter: decode byte streams into pixel buffers and encode them back.
Pillow does the container work; quality is normalized to [0, 1] at this boundary.
"""

import io
from typing import Dict, Any, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from config import get_section
from edit_spec import ImageFormat
from errors import DecodeError, EncodeError
from utils.image_utils import PixelBuffer, EncodedResult, buffer_to_pil, pil_to_buffer


_PIL_TO_FORMAT = {
    "JPEG": ImageFormat.JPEG,
    "MPO": ImageFormat.JPEG,
    "PNG": ImageFormat.PNG,
    "WEBP": ImageFormat.WEBP,
    "AVIF": ImageFormat.AVIF,
    "BMP": ImageFormat.BMP,
    "GIF": ImageFormat.GIF,
    "TIFF": ImageFormat.TIFF,
}


def decode(data: bytes) -> PixelBuffer:
    """
    Decode an image byte stream.

    EXIF orientation is applied so the buffer matches what a viewer shows.

    Args:
        data: Encoded image bytes

    Returns:
        RGBA PixelBuffer
    """
    if not data:
        raise DecodeError("Could not decode image: no data")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            image = ImageOps.exif_transpose(image)
            return pil_to_buffer(image)
    except UnidentifiedImageError as exc:
        raise DecodeError("Could not decode image: unsupported or unrecognized format") from exc
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc


def detect_format(data: bytes) -> Optional[ImageFormat]:
    """
    Identify the container format of an encoded image without decoding pixels.

    Returns:
        The matching ImageFormat, or None if unknown to the converter
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _PIL_TO_FORMAT.get(image.format or "")
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def quality_to_level(quality: float) -> int:
    """Map a normalized quality in [0, 1] to the encoders' 1-100 scale."""
    return max(1, min(100, int(round(quality * 100))))


def effective_quality(fmt: ImageFormat, quality: Optional[float]) -> Optional[int]:
    """
    Quality level the encoder will actually use, or None when it is ignored.
    Two calls with the same effective quality produce the same bytes.
    """
    if quality is None or not fmt.supports_quality:
        return None
    return quality_to_level(quality)


def _save_options(fmt: ImageFormat, level: Optional[int], settings: Dict[str, Any]) -> Dict[str, Any]:
    if fmt is ImageFormat.JPEG:
        options = {"optimize": False}
        if level is not None:
            options["quality"] = level
        return options
    if fmt is ImageFormat.WEBP:
        return {"quality": level if level is not None else 100,
                "lossless": False,
                "method": settings["webp_method"]}
    if fmt is ImageFormat.AVIF:
        return {"quality": level if level is not None else 100,
                "speed": settings["avif_speed"]}
    if fmt is ImageFormat.PNG:
        return {"compress_level": settings["png_compress_level"]}
    return {}


def encode(buffer: PixelBuffer,
           fmt: ImageFormat,
           quality: Optional[float] = None,
           config: Optional[Dict[str, Any]] = None) -> EncodedResult:
    """
    Encode a pixel buffer.

    Args:
        buffer: RGBA pixel buffer
        fmt: Output format
        quality: Normalized quality in [0, 1]; ignored by lossless formats
        config: Optional overrides for the "codec" config section

    Returns:
        EncodedResult with the encoded bytes
    """
    if quality is not None and not 0.0 <= quality <= 1.0:
        raise EncodeError(f"Quality {quality} is outside [0, 1]", fmt.value)

    settings = get_section("codec", config)
    image = buffer_to_pil(buffer)
    if fmt is ImageFormat.JPEG:
        # No alpha channel in JPEG
        image = image.convert("RGB")

    level = effective_quality(fmt, quality)
    output = io.BytesIO()
    try:
        image.save(output, format=fmt.pil_name, **_save_options(fmt, level, settings))
    except KeyError as exc:
        # Pillow raises KeyError for formats it has no writer for
        raise EncodeError(f"No encoder available for {fmt.value}", fmt.value) from exc
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Failed to encode image as {fmt.value}: {exc}", fmt.value) from exc

    return EncodedResult(
        data=output.getvalue(),
        format=fmt,
        width=buffer.width,
        height=buffer.height,
    )

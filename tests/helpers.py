"""Synthetic image builders shared by the tests."""

import io

import numpy as np
from PIL import Image

from utils.image_utils import PixelBuffer


def make_gradient(width: int, height: int, alpha: bool = False) -> PixelBuffer:
    """Smooth RGB ramps; with alpha=True the alpha channel ramps too."""
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = xs[None, :]
    pixels[:, :, 1] = ys[:, None]
    pixels[:, :, 2] = ((xs[None, :] + ys[:, None]) / 2)
    pixels[:, :, 3] = ((xs[None, :] * 0.5 + 127) if alpha else 255)
    return PixelBuffer(pixels)


def make_noise(width: int, height: int, seed: int = 0) -> PixelBuffer:
    """Uniform noise: the worst case for every encoder."""
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    return PixelBuffer(pixels)


def make_photo(width: int, height: int, seed: int = 0) -> PixelBuffer:
    """Gradient with mild noise, compressing roughly like a photograph."""
    base = make_gradient(width, height).pixels.astype(np.int16)
    rng = np.random.default_rng(seed)
    noise = rng.integers(-12, 13, size=(height, width, 3), dtype=np.int16)
    base[:, :, :3] += noise
    return PixelBuffer(np.clip(base, 0, 255).astype(np.uint8))


def to_bytes(buffer: PixelBuffer, fmt: str = "PNG", **options) -> bytes:
    image = Image.fromarray(buffer.pixels)
    if fmt == "JPEG":
        image = image.convert("RGB")
    output = io.BytesIO()
    image.save(output, format=fmt, **options)
    return output.getvalue()

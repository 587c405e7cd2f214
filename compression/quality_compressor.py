"""
Size-bounded quality compression.
Encodes at the requested quality within a dimension cap, then steps quality and
dimensions down together while the output is above a size ceiling.
"""

from typing import Dict, Any, Optional

from config import get_section
from edit_spec import ImageFormat
from processors.geometry import fit_dimensions, resize_to
from utils.codec import encode
from utils.image_utils import PixelBuffer
from utils.logging import get_logger
from compression.target_size import SearchResult

logger = get_logger("compression.quality")


class QualityCompressor:
    """
    Quality-driven compression with a conservative size ceiling.

    Used when a request sets quality below 100 but no explicit target size.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 codec_config: Optional[Dict[str, Any]] = None):
        """
        Initialize compressor.

        Args:
            config: Overrides for the "quality_compression" config section
            codec_config: Overrides for the "codec" config section
        """
        self.config = get_section("quality_compression", config)
        self.codec_config = codec_config

    def ceiling_for(self, quality: int) -> int:
        """Size ceiling in bytes for a 1-100 quality."""
        if quality < self.config["low_quality_threshold"]:
            return self.config["low_quality_max_bytes"]
        return self.config["max_bytes"]

    def max_dimension_for(self, max_width: Optional[int], max_height: Optional[int]) -> int:
        """Dimension cap: the larger explicit bound, or the default cap."""
        bounds = [b for b in (max_width, max_height) if b]
        return max(bounds) if bounds else self.config["default_max_dimension"]

    def compress(self, buffer: PixelBuffer, fmt: ImageFormat, quality: float,
                 max_size_bytes: int, max_dimension: int) -> SearchResult:
        """
        Compress a buffer at a quality, bounded in size and dimensions.

        Args:
            buffer: Edited pixel buffer
            fmt: Output format
            quality: Normalized starting quality in [0, 1]
            max_size_bytes: Size ceiling
            max_dimension: Longest side allowed

        Returns:
            SearchResult (the last attempt, which may still exceed the ceiling)
        """
        width, height = fit_dimensions(buffer.width, buffer.height, max_dimension, max_dimension)
        working = resize_to(buffer, width, height) if (width, height) != buffer.size else buffer

        result = encode(working, fmt, quality, self.codec_config)
        attempts = 1

        step = self.config["step_factor"]
        while result.size > max_size_bytes and attempts <= self.config["max_iterations"]:
            width = max(1, int(round(width * step)))
            height = max(1, int(round(height * step)))
            quality = quality * step
            working = resize_to(buffer, width, height)
            result = encode(working, fmt, quality, self.codec_config)
            attempts += 1

        if result.size > max_size_bytes:
            logger.info("Quality compression stopped at %d bytes, above the %d byte ceiling",
                        result.size, max_size_bytes)

        return SearchResult(
            result=result,
            quality=quality,
            target_bytes=max_size_bytes,
            within_tolerance=result.size <= max_size_bytes,
            attempts=attempts,
            phase="quality",
        )

"""
Target file size compression.
Binary search over quality, then over reduced dimensions, then a last-resort
ratchet, until the encoded size lands within a tolerance band below the target.
"""

import math
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

from config import get_section
from edit_spec import ImageFormat
from errors import InvalidSpec
from processors.geometry import resize_to
from utils.codec import encode, effective_quality
from utils.image_utils import PixelBuffer, EncodedResult
from utils.logging import get_logger

logger = get_logger("compression.target_size")


@dataclass
class SearchResult:
    """Result from a size-constrained compression."""
    result: EncodedResult
    quality: float
    target_bytes: int
    within_tolerance: bool
    attempts: int
    phase: str

    @property
    def size(self) -> int:
        return self.result.size


@dataclass
class _Bisection:
    """Outcome of one quality binary search at fixed dimensions."""
    match: Optional[Tuple[EncodedResult, float]] = None
    best: Optional[Tuple[EncodedResult, float]] = None
    smallest_size: Optional[int] = None

    @property
    def best_size(self) -> Optional[int]:
        return self.best[0].size if self.best else None


class _EncodeSession:
    """
    Encodes one source buffer at varying (quality, dimensions).

    Keeps only the resized buffer for the current dimensions and the last
    encode, which is reused when the next request would produce the same bytes.
    """

    def __init__(self, buffer: PixelBuffer, fmt: ImageFormat,
                 codec_config: Optional[Dict[str, Any]] = None):
        self.source = buffer
        self.fmt = fmt
        self.codec_config = codec_config
        self.attempts = 0
        self._sized: Optional[PixelBuffer] = None
        self._last_key = None
        self._last_result: Optional[EncodedResult] = None

    def _buffer_at(self, width: int, height: int) -> PixelBuffer:
        if (width, height) == self.source.size:
            return self.source
        if self._sized is None or self._sized.size != (width, height):
            self._sized = resize_to(self.source, width, height)
        return self._sized

    def encode(self, quality: float, width: int, height: int) -> EncodedResult:
        key = (width, height, effective_quality(self.fmt, quality))
        if key == self._last_key:
            return self._last_result

        result = encode(self._buffer_at(width, height), self.fmt, quality, self.codec_config)
        self.attempts += 1
        self._last_key = key
        self._last_result = result
        return result


class TargetSizeSearch:
    """
    Compress a pixel buffer to a byte budget.

    Features:
    - Quality binary search at the current dimensions
    - Dimension reduction estimated from the area/size relation
    - Bounded ratchet of quality and dimensions as a last resort
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 codec_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the search.

        Args:
            config: Overrides for the "search" config section
            codec_config: Overrides for the "codec" config section
        """
        self.config = get_section("search", config)
        self.codec_config = codec_config

    def tolerance_for(self, target_bytes: int) -> float:
        """Width of the acceptable band below the target."""
        return max(target_bytes * self.config["tolerance_ratio"],
                   self.config["min_tolerance_bytes"])

    @property
    def max_attempts(self) -> int:
        """Upper bound on encoder calls for one search."""
        return 2 * self.config["max_iterations"] + self.config["ratchet_rounds"] + 1

    def _bisect_quality(self, session: _EncodeSession, width: int, height: int,
                        target_bytes: int, tolerance: float) -> _Bisection:
        outcome = _Bisection()
        min_q = self.config["min_quality"]
        max_q = self.config["max_quality"]
        best_diff = math.inf
        iterations = 0

        while iterations < self.config["max_iterations"] and (max_q - min_q) > self.config["quality_precision"]:
            iterations += 1
            quality = (min_q + max_q) / 2
            candidate = session.encode(quality, width, height)
            size = candidate.size
            diff = abs(size - target_bytes)

            if outcome.smallest_size is None or size < outcome.smallest_size:
                outcome.smallest_size = size

            if size <= target_bytes and diff <= tolerance:
                outcome.match = (candidate, quality)
                return outcome

            # Closest candidate that does not exceed the target
            if size <= target_bytes and diff < best_diff:
                best_diff = diff
                outcome.best = (candidate, quality)

            if size > target_bytes:
                max_q = quality
            else:
                min_q = quality

        return outcome

    def estimate_scale(self, target_bytes: int,
                       reference_size: Optional[int],
                       original_size: Optional[int]) -> float:
        """
        Scale factor for the dimension-reduction phase.

        Encoded size is assumed to grow with pixel area, so the side scale is
        the square root of the size ratio, shrunk by a safety margin.

        Args:
            target_bytes: Byte budget
            reference_size: Size of the closest under-target candidate, if any
            original_size: Size of the source file, used when no reference exists

        Returns:
            Clamped scale factor
        """
        c = self.config
        if reference_size is not None:
            if reference_size > target_bytes:
                scale = math.sqrt(target_bytes / reference_size) * c["reference_safety_margin"]
            else:
                scale = c["under_target_shrink"]
        elif original_size and original_size > target_bytes:
            scale = math.sqrt(target_bytes / original_size) * c["original_safety_margin"]
        else:
            scale = c["source_under_target_shrink"]

        min_scale = c["small_target_min_scale"] if target_bytes < c["small_target_bytes"] else c["min_scale"]
        return max(min_scale, min(1.0, scale))

    def _floor_dimension(self, value: float, original: int) -> int:
        # The floor never enlarges an image that is already smaller than it
        return max(min(self.config["min_dimension"], original), int(round(value)))

    def _finish(self, session: _EncodeSession, result: EncodedResult, quality: float,
                target_bytes: int, tolerance: float, phase: str) -> SearchResult:
        within = result.size <= target_bytes and (target_bytes - result.size) <= tolerance
        logger.debug("Target search finished in %s phase: %d bytes (target %d) after %d encodes",
                     phase, result.size, target_bytes, session.attempts)
        return SearchResult(
            result=result,
            quality=quality,
            target_bytes=target_bytes,
            within_tolerance=within,
            attempts=session.attempts,
            phase=phase,
        )

    def search(self, buffer: PixelBuffer, target_bytes: int, fmt: ImageFormat,
               original_size: Optional[int] = None) -> SearchResult:
        """
        Compress a buffer to at most target_bytes.

        Args:
            buffer: Edited pixel buffer
            target_bytes: Byte budget
            fmt: Output format
            original_size: Size of the source file in bytes, if known

        Returns:
            SearchResult; the best effort is returned even if the target was missed
        """
        if target_bytes <= 0:
            raise InvalidSpec("targetFileSize.size", f"{target_bytes} is not a positive byte count")

        tolerance = self.tolerance_for(target_bytes)
        session = _EncodeSession(buffer, fmt, self.codec_config)
        width, height = buffer.size

        # Phase 1: quality only
        outcome = self._bisect_quality(session, width, height, target_bytes, tolerance)
        found = outcome.match or outcome.best
        if found:
            return self._finish(session, found[0], found[1], target_bytes, tolerance, "quality")

        # Phase 2: reduced dimensions
        # An under-target candidate would have returned above, so the estimate uses original_size
        scale = self.estimate_scale(target_bytes, outcome.best_size, original_size)
        new_w = self._floor_dimension(width * scale, width)
        new_h = self._floor_dimension(height * scale, height)
        logger.debug("Quality alone cannot reach %d bytes (smallest %s); scaling %dx%d by %.3f to %dx%d",
                     target_bytes, outcome.smallest_size, width, height, scale, new_w, new_h)

        outcome = self._bisect_quality(session, new_w, new_h, target_bytes, tolerance)
        found = outcome.match or outcome.best
        if found:
            return self._finish(session, found[0], found[1], target_bytes, tolerance, "dimensions")

        # Phase 3: ratchet quality and dimensions down together
        quality = self.config["ratchet_start_quality"]
        for _ in range(self.config["ratchet_rounds"]):
            candidate = session.encode(quality, new_w, new_h)
            if candidate.size <= target_bytes:
                return self._finish(session, candidate, quality, target_bytes, tolerance, "ratchet")

            new_w = self._floor_dimension(new_w * self.config["ratchet_dimension_decay"], width)
            new_h = self._floor_dimension(new_h * self.config["ratchet_dimension_decay"], height)
            quality = max(self.config["min_quality"], quality * self.config["ratchet_quality_decay"])

        quality = self.config["min_quality"]
        candidate = session.encode(quality, new_w, new_h)
        if candidate.size > target_bytes:
            logger.info("Could not reach %d bytes; returning best effort of %d bytes at %dx%d",
                        target_bytes, candidate.size, new_w, new_h)
        return self._finish(session, candidate, quality, target_bytes, tolerance, "fallback")


def compress_to_target_size(buffer: PixelBuffer,
                            target_bytes: int,
                            fmt: ImageFormat,
                            original_size: Optional[int] = None,
                            config: Optional[Dict[str, Any]] = None) -> EncodedResult:
    """
    Convenience function to compress a buffer to a target size.

    Args:
        buffer: Edited pixel buffer
        target_bytes: Byte budget
        fmt: Output format
        original_size: Size of the source file in bytes, if known
        config: Overrides for the "search" config section

    Returns:
        EncodedResult
    """
    return TargetSizeSearch(config).search(buffer, target_bytes, fmt, original_size).result

"""
Conversion pipeline: decode, edit, then encode under the requested constraints.

Edits run in a fixed order: filters, rotate, flip, crop, resize. Filters see
undistorted source pixels, and crop/resize see the final orientation.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from compression.quality_compressor import QualityCompressor
from compression.target_size import TargetSizeSearch
from config import get_default_config, merge_configs
from edit_spec import EditSpec, FlipDirection, ResizeMode
from processors.color_filters import apply_filter_pass, build_filter_pass
from processors.geometry import crop, flip, resize, rotate
from utils.codec import decode, detect_format, encode
from utils.image_utils import PixelBuffer, EncodedResult
from utils.logging import get_logger

logger = get_logger("pipeline")


@dataclass
class EditOutcome:
    """Edited buffer plus the names of the steps that changed it."""
    buffer: PixelBuffer
    steps: List[str] = field(default_factory=list)


def apply_edits(buffer: PixelBuffer, spec: EditSpec) -> EditOutcome:
    """
    Apply the geometric and color edits of a request.

    Args:
        buffer: Decoded source buffer
        spec: Edit request

    Returns:
        EditOutcome with the edited buffer
    """
    outcome = EditOutcome(buffer=buffer)

    filter_pass = build_filter_pass(spec.filters)
    if not filter_pass.is_identity:
        outcome.buffer = apply_filter_pass(outcome.buffer, filter_pass)
        outcome.steps.append("filters")

    if spec.rotate:
        outcome.buffer = rotate(outcome.buffer, spec.rotate)
        outcome.steps.append("rotate")

    if spec.flip is not FlipDirection.NONE:
        outcome.buffer = flip(outcome.buffer, spec.flip)
        outcome.steps.append("flip")

    if spec.crop is not None:
        outcome.buffer = crop(outcome.buffer, spec.crop)
        outcome.steps.append("crop")

    if spec.wants_resize:
        before = outcome.buffer.size
        outcome.buffer = resize(
            outcome.buffer,
            max_width=spec.max_width,
            max_height=spec.max_height,
            mode=spec.resize_mode,
            maintain_aspect=spec.maintain_aspect_ratio,
        )
        if outcome.buffer.size != before or spec.resize_mode is not ResizeMode.FIT:
            outcome.steps.append("resize")

    return outcome


class ImageConverter:
    """
    Converts one image per call. Holds configuration only, so one instance can
    serve concurrent requests.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize converter.

        Args:
            config: Partial configuration merged over the defaults
        """
        self.config = merge_configs(get_default_config(), config or {})
        self.search = TargetSizeSearch(self.config["search"], self.config["codec"])
        self.compressor = QualityCompressor(self.config["quality_compression"], self.config["codec"])

    def convert(self, data: bytes, spec: EditSpec) -> EncodedResult:
        """
        Run the full conversion.

        Args:
            data: Source image bytes
            spec: Edit request

        Returns:
            EncodedResult in spec.format
        """
        start_time = time.time()
        source = decode(data)
        edited = apply_edits(source, spec)
        buffer = edited.buffer
        del source

        logger.debug("Edited %d bytes with %s -> %dx%d",
                     len(data), edited.steps or "no edits", buffer.width, buffer.height)

        if spec.uses_target_size:
            target_bytes = spec.target_file_size.target_bytes
            outcome = self.search.search(buffer, target_bytes, spec.format, original_size=len(data))
            result = outcome.result
            route = f"target size ({outcome.phase})"
        elif spec.quality < 100:
            outcome = self.compressor.compress(
                buffer,
                spec.format,
                spec.quality / 100,
                max_size_bytes=self.compressor.ceiling_for(spec.quality),
                max_dimension=self.compressor.max_dimension_for(spec.max_width, spec.max_height),
            )
            result = outcome.result
            route = "quality compression"
        elif not edited.steps and detect_format(data) is spec.format:
            # Nothing to change: hand back the source untouched
            result = EncodedResult(data=bytes(data), format=spec.format,
                                   width=buffer.width, height=buffer.height)
            route = "passthrough"
        else:
            result = encode(buffer, spec.format, spec.quality / 100, self.config["codec"])
            route = "format conversion"

        logger.info("Converted to %s via %s: %d -> %d bytes in %.0fms",
                    spec.format.value, route, len(data), result.size,
                    (time.time() - start_time) * 1000)
        return result


def convert_and_compress_image(data: bytes, spec: EditSpec,
                               config: Optional[Dict[str, Any]] = None) -> EncodedResult:
    """
    Convenience function to convert one image.

    Args:
        data: Source image bytes
        spec: Edit request
        config: Partial configuration merged over the defaults

    Returns:
        EncodedResult
    """
    return ImageConverter(config).convert(data, spec)

"""
Configuration system for the image converter.
Holds the tuning constants of the compression search and the defaults of the
quality compressor, with helpers to copy and override them per request.
"""

import copy
import os
from typing import Dict, Any, Optional


# Target-size search: empirically tuned, see compression/target_size.py
TOLERANCE_RATIO = 0.05           # 5% of the target...
MIN_TOLERANCE_BYTES = 1024       # ...or 1 KB, whichever is larger
MIN_QUALITY = 0.01
MAX_QUALITY = 1.0
QUALITY_PRECISION = 0.005        # Stop bisecting once the interval is this narrow
MAX_SEARCH_ITERATIONS = 30
REFERENCE_SAFETY_MARGIN = 0.85   # Scale estimate from the smallest encoded attempt
ORIGINAL_SAFETY_MARGIN = 0.7     # Scale estimate from the source file size
UNDER_TARGET_SHRINK = 0.95
SOURCE_UNDER_TARGET_SHRINK = 0.9
SMALL_TARGET_BYTES = 100 * 1024
SMALL_TARGET_MIN_SCALE = 0.05
MIN_SCALE = 0.1
MIN_DIMENSION = 50
RATCHET_ROUNDS = 5
RATCHET_START_QUALITY = 0.1
RATCHET_QUALITY_DECAY = 0.9
RATCHET_DIMENSION_DECAY = 0.8

KB = 1024
MB = 1024 * 1024


# Default configuration - sensible values for interactive conversion
DEFAULT_CONFIG = {
    # Target file size search
    "search": {
        "tolerance_ratio": TOLERANCE_RATIO,
        "min_tolerance_bytes": MIN_TOLERANCE_BYTES,
        "min_quality": MIN_QUALITY,
        "max_quality": MAX_QUALITY,
        "quality_precision": QUALITY_PRECISION,
        "max_iterations": MAX_SEARCH_ITERATIONS,
        "reference_safety_margin": REFERENCE_SAFETY_MARGIN,
        "original_safety_margin": ORIGINAL_SAFETY_MARGIN,
        "under_target_shrink": UNDER_TARGET_SHRINK,
        "source_under_target_shrink": SOURCE_UNDER_TARGET_SHRINK,
        "small_target_bytes": SMALL_TARGET_BYTES,
        "small_target_min_scale": SMALL_TARGET_MIN_SCALE,
        "min_scale": MIN_SCALE,
        "min_dimension": MIN_DIMENSION,
        "ratchet_rounds": RATCHET_ROUNDS,
        "ratchet_start_quality": RATCHET_START_QUALITY,
        "ratchet_quality_decay": RATCHET_QUALITY_DECAY,
        "ratchet_dimension_decay": RATCHET_DIMENSION_DECAY,
    },

    # Size-bounded quality compression (used when no target size is set)
    "quality_compression": {
        "low_quality_threshold": 50,        # Below this quality the tighter ceiling applies
        "low_quality_max_bytes": MB // 2,
        "max_bytes": MB,
        "default_max_dimension": 1920,
        "max_iterations": 10,
        "step_factor": 0.95,
    },

    # Encoder settings
    "codec": {
        "png_compress_level": 6,
        "webp_method": 4,
        "avif_speed": 6,
    },

    # Intake validation for the front-end
    "validation": {
        "max_file_bytes": 50 * MB,
        "allowed_mime_types": [
            "image/jpeg", "image/jpg", "image/png", "image/webp",
            "image/bmp", "image/gif", "image/tiff", "image/avif",
        ],
    },

    "log_level": os.environ.get("IMAGE_CONVERTER_LOG_LEVEL", "INFO"),
}


def get_default_config() -> Dict[str, Any]:
    """Return a copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge override config into base config.

    Args:
        base: Base configuration dictionary
        override: Override values to apply

    Returns:
        Merged configuration
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def get_section(name: str, override: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return one configuration section with any overrides applied.

    Args:
        name: Section key in DEFAULT_CONFIG
        override: Partial section values supplied by the caller

    Returns:
        Complete section dictionary
    """
    if name not in DEFAULT_CONFIG:
        raise KeyError(f"Unknown configuration section: {name}")
    return merge_configs(DEFAULT_CONFIG[name], override or {})

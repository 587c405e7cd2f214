"""
Image edit operations.
The conversion pipeline lives in processors.pipeline, which also depends on
the compression package and is therefore not imported here.
"""

from .geometry import rotate, flip, crop, resize, resize_to, fit_dimensions
from .color_filters import FilterPass, build_filter_pass, apply_filters

__all__ = [
    'rotate',
    'flip',
    'crop',
    'resize',
    'resize_to',
    'fit_dimensions',
    'FilterPass',
    'build_filter_pass',
    'apply_filters'
]

"""Compression modules for size-constrained encoding."""

from .target_size import TargetSizeSearch, SearchResult, compress_to_target_size
from .quality_compressor import QualityCompressor

__all__ = [
    'TargetSizeSearch',
    'SearchResult',
    'compress_to_target_size',
    'QualityCompressor'
]

"""
Analytics Module

Pure, stateless functions over snapshot data. Insufficient input yields
None rather than an exception or a fabricated number.
"""
from .keywords import STOP_WORDS, extract_keywords, keyword_similarity
from .correlation import (
    RelatednessResult,
    compute_relatedness,
    normalize_series,
    pearson_correlation,
)
from .spread import SpreadStats, compute_spread
from .momentum import MomentumDirection, MomentumStats, compute_momentum
from .divergence import DivergenceDirection, DivergenceStats, compute_divergence
from .volume import QuickStats, VolumeAnalysis, compute_volume_analysis, quick_stats

__all__ = [
    "STOP_WORDS",
    "extract_keywords",
    "keyword_similarity",
    "RelatednessResult",
    "compute_relatedness",
    "normalize_series",
    "pearson_correlation",
    "SpreadStats",
    "compute_spread",
    "MomentumDirection",
    "MomentumStats",
    "compute_momentum",
    "DivergenceDirection",
    "DivergenceStats",
    "compute_divergence",
    "QuickStats",
    "VolumeAnalysis",
    "compute_volume_analysis",
    "quick_stats",
]

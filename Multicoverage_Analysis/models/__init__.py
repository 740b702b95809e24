"""Data models package for typed region and decomposition structures."""

from .data_models import (
    CombinationGroup,
    DecompositionResult,
    Region,
    RegionKind,
)

__all__ = [
    "CombinationGroup",
    "DecompositionResult",
    "Region",
    "RegionKind",
]

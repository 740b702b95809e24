"""
Multicoverage Analysis

Decomposes N overlapping coverages (e.g. radar coverage at one flight level)
into simple zones, per-multiplicity rings and the maximal-coverage region.
"""

from Multicoverage_Analysis.config import CONFIG
from Multicoverage_Analysis.decomposition import decompose_coverages
from Multicoverage_Analysis.main import run_multicoverage_analysis

__all__ = ["decompose_coverages", "run_multicoverage_analysis", "CONFIG"]

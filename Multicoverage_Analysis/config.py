#!/usr/bin/env python3
"""
Multicoverage Analysis - Configuration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Centralized configuration for multicoverage decomposition.
Single source of truth for numerical tolerances, parallelism, input/output
locations and KML styling.

Configuration Sections (ordered by importance for algorithm tuning):
1. decomposition: Sliver threshold, overlay precision, naming
2. tag: Operator tag validation (flight level)
3. parallel: Intra-level parallel intersection settings
4. quality_control: Input validation and accepted file types
5. export: Output format toggles
6. file_paths: Input/output file locations (bottom - rarely changed)
7. kml_styles: Layer colours (bottom)

Navigation Guide:
- Use VS Code outline (Ctrl+Shift+O) to jump between sections
"""

import os
from typing import Dict, Any, TypeVar, Callable, Optional

T = TypeVar("T")


def _env_or_default(
    key: str, default: T, type_fn: Optional[Callable[[str], T]] = None
) -> T:
    """
    Get value from environment variable or use default.

    Args:
        key: Environment variable name (e.g., "MCA_SLIVER_MIN_VERTICES")
        default: Default value if env var not set
        type_fn: Optional type conversion function (e.g., float, int)

    Returns:
        Value from environment (converted) or default

    Example:
        >>> _env_or_default("MCA_SLIVER_MIN_VERTICES", 11, int)
        11  # If env var not set
    """
    val = os.getenv(key)
    if val is not None:
        if type_fn is not None:
            return type_fn(val)
        return val  # type: ignore
    return default


def _env_bool(key: str, default: bool) -> bool:
    """
    Get boolean value from environment variable.

    Treats "true", "1", "yes" as True (case-insensitive).
    Any other value or unset returns default.
    """
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 ENVIRONMENT VARIABLE OVERRIDES
# ═══════════════════════════════════════════════════════════════════════════
# These settings can be overridden via environment variables for testing:
#
# MCA_SLIVER_MIN_VERTICES  - int, sliver threshold (default: 11, 0 disables)
# MCA_OVERLAY_GRID_SIZE    - float, overlay precision grid (default: unset)
# MCA_PARALLEL             - "true" or "false" (default: "true")
# MCA_PARALLEL_BACKEND     - "threading" or "loky" (default: "threading")
#
# Example usage:
#   export MCA_SLIVER_MIN_VERTICES=0
#   export MCA_OVERLAY_GRID_SIZE=1e-9
#   python -m Multicoverage_Analysis.main --tag FL100
# ═══════════════════════════════════════════════════════════════════════════

# ═══════════════════════════════════════════════════════════════════════════
# ⚙️ MASTER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

CONFIG: Dict[str, Any] = {
    # ═══════════════════════════════════════════════════════════════════════
    # 🧮 DECOMPOSITION ENGINE
    # ═══════════════════════════════════════════════════════════════════════
    "decomposition": {
        # Numerical-degeneracy rule: a subtraction result with fewer
        # coordinates than this (closing coordinates included) is treated as
        # empty. Overlays of near-coincident radar boundaries leave thin
        # residue that must not surface as its own layer.
        # - 11: Default (a 10-coordinate polygon is dropped, 11 is kept)
        # - 0: Disabled (every non-empty result is kept)
        # ENV OVERRIDE: MCA_SLIVER_MIN_VERTICES
        "sliver_min_vertices": _env_or_default("MCA_SLIVER_MIN_VERTICES", 11, int),
        # Overlay precision for every boolean operation.
        # - None: floating precision overlay (default)
        # - float: results are snapped to a grid of this size, which
        #   stabilises overlays on nearly coincident inputs
        # ENV OVERRIDE: MCA_OVERLAY_GRID_SIZE
        "overlay_grid_size": _env_or_default("MCA_OVERLAY_GRID_SIZE", None, float),
        # Joins constituent source names into composite names
        "name_separator": " () ",
        # Fixed name given to the region covered by every source
        "maximal_label": "(MAX)",
        # Validate every boolean-operation result (invalid -> abort run)
        "validate_results": True,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🏷️ TAG (flight level) VALIDATION
    # ═══════════════════════════════════════════════════════════════════════
    "tag": {
        # Operator tag must match this pattern (e.g. "FL100", "FL090")
        "pattern": r"^FL\d{3}$",
        # Tag used when neither CLI nor prompt supplies one (None = prompt)
        "default": None,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # ⚡ PARALLEL PROCESSING
    # ═══════════════════════════════════════════════════════════════════════
    # Intersections within one multiplicity level are independent and may be
    # computed concurrently. Ring reduction is always sequential.
    "parallel": {
        # Master toggle - set False to use n_jobs=1 (sequential execution)
        # ENV OVERRIDE: MCA_PARALLEL
        "enabled": _env_bool("MCA_PARALLEL", True),
        # Number of workers (-1 = auto, based on CPU cores)
        "max_workers": -1,
        # Default optimal worker count when auto-detecting
        "optimal_workers_default": 8,
        # Minimum combinations in a level needed to justify parallel overhead
        "min_combinations_for_parallel": 16,
        # Joblib backend ("threading" = shared memory, GEOS releases the GIL;
        # "loky" = process-based, geometries are pickled)
        # ENV OVERRIDE: MCA_PARALLEL_BACKEND
        "backend": _env_or_default("MCA_PARALLEL_BACKEND", "threading"),
        # Fall back to sequential evaluation if the pool cannot be started
        "fallback_on_error": True,
        # Verbosity level for joblib progress output (0-10)
        "verbose": 0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # ✅ QUALITY CONTROL
    # ═══════════════════════════════════════════════════════════════════════
    "quality_control": {
        # False: invalid input polygons abort the run
        # True: invalid input polygons are repaired with buffer(0)
        "repair_invalid_inputs": False,
        # File types read from the input directory
        "supported_suffixes": [".kml", ".kmz", ".geojson", ".json", ".shp", ".gpkg"],
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📤 EXPORT TOGGLES
    # ═══════════════════════════════════════════════════════════════════════
    "export": {
        "kmz": True,  # Multilayer KMZ bundle (main deliverable)
        "geojson": True,  # All layers as one FeatureCollection
        "summary_csv": True,  # One row per layer with areas
        "png": False,  # Preview image (matplotlib)
        "png_dpi": 150,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📁 FILE PATHS (Rarely changed - at bottom)
    # ═══════════════════════════════════════════════════════════════════════
    "file_paths": {
        "input_dir": "Input",
        "output_dir": "Output",
        "log_dir": "logs",
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🎨 KML STYLES (Rarely changed - at bottom)
    # ═══════════════════════════════════════════════════════════════════════
    # KML colours are "aabbggrr" hex strings (alpha, blue, green, red).
    "kml_styles": {
        "original": "7d00ff00",  # Green
        "simple": "7dffcc00",  # Light blue
        "simple_total": "7dffcc00",
        "total": "7dffcc00",
        "multiple_total": "7dffcc00",
        # Palette shared by MULTI and MULTI_TOTAL layers, keyed by multiplicity
        "multiplicity_colors": {
            2: "7dff9966",
            3: "7dff6699",
            4: "7dff00ff",
            5: "7d6600ff",
            6: "7d0000ff",
            7: "7d0066ff",
            8: "7d0066cc",
            9: "7d00ffff",
            10: "7d33ff99",
        },
        # Colour for multiplicities beyond the palette
        "default_multi": "7d33ff99",
    },
}

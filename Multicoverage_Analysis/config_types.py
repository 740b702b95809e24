"""
═══════════════════════════════════════════════════════════════════════════════
📋 UNIFIED CONFIGURATION TYPES
═══════════════════════════════════════════════════════════════════════════════

ARCHITECTURAL OVERVIEW
----------------------
Responsibility: Define all configuration dataclasses for the multicoverage
analysis. Wraps the CONFIG dictionary in typed, validated config objects.

It provides:
1. Type-safe configuration dataclasses (frozen, validated in __post_init__)
2. A single AppConfig facade that wraps all settings
3. Factory methods to create configs from the CONFIG dictionary

Usage:
    from Multicoverage_Analysis.config import CONFIG
    from Multicoverage_Analysis.config_types import AppConfig

    # Create once at application startup
    app_config = AppConfig.from_dict(CONFIG)

    # Use throughout the application
    result = decompose_coverages(sources, config=app_config.decomposition,
                                 parallel=app_config.parallel)

For Navigation: Use VS Code outline (Ctrl+Shift+O)

NAVIGATION GUIDE
----------------
# ═════ 1. FILE PATHS CONFIGURATION
# ═════ 2. DECOMPOSITION CONFIGURATION
# ═════ 3. TAG CONFIGURATION
# ═════ 4. PARALLEL PROCESSING CONFIGURATION
# ═════ 5. QUALITY CONTROL CONFIGURATION
# ═════ 6. EXPORT CONFIGURATION
# ═════ 7. KML STYLE CONFIGURATION
# ═════ 8. APP CONFIG (MASTER FACADE)

═══════════════════════════════════════════════════════════════════════════════
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple


_KML_COLOR_RE = re.compile(r"^[0-9a-fA-F]{8}$")
_JOBLIB_BACKENDS = ("threading", "loky", "multiprocessing", "sequential")


def _check_kml_color(name: str, value: str) -> None:
    if not isinstance(value, str) or not _KML_COLOR_RE.match(value):
        raise ValueError(f"{name} must be an 'aabbggrr' hex string, got {value!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# 📁 1. FILE PATHS CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FilePathsConfig:
    """
    File path configuration for inputs and outputs.

    Attributes:
        input_dir: Directory scanned for source coverage files.
        output_dir: Directory for output files.
        log_dir: Directory for log files.
    """

    input_dir: str = "Input"
    output_dir: str = "Output"
    log_dir: str = "logs"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FilePathsConfig":
        """Create FilePathsConfig from CONFIG['file_paths'] dictionary."""
        return cls(
            input_dir=d.get("input_dir", "Input"),
            output_dir=d.get("output_dir", "Output"),
            log_dir=d.get("log_dir", "logs"),
        )

    @property
    def input_path(self) -> Path:
        return Path(self.input_dir)

    @property
    def output_path(self) -> Path:
        """Get output directory as relative Path object."""
        return Path(self.output_dir)

    @property
    def log_path(self) -> Path:
        """Get log directory as relative Path object."""
        return Path(self.log_dir)


# ═══════════════════════════════════════════════════════════════════════════════
# 🧮 2. DECOMPOSITION CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DecompositionConfig:
    """
    Numerical and naming settings for the decomposition engine.

    Attributes:
        sliver_min_vertices: Subtraction results with fewer coordinates are
            treated as empty (0 disables the rule).
        overlay_grid_size: Precision grid for every overlay (None = floating).
        name_separator: Joins constituent names into composite names.
        maximal_label: Name given to the region covered by every source.
        validate_results: Abort on invalid boolean-operation results.
    """

    sliver_min_vertices: int = 11
    overlay_grid_size: Optional[float] = None
    name_separator: str = " () "
    maximal_label: str = "(MAX)"
    validate_results: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DecompositionConfig":
        """Create DecompositionConfig from CONFIG['decomposition'] dictionary."""
        return cls(
            sliver_min_vertices=d.get("sliver_min_vertices", 11),
            overlay_grid_size=d.get("overlay_grid_size"),
            name_separator=d.get("name_separator", " () "),
            maximal_label=d.get("maximal_label", "(MAX)"),
            validate_results=d.get("validate_results", True),
        )

    def __post_init__(self) -> None:
        """Validate decomposition configuration."""
        if self.sliver_min_vertices < 0:
            raise ValueError(
                f"sliver_min_vertices must be >= 0, got {self.sliver_min_vertices}"
            )
        if self.overlay_grid_size is not None and self.overlay_grid_size <= 0:
            raise ValueError(
                f"overlay_grid_size must be > 0 or None, got {self.overlay_grid_size}"
            )
        if not self.name_separator:
            raise ValueError("name_separator must not be empty")
        if not self.maximal_label:
            raise ValueError("maximal_label must not be empty")


# ═══════════════════════════════════════════════════════════════════════════════
# 🏷️ 3. TAG CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TagConfig:
    """
    Operator tag (flight level) validation.

    Attributes:
        pattern: Regular expression every tag must fully match.
        default: Tag used when none is supplied (None = ask the operator).
    """

    pattern: str = r"^FL\d{3}$"
    default: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TagConfig":
        """Create TagConfig from CONFIG['tag'] dictionary."""
        return cls(
            pattern=d.get("pattern", r"^FL\d{3}$"),
            default=d.get("default"),
        )

    def __post_init__(self) -> None:
        try:
            re.compile(self.pattern)
        except re.error as e:
            raise ValueError(f"tag pattern is not a valid regex: {e}") from e
        if self.default is not None and not self.is_valid(self.default):
            raise ValueError(
                f"default tag {self.default!r} does not match {self.pattern!r}"
            )

    def is_valid(self, tag: Optional[str]) -> bool:
        """True if tag fully matches the configured pattern."""
        if tag is None:
            return False
        return re.fullmatch(self.pattern, tag) is not None


# ═══════════════════════════════════════════════════════════════════════════════
# ⚡ 4. PARALLEL PROCESSING CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ParallelConfig:
    """
    Configuration for parallel evaluation of same-level intersections.

    Attributes:
        enabled: Master toggle for parallel processing.
        max_workers: Number of workers (-1 = auto).
        optimal_workers_default: Default worker count when auto-detecting.
        min_combinations_for_parallel: Minimum combinations to justify parallel.
        backend: Joblib backend ("threading" shares memory, "loky" = processes).
        fallback_on_error: Fall back to sequential on pool start-up errors.
        verbose: Verbosity level (0-10).
    """

    enabled: bool = True
    max_workers: int = -1
    optimal_workers_default: int = 8
    min_combinations_for_parallel: int = 16
    backend: str = "threading"
    fallback_on_error: bool = True
    verbose: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ParallelConfig":
        """Create ParallelConfig from CONFIG['parallel'] dictionary."""
        return cls(
            enabled=d.get("enabled", True),
            max_workers=d.get("max_workers", -1),
            optimal_workers_default=d.get("optimal_workers_default", 8),
            min_combinations_for_parallel=d.get("min_combinations_for_parallel", 16),
            backend=d.get("backend", "threading"),
            fallback_on_error=d.get("fallback_on_error", True),
            verbose=d.get("verbose", 0),
        )

    def __post_init__(self) -> None:
        """Validate parallel configuration."""
        if self.backend not in _JOBLIB_BACKENDS:
            raise ValueError(
                f"backend must be one of {_JOBLIB_BACKENDS}, got {self.backend!r}"
            )
        if self.max_workers == 0 or self.max_workers < -1:
            raise ValueError(f"max_workers must be -1 or >= 1, got {self.max_workers}")
        if self.optimal_workers_default < 1:
            raise ValueError(
                f"optimal_workers_default must be >= 1, "
                f"got {self.optimal_workers_default}"
            )

    @classmethod
    def sequential(cls) -> "ParallelConfig":
        """Config that always evaluates with n_jobs=1."""
        return cls(enabled=False)

    def effective_worker_count(self, n_combinations: int) -> int:
        """
        Calculate worker count for a batch of combinations.

        Returns 1 (sequential) when parallelism is disabled or the batch is
        smaller than min_combinations_for_parallel.
        """
        if not self.enabled or n_combinations < self.min_combinations_for_parallel:
            return 1

        max_workers = self.max_workers
        if max_workers == -1:
            # Auto-detect based on CPU cores
            cpu_count = os.cpu_count() or 4
            max_workers = min(cpu_count, self.optimal_workers_default)

        # Don't use more workers than combinations
        return max(1, min(max_workers, n_combinations))


# ═══════════════════════════════════════════════════════════════════════════════
# 🔍 5. QUALITY CONTROL CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class QualityControlConfig:
    """Input quality control settings."""

    repair_invalid_inputs: bool = False
    supported_suffixes: Tuple[str, ...] = (
        ".kml",
        ".kmz",
        ".geojson",
        ".json",
        ".shp",
        ".gpkg",
    )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QualityControlConfig":
        """Create QualityControlConfig from dictionary."""
        suffixes = d.get("supported_suffixes", cls.supported_suffixes)
        return cls(
            repair_invalid_inputs=d.get("repair_invalid_inputs", False),
            supported_suffixes=tuple(s.lower() for s in suffixes),
        )

    def __post_init__(self) -> None:
        for suffix in self.supported_suffixes:
            if not suffix.startswith("."):
                raise ValueError(f"suffix must start with '.', got {suffix!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# 📤 6. EXPORT CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ExportConfig:
    """Output format toggles."""

    kmz: bool = True
    geojson: bool = True
    summary_csv: bool = True
    png: bool = False
    png_dpi: int = 150

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExportConfig":
        """Create ExportConfig from CONFIG['export'] dictionary."""
        return cls(
            kmz=d.get("kmz", True),
            geojson=d.get("geojson", True),
            summary_csv=d.get("summary_csv", True),
            png=d.get("png", False),
            png_dpi=d.get("png_dpi", 150),
        )

    def __post_init__(self) -> None:
        if self.png_dpi <= 0:
            raise ValueError(f"png_dpi must be > 0, got {self.png_dpi}")


# ═══════════════════════════════════════════════════════════════════════════════
# 🎨 7. KML STYLE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


_DEFAULT_MULTIPLICITY_COLORS: Dict[int, str] = {
    2: "7dff9966",
    3: "7dff6699",
    4: "7dff00ff",
    5: "7d6600ff",
    6: "7d0000ff",
    7: "7d0066ff",
    8: "7d0066cc",
    9: "7d00ffff",
    10: "7d33ff99",
}


@dataclass(frozen=True)
class KmlStyleConfig:
    """
    Layer fill colours as KML "aabbggrr" hex strings.

    Attributes:
        original: Fill for source coverages.
        simple: Fill for per-source simple zones.
        simple_total: Fill for the simple total.
        total: Fill for the total coverage.
        multiple_total: Fill for the all-levels multiple total.
        multiplicity_colors: Fill per multiplicity for multi layers.
        default_multi: Fill for multiplicities missing from the palette.
    """

    original: str = "7d00ff00"
    simple: str = "7dffcc00"
    simple_total: str = "7dffcc00"
    total: str = "7dffcc00"
    multiple_total: str = "7dffcc00"
    multiplicity_colors: Mapping[int, str] = field(
        default_factory=lambda: dict(_DEFAULT_MULTIPLICITY_COLORS)
    )
    default_multi: str = "7d33ff99"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "KmlStyleConfig":
        """Create KmlStyleConfig from CONFIG['kml_styles'] dictionary."""
        palette = d.get("multiplicity_colors", _DEFAULT_MULTIPLICITY_COLORS)
        return cls(
            original=d.get("original", "7d00ff00"),
            simple=d.get("simple", "7dffcc00"),
            simple_total=d.get("simple_total", "7dffcc00"),
            total=d.get("total", "7dffcc00"),
            multiple_total=d.get("multiple_total", "7dffcc00"),
            # Keys may arrive as strings from JSON/env sources
            multiplicity_colors={int(k): v for k, v in palette.items()},
            default_multi=d.get("default_multi", "7d33ff99"),
        )

    def __post_init__(self) -> None:
        """Validate every colour string."""
        for name in ("original", "simple", "simple_total", "total", "multiple_total"):
            _check_kml_color(name, getattr(self, name))
        _check_kml_color("default_multi", self.default_multi)
        for level, color in self.multiplicity_colors.items():
            _check_kml_color(f"multiplicity_colors[{level}]", color)

    def multiplicity_color(self, multiplicity: int) -> str:
        return self.multiplicity_colors.get(multiplicity, self.default_multi)


# ═══════════════════════════════════════════════════════════════════════════════
# 🎯 8. APP CONFIG (MASTER FACADE)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AppConfig:
    """
    Master configuration object for the multicoverage analysis.

    This is the single source of truth for all typed configuration. Create it
    once at application startup using AppConfig.from_dict(CONFIG) and pass its
    sections to the functions that need them.

    Attributes:
        file_paths: File path configuration.
        decomposition: Decomposition engine configuration.
        tag: Operator tag validation.
        parallel: Parallel processing configuration.
        quality_control: Input quality control settings.
        export: Output format toggles.
        kml_styles: KML layer colours.

    Example:
        from Multicoverage_Analysis.config import CONFIG
        from Multicoverage_Analysis.config_types import AppConfig

        app_config = AppConfig.from_dict(CONFIG)
        threshold = app_config.decomposition.sliver_min_vertices
    """

    file_paths: FilePathsConfig = field(default_factory=FilePathsConfig)
    decomposition: DecompositionConfig = field(default_factory=DecompositionConfig)
    tag: TagConfig = field(default_factory=TagConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    quality_control: QualityControlConfig = field(default_factory=QualityControlConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    kml_styles: KmlStyleConfig = field(default_factory=KmlStyleConfig)

    # Raw config dict for sections without a typed wrapper
    _raw_config: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AppConfig":
        """
        Create AppConfig from the CONFIG dictionary.

        Args:
            config_dict: The CONFIG dictionary from config.py.

        Returns:
            AppConfig instance with all settings populated.
        """
        return cls(
            file_paths=FilePathsConfig.from_dict(config_dict.get("file_paths", {})),
            decomposition=DecompositionConfig.from_dict(
                config_dict.get("decomposition", {})
            ),
            tag=TagConfig.from_dict(config_dict.get("tag", {})),
            parallel=ParallelConfig.from_dict(config_dict.get("parallel", {})),
            quality_control=QualityControlConfig.from_dict(
                config_dict.get("quality_control", {})
            ),
            export=ExportConfig.from_dict(config_dict.get("export", {})),
            kml_styles=KmlStyleConfig.from_dict(config_dict.get("kml_styles", {})),
            _raw_config=config_dict,
        )

    @property
    def log_dir(self) -> Path:
        """Get log directory as Path object."""
        return self.file_paths.log_path

    @property
    def output_dir(self) -> Path:
        """Get output directory as Path object."""
        return self.file_paths.output_path

    def get_raw(self, key: str, default: Any = None) -> Any:
        """Get a value from the raw CONFIG dictionary."""
        return self._raw_config.get(key, default)

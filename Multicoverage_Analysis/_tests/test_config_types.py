"""
Tests for the typed configuration layer.

Run with: python -m pytest Multicoverage_Analysis/_tests/test_config_types.py -v
"""

from pathlib import Path

import pytest

from Multicoverage_Analysis.config import CONFIG
from Multicoverage_Analysis.config_types import (
    AppConfig,
    DecompositionConfig,
    ExportConfig,
    FilePathsConfig,
    KmlStyleConfig,
    ParallelConfig,
    QualityControlConfig,
    TagConfig,
)


class TestAppConfig:
    """AppConfig.from_dict on the real CONFIG."""

    def test_from_config(self):
        app_config = AppConfig.from_dict(CONFIG)
        assert app_config.decomposition.name_separator == " () "
        assert app_config.decomposition.maximal_label == "(MAX)"
        assert app_config.tag.pattern == r"^FL\d{3}$"
        assert isinstance(app_config.log_dir, Path)
        assert app_config.get_raw("decomposition") is CONFIG["decomposition"]
        assert app_config.get_raw("missing", 42) == 42

    def test_empty_dict_uses_defaults(self):
        app_config = AppConfig.from_dict({})
        assert app_config.decomposition == DecompositionConfig()
        assert app_config.export == ExportConfig()
        assert app_config.output_dir == Path("Output")

    def test_file_paths(self):
        paths = FilePathsConfig.from_dict({"input_dir": "radar", "log_dir": "out/logs"})
        assert paths.input_path == Path("radar")
        assert paths.output_path == Path("Output")
        assert paths.log_path == Path("out/logs")


class TestDecompositionConfig:
    """Validation of engine settings."""

    def test_defaults(self):
        config = DecompositionConfig()
        assert config.sliver_min_vertices == 11
        assert config.overlay_grid_size is None
        assert config.validate_results

    def test_zero_threshold_allowed(self):
        assert DecompositionConfig(sliver_min_vertices=0).sliver_min_vertices == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sliver_min_vertices": -1},
            {"overlay_grid_size": 0.0},
            {"overlay_grid_size": -1e-6},
            {"name_separator": ""},
            {"maximal_label": ""},
        ],
    )
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            DecompositionConfig(**kwargs)


class TestTagConfig:
    """Tag pattern matching."""

    def test_flight_levels(self):
        config = TagConfig()
        assert config.is_valid("FL100")
        assert config.is_valid("FL045")
        assert not config.is_valid("FL10")
        assert not config.is_valid("fl100")
        assert not config.is_valid("FL1000")
        assert not config.is_valid(None)

    def test_invalid_default(self):
        with pytest.raises(ValueError):
            TagConfig(default="100")

    def test_invalid_regex(self):
        with pytest.raises(ValueError):
            TagConfig(pattern="FL(")


class TestParallelConfig:
    """Worker count selection."""

    def test_sequential(self):
        assert ParallelConfig.sequential().effective_worker_count(1000) == 1

    def test_below_threshold(self):
        config = ParallelConfig(min_combinations_for_parallel=16)
        assert config.effective_worker_count(15) == 1

    def test_capped_by_combinations(self):
        config = ParallelConfig(max_workers=8, min_combinations_for_parallel=1)
        assert config.effective_worker_count(3) == 3

    def test_explicit_workers(self):
        config = ParallelConfig(max_workers=2, min_combinations_for_parallel=1)
        assert config.effective_worker_count(100) == 2

    def test_auto_workers_bounded(self):
        config = ParallelConfig(optimal_workers_default=4, min_combinations_for_parallel=1)
        assert 1 <= config.effective_worker_count(100) <= 4

    @pytest.mark.parametrize(
        "kwargs",
        [{"backend": "dask"}, {"max_workers": 0}, {"max_workers": -2}],
    )
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ParallelConfig(**kwargs)


class TestOtherSections:
    """Quality control, export and style settings."""

    def test_suffixes_lowercased(self):
        config = QualityControlConfig.from_dict({"supported_suffixes": [".KML", ".Kmz"]})
        assert config.supported_suffixes == (".kml", ".kmz")

    def test_suffix_needs_dot(self):
        with pytest.raises(ValueError):
            QualityControlConfig(supported_suffixes=("kml",))

    def test_png_dpi(self):
        with pytest.raises(ValueError):
            ExportConfig(png_dpi=0)

    def test_palette_keys_from_strings(self):
        style = KmlStyleConfig.from_dict({"multiplicity_colors": {"2": "ff0000ff"}})
        assert style.multiplicity_color(2) == "ff0000ff"
        assert style.multiplicity_color(3) == style.default_multi

    def test_rejects_bad_colour(self):
        with pytest.raises(ValueError):
            KmlStyleConfig(original="green")

"""
Unit tests for the decomposition engine.

Tests:
1. Reference scenarios (disjoint, coincident, one pairwise overlap)
2. Maximal / no-maximal ring reduction branches
3. Partition property and totals (area and sampled points)
4. Multiplicity monotonicity of the enumerated levels
5. Sliver rule inside the reducer
6. Parallel and sequential evaluation give identical results
7. Error taxonomy (insufficient sources, duplicate names, invalid geometry)

Run with: python -m pytest Multicoverage_Analysis/_tests/test_decomposition.py -v
"""

import pickle
from typing import List, Sequence, Tuple

import numpy as np
import pytest
import shapely
from shapely.geometry import Point, Polygon, box

import Multicoverage_Analysis.decomposition as decomposition
from Multicoverage_Analysis.config_types import DecompositionConfig, ParallelConfig
from Multicoverage_Analysis.decomposition import (
    decompose_coverages,
    detect_maximal_coverage,
    enumerate_levels,
    get_decomposition_summary,
    reduce_rings,
)
from Multicoverage_Analysis.errors import (
    DuplicateSourceNameError,
    InsufficientSourcesError,
    InvalidGeometryError,
)
from Multicoverage_Analysis.models import DecompositionResult, Region, RegionKind

TAG = "FL100"
AREA_TOL = 1e-9
BOWTIE = Polygon([(0, 0), (2, 2), (2, 0), (0, 2)])


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def make_sources(geoms: Sequence, names: str = "ABCDEFG") -> List[Region]:
    return [
        Region.create(name, TAG, RegionKind.ORIGINAL, geom)
        for name, geom in zip(names, geoms)
    ]


def disk(x: float, y: float, r: float = 1.0):
    """Buffered point: 65 coordinates, well above the sliver threshold."""
    return Point(x, y).buffer(r)


def sample_points(result: DecompositionResult, n: int = 4000) -> Tuple[np.ndarray, np.ndarray]:
    """Random points inside the total coverage."""
    rng = np.random.default_rng(42)
    minx, miny, maxx, maxy = result.total.geometry.bounds
    xs = rng.uniform(minx, maxx, n)
    ys = rng.uniform(miny, maxy, n)
    inside = shapely.contains_xy(result.total.geometry, xs, ys)
    return xs[inside], ys[inside]


def claims_per_point(result: DecompositionResult, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    claims = np.zeros(len(xs), dtype=int)
    for region in result.exclusive_layers():
        if not region.is_empty:
            claims += shapely.contains_xy(region.geometry, xs, ys).astype(int)
    return claims


def assert_partition(result: DecompositionResult) -> None:
    """Exclusive layers are pairwise disjoint and cover the total exactly."""
    layers = [r for r in result.exclusive_layers() if not r.is_empty]
    for i, a in enumerate(layers):
        for b in layers[i + 1 :]:
            assert a.geometry.intersection(b.geometry).area < AREA_TOL
    assert sum(r.area for r in layers) == pytest.approx(result.total.area, rel=1e-9)

    xs, ys = sample_points(result)
    assert len(xs) > 100
    assert (claims_per_point(result, xs, ys) == 1).all()


@pytest.fixture
def triple_disks() -> List[Region]:
    """Three disks sharing a common core (maximal coverage exists)."""
    return make_sources([disk(0, 0), disk(1, 0), disk(0.5, 0.8)])


@pytest.fixture
def triple_plus_side_disk() -> List[Region]:
    """ABC share a core; D only overlaps B (no maximal coverage)."""
    return make_sources([disk(0, 0), disk(1, 0), disk(0.5, 0.8), disk(2.5, 0)])


# ═══════════════════════════════════════════════════════════════════════════
# REFERENCE SCENARIOS
# ═══════════════════════════════════════════════════════════════════════════


class TestReferenceScenarios:
    """Disjoint, coincident and single-overlap inputs."""

    def test_pairwise_disjoint_squares(self):
        sources = make_sources([box(0, 0, 1, 1), box(2, 0, 3, 1), box(4, 0, 5, 1)])
        result = decompose_coverages(sources)

        assert result.levels == ()
        assert len(result.rings) == 0
        assert result.maximal is None
        assert not result.has_overlap
        assert result.max_multiplicity == 1
        assert result.multiple_total.is_empty

        assert len(result.simples) == 3
        for simple, source in zip(result.simples, sources):
            assert simple.name == source.name
            assert simple.geometry.equals(source.geometry)

        union = shapely.union_all([s.geometry for s in sources])
        assert result.simple_total.geometry.equals(union)
        assert result.total.geometry.equals(union)

    def test_coincident_sources(self):
        shared = box(0, 0, 2, 2)
        result = decompose_coverages(make_sources([shared, box(0, 0, 2, 2)]))

        assert result.has_maximal
        assert result.maximal.name == "(MAX)"
        assert result.maximal.kind is RegionKind.MULTI
        assert result.maximal.multiplicity == 2
        assert result.maximal.geometry.equals(shared)

        assert all(s.is_empty for s in result.simples)
        assert len(result.simples) == 2
        assert result.simple_total.is_empty
        assert result.multiple_total.geometry.equals(shared)
        assert result.levels == ()
        assert len(result.rings) == 0

    def test_single_pairwise_overlap(self):
        a, b, c = box(0, 0, 2, 2), box(1, 0, 3, 2), box(5, 0, 6, 1)
        result = decompose_coverages(make_sources([a, b, c]))

        assert result.maximal is None
        assert len(result.rings) == 1
        ring = result.rings.members[0]
        assert ring.kind is RegionKind.MULTI_TOTAL
        assert ring.multiplicity == 2
        assert ring.geometry.equals(box(1, 0, 2, 2))

        assert len(result.levels) == 1
        assert [m.name for m in result.levels[0]] == ["A () B"]

        simples = {s.name: s for s in result.simples}
        assert simples["A"].geometry.equals(box(0, 0, 1, 2))
        assert simples["B"].geometry.equals(box(2, 0, 3, 2))
        assert simples["C"].geometry.equals(c)
        assert result.multiple_total.geometry.equals(box(1, 0, 2, 2))


# ═══════════════════════════════════════════════════════════════════════════
# RING REDUCTION BRANCHES
# ═══════════════════════════════════════════════════════════════════════════


class TestMaximalBranch:
    """Ring reduction seeded with the maximal region."""

    def test_maximal_and_lower_ring(self, triple_disks):
        result = decompose_coverages(triple_disks)

        assert result.has_maximal
        assert result.maximal.name == "(MAX)"
        assert result.maximal.multiplicity == 3
        assert result.max_multiplicity == 3

        assert [r.multiplicity for r in result.rings] == [2]
        assert len(result.levels) == 1
        assert [m.name for m in result.levels[0]] == ["A () B", "A () C", "B () C"]

        # Reduced level-2 members exclude the triple core
        for member in result.levels[0]:
            assert member.geometry.intersection(result.maximal.geometry).area < AREA_TOL

    def test_partition(self, triple_disks):
        assert_partition(decompose_coverages(triple_disks))

    def test_totals(self, triple_disks):
        result = decompose_coverages(triple_disks)
        multiple = result.multiple_total.geometry
        simple = result.simple_total.geometry

        assert multiple.union(simple).symmetric_difference(
            result.total.geometry
        ).area < AREA_TOL
        assert multiple.intersection(simple).area < AREA_TOL
        assert result.multiple_total.kind is RegionKind.MULTI_TOTAL
        assert result.multiple_total.multiplicity == 0

    def test_fully_consumed_level_is_dropped(self):
        same = disk(0, 0)
        result = decompose_coverages(make_sources([same, disk(0, 0), disk(0, 0)]))

        assert result.has_maximal
        assert result.levels == ()
        assert len(result.rings) == 0
        assert all(s.is_empty for s in result.simples)
        assert result.multiple_total.area == pytest.approx(same.area)


class TestNoMaximalBranch:
    """Ring reduction seeded with the highest surviving level."""

    def test_rings_per_level(self, triple_plus_side_disk):
        result = decompose_coverages(triple_plus_side_disk)

        assert not result.has_maximal
        assert result.max_multiplicity == 3
        assert [r.multiplicity for r in result.rings] == [3, 2]
        assert [len(level) for level in result.levels] == [1, 4]
        assert result.levels[0].members[0].name == "A () B () C"
        assert [m.name for m in result.levels[1]] == [
            "A () B",
            "A () C",
            "B () C",
            "B () D",
        ]

    def test_top_ring_is_its_level_union(self, triple_plus_side_disk):
        result = decompose_coverages(triple_plus_side_disk)
        top_ring = result.rings.members[0]
        abc = result.levels[0].members[0]
        assert top_ring.geometry.equals(abc.geometry)

    def test_partition(self, triple_plus_side_disk):
        assert_partition(decompose_coverages(triple_plus_side_disk))


class TestReducerDirect:
    """Stage functions called one at a time."""

    def test_reduce_rings_does_not_modify_levels(self, triple_disks):
        levels = enumerate_levels(triple_disks, TAG)
        areas_before = [[m.area for m in level] for level in levels]

        maximal, lower = detect_maximal_coverage(levels, len(triple_disks))
        reduce_rings(lower, maximal, TAG)

        assert [[m.area for m in level] for level in levels] == areas_before

    def test_detect_maximal_without_full_level(self, triple_plus_side_disk):
        levels = enumerate_levels(triple_plus_side_disk, TAG)
        maximal, lower = detect_maximal_coverage(levels, 4)
        assert maximal is None
        assert len(lower) == len(levels)

    def test_detect_maximal_uses_label(self, triple_disks):
        levels = enumerate_levels(triple_disks, TAG)
        maximal, lower = detect_maximal_coverage(levels, 3, label="ALL")
        assert maximal.name == "ALL"
        assert [level.multiplicity for level in lower] == [2]

    def test_reduce_without_levels(self):
        survivors, rings = reduce_rings([], None, TAG)
        assert survivors == []
        assert len(rings) == 0


class TestSliverRuleInReducer:
    """Subtraction results below the threshold are treated as empty."""

    SQUARES = [box(0, 0, 2, 2), box(1, 0, 3, 2), box(1.5, 0, 2, 2)]

    def test_small_ring_discarded_by_default(self):
        # Level-2 leftover is a 5-coordinate rectangle
        result = decompose_coverages(make_sources(self.SQUARES))
        assert result.has_maximal
        assert len(result.rings) == 0
        assert result.levels == ()

    def test_small_ring_kept_when_rule_disabled(self):
        config = DecompositionConfig(sliver_min_vertices=0)
        result = decompose_coverages(make_sources(self.SQUARES), config=config)

        assert [r.multiplicity for r in result.rings] == [2]
        assert result.rings.members[0].area == pytest.approx(1.0)
        assert [m.name for m in result.levels[0]] == ["A () B"]
        assert_partition(result)

    def test_sliver_overlap_stays_in_simple_zones(self):
        # Discarded level-2 leftover is not part of the multiple total
        result = decompose_coverages(make_sources(self.SQUARES))
        simples = {s.name: s.geometry for s in result.simples}

        assert result.multiple_total.geometry.equals(box(1.5, 0, 2, 2))
        assert simples["A"].intersection(simples["B"]).area == pytest.approx(1.0)

    def test_small_lower_ring_discarded_without_maximal(self):
        sources = make_sources(self.SQUARES + [box(10, 0, 11, 1)])
        result = decompose_coverages(sources)

        assert not result.has_maximal
        assert [r.multiplicity for r in result.rings] == [3]
        assert len(result.levels) == 1
        assert [m.name for m in result.levels[0]] == ["A () B () C"]

    def test_small_lower_ring_kept_without_maximal_when_rule_disabled(self):
        sources = make_sources(self.SQUARES + [box(10, 0, 11, 1)])
        config = DecompositionConfig(sliver_min_vertices=0)
        result = decompose_coverages(sources, config=config)

        assert not result.has_maximal
        assert [r.multiplicity for r in result.rings] == [3, 2]
        assert result.rings.members[1].area == pytest.approx(1.0)
        assert [m.name for m in result.levels[1]] == ["A () B"]
        assert_partition(result)

    def test_level_dropped_with_its_ring(self, triple_disks, monkeypatch):
        original = decomposition.difference_without_slivers

        def empty_rings(a, b, **kwargs):
            if kwargs.get("identity", "").startswith("ring"):
                return Polygon()
            return original(a, b, **kwargs)

        monkeypatch.setattr(decomposition, "difference_without_slivers", empty_rings)
        levels = enumerate_levels(triple_disks, TAG)
        maximal, lower = detect_maximal_coverage(levels, len(triple_disks))
        survivors, rings = reduce_rings(lower, maximal, TAG)

        assert maximal is not None
        assert survivors == []
        assert len(rings) == 0


# ═══════════════════════════════════════════════════════════════════════════
# LEVEL ENUMERATION PROPERTIES
# ═══════════════════════════════════════════════════════════════════════════


class TestLevelEnumeration:
    """Properties of the intersection levels before reduction."""

    def test_levels_highest_first_and_non_empty(self, triple_plus_side_disk):
        levels = enumerate_levels(triple_plus_side_disk, TAG)
        assert [level.multiplicity for level in levels] == [3, 2]
        for level in levels:
            assert len(level) > 0
            assert all(m.kind is RegionKind.MULTI for m in level)
            assert all(not m.is_empty for m in level)

    def test_multiplicity_monotonicity(self):
        sources = make_sources(
            [disk(0, 0), disk(1, 0), disk(0.5, 0.8), disk(0.5, -0.6), disk(1.8, 0.4)]
        )
        levels = enumerate_levels(sources, TAG)
        unions = {
            level.multiplicity: shapely.union_all(list(level.geometries))
            for level in levels
        }
        for m in sorted(unions):
            if m + 1 in unions:
                assert unions[m + 1].difference(unions[m]).area < AREA_TOL

    def test_tag_and_separator_propagate(self):
        config = DecompositionConfig(name_separator="+")
        sources = make_sources([box(0, 0, 2, 2), box(1, 0, 3, 2)])
        levels = enumerate_levels(sources, "FL200", config)
        member = levels[0].members[0]
        assert member.name == "A+B"
        assert member.tag == "FL200"
        assert levels[0].name == "A+B"


class TestParallelEquivalence:
    """joblib evaluation order never changes the result."""

    def test_parallel_matches_sequential(self):
        sources = make_sources(
            [
                disk(0, 0),
                disk(1, 0),
                disk(0.5, 0.8),
                disk(0.5, -0.6),
                disk(1.8, 0.4),
                disk(-0.9, 0.5),
            ]
        )
        parallel = ParallelConfig(
            enabled=True,
            max_workers=3,
            min_combinations_for_parallel=1,
            backend="threading",
        )
        seq = decompose_coverages(sources, parallel=ParallelConfig.sequential())
        par = decompose_coverages(sources, parallel=parallel)

        assert [[m.name for m in lv] for lv in seq.levels] == [
            [m.name for m in lv] for lv in par.levels
        ]
        assert [r.multiplicity for r in seq.rings] == [r.multiplicity for r in par.rings]
        for a, b in zip(seq.layers(), par.layers()):
            assert a == b
            assert a.geometry.equals(b.geometry)


# ═══════════════════════════════════════════════════════════════════════════
# RESULT SHAPE, ERRORS, SUMMARY
# ═══════════════════════════════════════════════════════════════════════════


class TestResultShape:
    """Layer order and metadata."""

    def test_layer_order(self):
        sources = make_sources([box(0, 0, 2, 2), box(1, 0, 3, 2), box(5, 0, 6, 1)])
        kinds = [r.kind for r in decompose_coverages(sources).layers()]
        assert kinds == [
            RegionKind.ORIGINAL,
            RegionKind.ORIGINAL,
            RegionKind.ORIGINAL,
            RegionKind.TOTAL,
            RegionKind.MULTI_TOTAL,
            RegionKind.MULTI_TOTAL,
            RegionKind.MULTI,
            RegionKind.SIMPLE,
            RegionKind.SIMPLE,
            RegionKind.SIMPLE,
            RegionKind.SIMPLE_TOTAL,
        ]

    def test_tag_defaults_to_first_source(self, triple_disks):
        result = decompose_coverages(triple_disks)
        assert result.tag == TAG

    def test_explicit_tag_on_every_derived_region(self, triple_disks):
        result = decompose_coverages(triple_disks, tag="FL300")
        derived = [r for r in result.layers() if r.kind is not RegionKind.ORIGINAL]
        assert all(r.tag == "FL300" for r in derived)
        assert all(s.tag == TAG for s in result.sources)


class TestErrors:
    """Error taxonomy."""

    def test_no_sources(self):
        with pytest.raises(InsufficientSourcesError):
            decompose_coverages([])

    def test_single_source(self):
        with pytest.raises(InsufficientSourcesError) as exc_info:
            decompose_coverages(make_sources([box(0, 0, 1, 1)]))
        assert exc_info.value.count == 1

    def test_duplicate_names(self):
        sources = [
            Region.create("A", TAG, RegionKind.ORIGINAL, box(0, 0, 1, 1)),
            Region.create("A", TAG, RegionKind.ORIGINAL, box(2, 0, 3, 1)),
        ]
        with pytest.raises(DuplicateSourceNameError):
            decompose_coverages(sources)

    def test_invalid_geometry_reports_combination(self):
        sources = make_sources([BOWTIE, box(0, 0, 2, 2), box(0, 0, 3, 2)])
        with pytest.raises(InvalidGeometryError) as exc_info:
            decompose_coverages(sources, parallel=ParallelConfig.sequential())
        assert exc_info.value.identity == "A () B () C"

    def test_invalid_geometry_reports_combination_in_parallel(self):
        # Only the B () C () A fold reaches the bowtie; the others hit D first
        sources = make_sources(
            [box(0, 0, 2, 2), box(0, 0, 3, 2), box(10, 10, 11, 11), BOWTIE],
            names="BCDA",
        )
        parallel = ParallelConfig(
            enabled=True,
            max_workers=2,
            min_combinations_for_parallel=1,
            backend="threading",
        )
        with pytest.raises(InvalidGeometryError) as exc_info:
            decompose_coverages(sources, parallel=parallel)
        assert exc_info.value.identity == "B () C () A"

    def test_invalid_geometry_error_pickles(self):
        error = pickle.loads(pickle.dumps(InvalidGeometryError("A () B", "Self-intersection")))
        assert error.identity == "A () B"
        assert error.reason == "Self-intersection"
        assert str(error) == "Invalid geometry for 'A () B': Self-intersection"


class TestSummary:
    """get_decomposition_summary statistics."""

    def test_summary_values(self):
        sources = make_sources([box(0, 0, 2, 2), box(1, 0, 3, 2), box(5, 0, 6, 1)])
        summary = get_decomposition_summary(decompose_coverages(sources))

        assert summary["num_sources"] == 3
        assert summary["num_rings"] == 1
        assert summary["has_maximal"] is False
        assert summary["max_multiplicity"] == 2
        assert summary["total_area"] == pytest.approx(7.0)
        assert summary["multiple_total_area"] == pytest.approx(2.0)
        assert summary["simple_total_area"] == pytest.approx(5.0)
        assert summary["ring_areas"] == {2: pytest.approx(2.0)}
        assert summary["simple_areas"]["C"] == pytest.approx(1.0)
        assert summary["overlap_pct"] == pytest.approx(200 / 7)

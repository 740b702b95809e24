#!/usr/bin/env python3
"""
Multicoverage Decomposition Engine

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Split N overlapping source coverages into mutually disjoint
layers by overlap multiplicity: per-source simple zones, one ring per
multiplicity level and the maximal region covered by every source.

Pipeline (each stage feeds the next, any geometry failure aborts the run):
1. enumerate_levels: Intersect every C(N, m) combination for m = N..2
2. detect_maximal_coverage: Pick out the level-N region, if any
3. reduce_rings: Excise higher-multiplicity area level by level
4. derive_simple_and_totals: Simple zones, simple total, multiple total
5. decompose_coverages: Drives 1-4 and assembles the DecompositionResult

Concurrency:
- Intersections within one level are independent and are evaluated through
  joblib (n_jobs=1 below min_combinations_for_parallel). Results are always
  consumed in combination order, so output never depends on scheduling.
- Ring reduction is strictly sequential: each level needs the running area
  accumulated from every higher level.

CONFIGURATION ARCHITECTURE:
- No CONFIG access - DecompositionConfig / ParallelConfig are parameters
- Sliver threshold and overlay precision are explicit config values

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from joblib import Parallel, delayed
from shapely.geometry.base import BaseGeometry

from Multicoverage_Analysis.combinations import count_combinations, generate_combinations
from Multicoverage_Analysis.config_types import DecompositionConfig, ParallelConfig
from Multicoverage_Analysis.errors import (
    DuplicateSourceNameError,
    InsufficientSourcesError,
)
from Multicoverage_Analysis.geometry_ops import (
    difference,
    difference_without_slivers,
    empty_region,
    intersect,
    is_empty,
    union_all,
)
from Multicoverage_Analysis.models import (
    CombinationGroup,
    DecompositionResult,
    Region,
    RegionKind,
)

_logger = logging.getLogger("Multicoverage.Decomposition")


# ═══════════════════════════════════════════════════════════════════════════
# 🔀 LEVEL ENUMERATION
# ═══════════════════════════════════════════════════════════════════════════


def _intersect_combination(
    combo_name: str,
    geometries: Tuple[BaseGeometry, ...],
    grid_size: Optional[float],
    validate_result: bool,
) -> BaseGeometry:
    """
    Left-fold intersection of one combination's geometries.

    Worker function: receives plain geometries only, so it can run under any
    joblib backend. Stops early once the running intersection is empty.
    """
    result = geometries[0]
    for geom in geometries[1:]:
        result = intersect(
            result,
            geom,
            grid_size=grid_size,
            identity=combo_name,
            validate_result=validate_result,
        )
        if is_empty(result):
            return empty_region()
    return result


def _evaluate_level(
    combos: List[Tuple[str, ...]],
    by_name: Dict[str, Region],
    config: DecompositionConfig,
    parallel: ParallelConfig,
    log: logging.Logger,
) -> List[BaseGeometry]:
    """Intersect every combination of one level, in combination order."""
    n_workers = parallel.effective_worker_count(len(combos))
    tasks = [
        (
            config.name_separator.join(combo),
            tuple(by_name[name].geometry for name in combo),
        )
        for combo in combos
    ]

    def _run(n_jobs: int) -> List[BaseGeometry]:
        return list(
            Parallel(n_jobs=n_jobs, backend=parallel.backend, verbose=parallel.verbose)(
                delayed(_intersect_combination)(
                    combo_name,
                    geometries,
                    config.overlay_grid_size,
                    config.validate_results,
                )
                for combo_name, geometries in tasks
            )
        )

    if n_workers == 1:
        return _run(1)

    log.debug(f"      ⚡ {len(combos)} combinations on {n_workers} workers")
    try:
        return _run(n_workers)
    except (RuntimeError, OSError) as e:
        if not parallel.fallback_on_error:
            raise
        log.warning(f"   ⚠️ Parallel dispatch failed: {e}")
        log.info("   📋 Falling back to sequential evaluation...")
        return _run(1)


def enumerate_levels(
    sources: Sequence[Region],
    tag: str,
    config: Optional[DecompositionConfig] = None,
    parallel: Optional[ParallelConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CombinationGroup]:
    """
    Intersect every combination of sources, level by level.

    For every multiplicity m from N down to 2, all C(N, m) combinations are
    intersected as a left fold in source order. Empty intersections are
    discarded; a level with no surviving combination is omitted entirely.

    Args:
        sources: The N source regions (distinct names)
        tag: Tag carried by every derived region
        config: Decomposition settings (defaults if None)
        parallel: Parallel settings (defaults if None)
        logger: Optional logger instance

    Returns:
        Non-empty level groups, highest multiplicity first. Each member is a
        MULTI region named by its joined combination names.
    """
    config = config or DecompositionConfig()
    parallel = parallel or ParallelConfig()
    log = logger or _logger

    names = [s.name for s in sources]
    by_name = {s.name: s for s in sources}
    n = len(names)

    levels: List[CombinationGroup] = []
    for m in range(n, 1, -1):
        combos = list(generate_combinations(names, m))
        geometries = _evaluate_level(combos, by_name, config, parallel, log)

        members = [
            Region.create(
                name=config.name_separator.join(combo),
                tag=tag,
                kind=RegionKind.MULTI,
                geometry=geom,
                multiplicity=m,
            )
            for combo, geom in zip(combos, geometries)
            if not is_empty(geom)
        ]

        log.info(
            f"   🔀 Level {m}: {len(members)}/{count_combinations(n, m)} "
            f"combinations overlap"
        )
        if members:
            levels.append(
                CombinationGroup(
                    label=f"multi {m}",
                    tag=tag,
                    members=tuple(members),
                    separator=config.name_separator,
                )
            )

    return levels


# ═══════════════════════════════════════════════════════════════════════════
# 🎯 MAXIMAL COVERAGE
# ═══════════════════════════════════════════════════════════════════════════


def detect_maximal_coverage(
    levels: Sequence[CombinationGroup],
    n_sources: int,
    label: str = "(MAX)",
    logger: Optional[logging.Logger] = None,
) -> Tuple[Optional[Region], List[CombinationGroup]]:
    """
    Split the level-N region off the enumerated levels.

    Level N holds at most one combination (all sources), so when it
    survived enumeration it is the maximal-coverage region.

    Args:
        levels: Enumerated level groups, highest multiplicity first
        n_sources: Number of sources N
        label: Name given to the maximal region
        logger: Optional logger instance

    Returns:
        Tuple of (maximal region or None, remaining levels)
    """
    log = logger or _logger

    if not levels or levels[0].multiplicity != n_sources:
        log.info("   ℹ️ No maximal coverage (no area shared by all sources)")
        return None, list(levels)

    maximal = levels[0].members[0].renamed(label)
    log.info(
        f"   🎯 Maximal coverage {label}: multiplicity {n_sources}, "
        f"area {maximal.area:.6g}"
    )
    return maximal, list(levels[1:])


# ═══════════════════════════════════════════════════════════════════════════
# 💍 RING REDUCTION
# ═══════════════════════════════════════════════════════════════════════════


def _ring_region(tag: str, multiplicity: int, geometry: BaseGeometry) -> Region:
    return Region.create(
        name="",
        tag=tag,
        kind=RegionKind.MULTI_TOTAL,
        geometry=geometry,
        multiplicity=multiplicity,
    )


def reduce_rings(
    levels: Sequence[CombinationGroup],
    maximal: Optional[Region],
    tag: str,
    config: Optional[DecompositionConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[List[CombinationGroup], CombinationGroup]:
    """
    Turn overlapping per-level intersections into disjoint rings.

    The running area starts as the maximal region or, without one, as the
    union of the highest surviving level (whose ring is that union). Each
    lower level, in descending order:

    1. subtracts the running area from every member (sliver rule applied)
    2. drops members that became empty
    3. ring = union(reduced members) - running area (sliver rule applied)
    4. running area |= the level's union BEFORE subtraction

    A level survives only together with its ring: when no member is left,
    or the ring itself is empty, both are dropped. Regions are never
    modified; reduced members are new Region values.

    Sliver trade-off: area discarded as a sliver (member or ring) is never
    added to the multiple total, so it stays inside every simple zone that
    covers it. Simple zones may then overlap by up to the discarded area;
    set sliver_min_vertices=0 for an exact partition.

    Args:
        levels: Level groups below the maximal level, highest first
        maximal: Maximal-coverage region, if any
        tag: Tag carried by every ring
        config: Decomposition settings (defaults if None)
        logger: Optional logger instance

    Returns:
        Tuple of (surviving level groups, ring group) - both highest first
    """
    config = config or DecompositionConfig()
    log = logger or _logger
    grid_size = config.overlay_grid_size
    validate_result = config.validate_results
    min_vertices = config.sliver_min_vertices

    survivors: List[CombinationGroup] = []
    rings: List[Region] = []
    pending = list(levels)

    if maximal is not None:
        running = maximal.geometry
    elif pending:
        top = pending.pop(0)
        running = union_all(
            top.geometries,
            grid_size=grid_size,
            identity=top.label,
            validate_result=validate_result,
        )
        survivors.append(top)
        rings.append(_ring_region(tag, top.multiplicity, running))
        log.info(
            f"   💍 Ring {top.multiplicity}: {len(top)} regions, "
            f"area {running.area:.6g} (seed)"
        )
    else:
        running = empty_region()

    for level in pending:
        m = level.multiplicity
        level_union = union_all(
            level.geometries,
            grid_size=grid_size,
            identity=level.label,
            validate_result=validate_result,
        )

        reduced: List[Region] = []
        for member in level:
            geom = difference_without_slivers(
                member.geometry,
                running,
                min_vertices=min_vertices,
                grid_size=grid_size,
                identity=member.name,
                validate_result=validate_result,
            )
            if is_empty(geom):
                log.debug(f"      🧹 {member.name}: consumed by higher levels")
                continue
            reduced.append(member.with_geometry(geom))

        ring_geom = empty_region()
        if reduced:
            ring_geom = difference_without_slivers(
                union_all(
                    [r.geometry for r in reduced],
                    grid_size=grid_size,
                    identity=level.label,
                    validate_result=validate_result,
                ),
                running,
                min_vertices=min_vertices,
                grid_size=grid_size,
                identity=f"ring {m}",
                validate_result=validate_result,
            )

        if is_empty(ring_geom):
            log.info(f"   💍 Ring {m}: empty after excising higher levels (pruned)")
        else:
            survivors.append(level.with_members(reduced))
            rings.append(_ring_region(tag, m, ring_geom))
            log.info(
                f"   💍 Ring {m}: {len(reduced)}/{len(level)} regions, "
                f"area {ring_geom.area:.6g}"
            )

        running = union_all(
            [running, level_union],
            grid_size=grid_size,
            identity=f"running area {m}",
            validate_result=validate_result,
        )

    ring_group = CombinationGroup(
        label="rings",
        tag=tag,
        members=tuple(rings),
        separator=config.name_separator,
    )
    return survivors, ring_group


# ═══════════════════════════════════════════════════════════════════════════
# 🧩 SIMPLE ZONES AND TOTALS
# ═══════════════════════════════════════════════════════════════════════════


def form_total_coverage(
    sources: Sequence[Region],
    tag: str,
    config: Optional[DecompositionConfig] = None,
) -> Region:
    """Union of every source (kind TOTAL)."""
    config = config or DecompositionConfig()
    geometry = union_all(
        [s.geometry for s in sources],
        grid_size=config.overlay_grid_size,
        identity="total",
        validate_result=config.validate_results,
    )
    return Region.create(name="", tag=tag, kind=RegionKind.TOTAL, geometry=geometry)


def derive_simple_and_totals(
    sources: Sequence[Region],
    rings: CombinationGroup,
    maximal: Optional[Region],
    tag: str,
    config: Optional[DecompositionConfig] = None,
    total: Optional[Region] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[CombinationGroup, Region, Region]:
    """
    Derive per-source simple zones and the two scalar totals.

    - multiple total = maximal region | every ring (area covered >= 2 times)
    - simple total = union(sources) - multiple total
    - simple zone of a source = source - multiple total (kept even if empty)

    Args:
        sources: The N source regions
        rings: Ring group from reduce_rings
        maximal: Maximal-coverage region, if any
        tag: Tag carried by every derived region
        config: Decomposition settings (defaults if None)
        total: Precomputed union of the sources (computed if None)
        logger: Optional logger instance

    Returns:
        Tuple of (simple zone group, simple total, multiple total)
    """
    config = config or DecompositionConfig()
    log = logger or _logger
    grid_size = config.overlay_grid_size
    validate_result = config.validate_results

    overlap_parts = [r.geometry for r in rings]
    if maximal is not None:
        overlap_parts.insert(0, maximal.geometry)
    intersection_total = union_all(
        overlap_parts,
        grid_size=grid_size,
        identity="multiple total",
        validate_result=validate_result,
    )

    if total is None:
        total = form_total_coverage(sources, tag, config)

    simple_total_geom = difference(
        total.geometry,
        intersection_total,
        grid_size=grid_size,
        identity="simple total",
        validate_result=validate_result,
    )

    simples = []
    for source in sources:
        geom = difference(
            source.geometry,
            intersection_total,
            grid_size=grid_size,
            identity=source.name,
            validate_result=validate_result,
        )
        if is_empty(geom):
            log.debug(f"      {source.name}: no area covered only by this source")
        simples.append(
            Region.create(
                name=source.name, tag=tag, kind=RegionKind.SIMPLE, geometry=geom
            )
        )

    simple_group = CombinationGroup(
        label="simple",
        tag=tag,
        members=tuple(simples),
        separator=config.name_separator,
    )
    simple_total = Region.create(
        name="", tag=tag, kind=RegionKind.SIMPLE_TOTAL, geometry=simple_total_geom
    )
    multiple_total = Region.create(
        name="", tag=tag, kind=RegionKind.MULTI_TOTAL, geometry=intersection_total
    )
    return simple_group, simple_total, multiple_total


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 PIPELINE DRIVER
# ═══════════════════════════════════════════════════════════════════════════


def _check_sources(sources: Sequence[Region]) -> None:
    if len(sources) < 2:
        raise InsufficientSourcesError(len(sources))
    seen = set()
    for source in sources:
        if source.name in seen:
            raise DuplicateSourceNameError(source.name)
        seen.add(source.name)


def decompose_coverages(
    sources: Sequence[Region],
    tag: Optional[str] = None,
    config: Optional[DecompositionConfig] = None,
    parallel: Optional[ParallelConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> DecompositionResult:
    """
    Decompose N source coverages into multiplicity layers.

    Runs LevelsEnumerated -> MaxDetected -> RingsReduced -> SimpleDerived.
    Pairwise-disjoint sources are a valid outcome: no levels, no rings, no
    maximal region, simple zones equal to the sources.

    Args:
        sources: At least 2 source regions with distinct names
        tag: Tag for every derived region (defaults to the first source's tag)
        config: Decomposition settings (defaults if None)
        parallel: Parallel settings (defaults if None)
        logger: Optional logger instance

    Returns:
        DecompositionResult

    Raises:
        InsufficientSourcesError: Fewer than 2 sources
        DuplicateSourceNameError: Two sources share a name
        InvalidGeometryError: A boolean operation failed or gave an invalid
            result (carries the combination / layer identity)
    """
    _check_sources(sources)
    config = config or DecompositionConfig()
    parallel = parallel or ParallelConfig()
    log = logger or _logger
    tag = sources[0].tag if tag is None else tag
    sources = tuple(sources)
    n = len(sources)

    log.info(f"🧮 Decomposing {n} coverages (tag={tag!r})...")

    levels = enumerate_levels(sources, tag, config, parallel, log)
    if not levels:
        log.info("   ℹ️ Sources are pairwise disjoint - no overlap at any level")

    maximal, lower_levels = detect_maximal_coverage(
        levels, n, config.maximal_label, log
    )
    survivors, rings = reduce_rings(lower_levels, maximal, tag, config, log)

    total = form_total_coverage(sources, tag, config)
    simples, simple_total, multiple_total = derive_simple_and_totals(
        sources, rings, maximal, tag, config, total=total, logger=log
    )

    result = DecompositionResult(
        sources=sources,
        total=total,
        levels=tuple(survivors),
        rings=rings,
        maximal=maximal,
        simples=simples,
        simple_total=simple_total,
        multiple_total=multiple_total,
    )

    log.info(
        f"   ✅ Decomposition complete: {len(rings)} rings, "
        f"max multiplicity {result.max_multiplicity}, "
        f"multiple total {multiple_total.area:.6g}, "
        f"simple total {simple_total.area:.6g}"
    )
    return result


# ═══════════════════════════════════════════════════════════════════════════
# 📊 SUMMARY STATISTICS
# ═══════════════════════════════════════════════════════════════════════════


def get_decomposition_summary(result: DecompositionResult) -> Dict[str, Any]:
    """
    Get summary statistics for a decomposition.

    Args:
        result: DecompositionResult from decompose_coverages

    Returns:
        Dict with summary statistics
    """
    total_area = result.total.area
    multiple_area = result.multiple_total.area

    return {
        "tag": result.tag,
        "num_sources": len(result.sources),
        "num_levels": len(result.levels),
        "num_rings": len(result.rings),
        "has_maximal": result.has_maximal,
        "max_multiplicity": result.max_multiplicity,
        "total_area": total_area,
        "simple_total_area": result.simple_total.area,
        "multiple_total_area": multiple_area,
        "maximal_area": result.maximal.area if result.maximal is not None else 0.0,
        "ring_areas": {r.multiplicity: r.area for r in result.rings},
        "simple_areas": {s.name: s.area for s in result.simples},
        "overlap_pct": 100 * multiple_area / total_area if total_area > 0 else 0,
    }

#!/usr/bin/env python3
"""
Multicoverage Analysis - Main Entry Point

Decomposes the overlapping coverages found in an input directory into
simple zones, per-multiplicity rings and the maximal-coverage region, and
writes them as a multilayer KMZ (plus optional GeoJSON / CSV / PNG).

Usage:
    python -m Multicoverage_Analysis.main
    python -m Multicoverage_Analysis.main --input-dir Input --output-dir Output --tag FL100

    Or, once installed:
    multicoverage --tag FL100

Missing input/output directories and tag are asked for interactively.
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

# Fix Windows console encoding for emoji support
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from Multicoverage_Analysis.config import CONFIG
from Multicoverage_Analysis.config_types import AppConfig, ExportConfig, TagConfig
from Multicoverage_Analysis.decomposition import (
    decompose_coverages,
    get_decomposition_summary,
)
from Multicoverage_Analysis.errors import InvalidTagError, MulticoverageError
from Multicoverage_Analysis.exporters import (
    default_bundle_name,
    export_all_decomposition_outputs,
)
from Multicoverage_Analysis.source_loader import load_sources

# ═══════════════════════════════════════════════════════════════════════════
# 🎯 MODULE-LEVEL CONFIG (Single Source of Truth)
# ═══════════════════════════════════════════════════════════════════════════
# Create typed AppConfig once at module load time.
APP_CONFIG = AppConfig.from_dict(CONFIG)

LOGGER_NAME = "Multicoverage"


# ═══════════════════════════════════════════════════════════════════════════
# 📋 LOGGING SETUP
# ═══════════════════════════════════════════════════════════════════════════


def setup_logging(
    tag: str, log_dir: Optional[Path] = None
) -> Tuple[logging.Logger, Path]:
    """Configure logging with file and console handlers.

    Every "Multicoverage.*" module logger propagates into these handlers.

    Returns:
        Tuple of (logger, run_log_folder)

    Folder naming convention:
        run_{tag}_{MMDD}_{HHMM}, e.g. run_FL100_0129_1028
    """
    log_dir = Path(log_dir) if log_dir is not None else APP_CONFIG.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    # Compact timestamp: MMDD_HHMM
    timestamp = datetime.now().strftime("%m%d_%H%M")
    run_log_folder = log_dir / f"run_{tag}_{timestamp}"
    run_log_folder.mkdir(parents=True, exist_ok=True)

    log_path = run_log_folder / "main.log"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    # File handler
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    return logger, run_log_folder


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ OPERATOR INPUT
# ═══════════════════════════════════════════════════════════════════════════


def validate_tag(tag: str, tag_config: Optional[TagConfig] = None) -> str:
    """Return the stripped tag, or raise InvalidTagError."""
    tag_config = tag_config or APP_CONFIG.tag
    tag = tag.strip()
    if not tag_config.is_valid(tag):
        raise InvalidTagError(tag, tag_config.pattern)
    return tag


def prompt_tag(
    tag_config: Optional[TagConfig] = None,
    input_fn: Callable[[str], str] = input,
) -> str:
    """Ask for the tag until the answer matches the configured pattern."""
    tag_config = tag_config or APP_CONFIG.tag
    while True:
        answer = input_fn("Flight level tag (e.g. FL100): ")
        try:
            return validate_tag(answer, tag_config)
        except InvalidTagError as e:
            print(f"   ⚠️ {e}")


def prompt_directory(
    question: str,
    default: str,
    input_fn: Callable[[str], str] = input,
) -> Path:
    """Ask for a directory; an empty answer keeps the default."""
    answer = input_fn(f"{question} [{default}]: ").strip().strip('"')
    return Path(answer or default)


def resolve_tag(
    cli_tag: Optional[str],
    tag_config: Optional[TagConfig] = None,
    input_fn: Callable[[str], str] = input,
) -> str:
    """
    Tag from the command line, else the configured default, else a prompt.

    Raises:
        InvalidTagError: The command-line tag does not match the pattern
    """
    tag_config = tag_config or APP_CONFIG.tag
    if cli_tag is not None:
        return validate_tag(cli_tag, tag_config)
    if tag_config.default is not None:
        return tag_config.default
    return prompt_tag(tag_config, input_fn)


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 ANALYSIS WORKFLOW
# ═══════════════════════════════════════════════════════════════════════════


def run_multicoverage_analysis(
    input_dir: Path,
    output_dir: Path,
    tag: str,
    app_config: Optional[AppConfig] = None,
    export_config: Optional[ExportConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Run load -> decompose -> export for one input directory.

    Args:
        input_dir: Directory with one coverage file per source
        output_dir: Destination of the exported files
        tag: Flight level tag carried by every layer
        app_config: Typed configuration (APP_CONFIG if None)
        export_config: Format toggles (app_config.export if None)
        logger: Optional logger instance

    Returns:
        Dict with "result", "summary", "exports" and "timings"
    """
    app_config = app_config or APP_CONFIG
    export_config = export_config or app_config.export
    log = logger or logging.getLogger(LOGGER_NAME)

    timings: Dict[str, float] = {}
    total_start = time.perf_counter()

    # Phase 1: Load sources
    start = time.perf_counter()
    sources = load_sources(input_dir, tag, app_config.quality_control, log)
    timings["load"] = time.perf_counter() - start

    # Phase 2: Decompose
    start = time.perf_counter()
    result = decompose_coverages(
        sources,
        tag=tag,
        config=app_config.decomposition,
        parallel=app_config.parallel,
        logger=log,
    )
    timings["decompose"] = time.perf_counter() - start

    # Phase 3: Export
    start = time.perf_counter()
    bundle_name = default_bundle_name(result, app_config.decomposition.name_separator)
    exports = export_all_decomposition_outputs(
        result,
        Path(output_dir),
        bundle_name=bundle_name,
        export_config=export_config,
        style_config=app_config.kml_styles,
        log=log,
    )
    timings["export"] = time.perf_counter() - start
    timings["total"] = time.perf_counter() - total_start

    summary = get_decomposition_summary(result)
    _log_summary(summary, timings, log)

    return {
        "result": result,
        "summary": summary,
        "exports": exports,
        "timings": timings,
    }


def _log_summary(
    summary: Dict[str, Any], timings: Dict[str, float], logger: logging.Logger
) -> None:
    logger.info("=" * 60)
    logger.info("📊 DECOMPOSITION SUMMARY")
    logger.info("=" * 60)
    logger.info(f"   Sources: {summary['num_sources']}")
    logger.info(f"   Max multiplicity: {summary['max_multiplicity']}")
    for multiplicity, area in summary["ring_areas"].items():
        logger.info(f"   Ring {multiplicity}: {area:.6g}")
    if summary["has_maximal"]:
        logger.info(f"   Maximal: {summary['maximal_area']:.6g}")
    logger.info(f"   Simple total: {summary['simple_total_area']:.6g}")
    logger.info(
        f"   Multiple total: {summary['multiple_total_area']:.6g} "
        f"({summary['overlap_pct']:.1f}% of total)"
    )
    logger.info(f"   ⏱️ Total time: {timings['total']:.2f}s")


# ═══════════════════════════════════════════════════════════════════════════
# 🖥️ COMMAND LINE
# ═══════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multicoverage",
        description="Decompose overlapping coverages into multiplicity layers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    multicoverage
    multicoverage --input-dir Input --output-dir Output --tag FL100
    multicoverage --tag FL090 --no-geojson --png
        """,
    )
    parser.add_argument("--input-dir", "-i", help="Directory with coverage files")
    parser.add_argument("--output-dir", "-o", help="Directory for exported files")
    parser.add_argument("--tag", "-t", help="Flight level tag, e.g. FL100")
    parser.add_argument("--log-dir", help="Directory for run log folders")
    parser.add_argument(
        "--no-kmz", action="store_true", help="Don't write the KMZ bundle"
    )
    parser.add_argument(
        "--geojson",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write all layers as GeoJSON (default from config)",
    )
    parser.add_argument(
        "--png", action="store_true", help="Write a PNG preview of the layers"
    )
    return parser


def _export_config_from_args(
    args: argparse.Namespace, base: ExportConfig
) -> ExportConfig:
    return ExportConfig(
        kmz=base.kmz and not args.no_kmz,
        geojson=base.geojson if args.geojson is None else args.geojson,
        summary_csv=base.summary_csv,
        png=base.png or args.png,
        png_dpi=base.png_dpi,
    )


def main(
    argv: Optional[List[str]] = None,
    input_fn: Callable[[str], str] = input,
) -> int:
    """
    Command-line entry point.

    Returns:
        Process exit code (0 = success, 1 = analysis error)
    """
    args = build_parser().parse_args(argv)
    app_config = APP_CONFIG
    paths = app_config.file_paths

    try:
        input_dir = (
            Path(args.input_dir)
            if args.input_dir
            else prompt_directory("Input directory", paths.input_dir, input_fn)
        )
        output_dir = (
            Path(args.output_dir)
            if args.output_dir
            else prompt_directory("Output directory", paths.output_dir, input_fn)
        )
        tag = resolve_tag(args.tag, app_config.tag, input_fn)
    except InvalidTagError as e:
        logging.getLogger(LOGGER_NAME).error(f"❌ {e}")
        return 1

    logger, run_log_folder = setup_logging(tag, args.log_dir)
    logger.info("=" * 60)
    logger.info("🎯 Multicoverage Analysis")
    logger.info("=" * 60)
    logger.info(f"   Input: {input_dir}")
    logger.info(f"   Output: {output_dir}")
    logger.info(f"   Tag: {tag}")
    logger.info(f"   Log folder: {run_log_folder}")

    try:
        run_multicoverage_analysis(
            input_dir,
            output_dir,
            tag,
            app_config=app_config,
            export_config=_export_config_from_args(args, app_config.export),
            logger=logger,
        )
    except MulticoverageError as e:
        logger.error(f"❌ Analysis failed: {e}")
        return 1

    return 0


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════


if __name__ == "__main__":
    sys.exit(main())

"""Command-line interface for classlens."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from classlens.config import load_config
from classlens.discovery import find_class_files, read_records
from classlens.errors import PipelineTimeoutError
from classlens.pipeline import analyze_records
from classlens.renderer.report import write_report

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="classlens",
        description="Structural analysis of compiled JVM classes: dependencies, call graph, data flow and components.",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="A .class file, a directory of class files, or a Maven/Gradle project",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output JSON file path (default: classlens.json)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes for extraction (1 runs inline)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        dest="max_call_depth",
        help="Maximum call-chain length for the data-flow analysis (default: 5)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed for the extraction stage",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    if args.verbose:
        logging.getLogger("classlens").setLevel(logging.DEBUG)

    path = args.path.resolve()
    project_dir = path if path.is_dir() else path.parent
    config = load_config(project_dir).with_overrides(
        workers=args.workers,
        max_call_depth=args.max_call_depth,
        timeout=args.timeout,
    )
    logger.debug("Config: %s", config)

    files = find_class_files(path)
    if not files:
        logger.error("No class files found under %s", path)
        sys.exit(1)

    try:
        result = analyze_records(read_records(files, project_dir), config)
    except PipelineTimeoutError as e:
        logger.error("Analysis timed out: %s", e)
        sys.exit(1)

    flow = result.analyze_flow()
    out_path = args.output or Path("classlens.json")
    write_report(result, out_path, flow)

    logger.info(
        "Wrote %s: %d classes, %d dependency edges, %d components, %d endpoints, %d diagnostics",
        out_path,
        len(result.classes),
        len(result.dependency_graph.edges),
        len(result.components),
        len(result.endpoints),
        len(result.diagnostics),
    )

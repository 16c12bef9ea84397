"""Entry point for running baseline-lens from the command line.

This module provides the ``baseline-lens`` command. It handles:
- Configuration loading
- Logging setup
- File discovery and language detection by extension
- Project analysis with a JSON or text report
- Dataset lookups (search, feature details)
- Exit codes for CI gating (``--fail-on``)
"""

import argparse
import asyncio
import fnmatch
import json
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import structlog

from baseline_lens._version import __version__
from baseline_lens.config.schema import BaselineLensConfig
from baseline_lens.models.analysis import DocumentAnalysis, DocumentMeta, ProjectSummary, RiskLevel
from baseline_lens.utils.async_helpers import ConfigurationError, DataLoadError
from baseline_lens.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    configure_from_config,
    configure_logging,
)
from baseline_lens.utils.metrics import get_metrics

log = structlog.get_logger()

LANGUAGE_BY_EXTENSION = {
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".styl": "stylus",
    ".pcss": "postcss",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "typescriptreact",
    ".html": "html",
    ".htm": "html",
    ".xhtml": "xhtml",
    ".vue": "vue",
    ".svelte": "svelte",
}

EXCLUDED_DIRECTORIES = frozenset({"node_modules", "dist", "build", "coverage", ".git"})


def language_for(path: Path) -> str | None:
    """Language id for a file, or None when the extension is not analyzed."""
    name = path.name.lower()
    if name.endswith(".component.html"):
        return "angular"
    return LANGUAGE_BY_EXTENSION.get(path.suffix.lower())


def discover_files(paths: Sequence[Path], exclude: Sequence[str] = ()) -> Iterator[Path]:
    """Yield analyzable files under the given files and directories.

    Args:
        paths: Files and directories to scan
        exclude: Glob patterns matched against each file's path

    Yields:
        Files with a known language, each once, in a stable order
    """
    seen: set[Path] = set()
    for root in paths:
        candidates = [root] if root.is_file() else sorted(p for p in root.rglob("*") if p.is_file())
        for path in candidates:
            if path in seen or language_for(path) is None:
                continue
            if EXCLUDED_DIRECTORIES.intersection(path.parts):
                continue
            if any(fnmatch.fnmatch(path.as_posix(), pattern) for pattern in exclude):
                continue
            seen.add(path)
            yield path


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    level = LogLevel.DEBUG if debug else LogLevel.WARNING
    configure_logging(level=level, log_format=LogFormat(log_format.lower()))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="baseline-lens",
        description="Detect web platform features and their Baseline browser support",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Analyze files and directories")
    analyze.add_argument("paths", nargs="+", type=Path, help="Files or directories")
    analyze.add_argument(
        "--format",
        choices=["json", "text"],
        default="text",
        help="Report format (default: text)",
    )
    analyze.add_argument(
        "--fail-on",
        choices=[level.value for level in RiskLevel],
        default=None,
        help="Exit with status 1 when features at or above this risk are found",
    )
    analyze.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Glob pattern of files to skip (repeatable)",
    )
    analyze.add_argument(
        "--metrics-file",
        type=Path,
        default=None,
        metavar="FILE",
        help="Write engine metrics in Prometheus text format after the run",
    )

    search = commands.add_parser("search", help="Search the compatibility dataset")
    search.add_argument("query", help="Case-insensitive text to match")

    info = commands.add_parser("info", help="Show details of one feature")
    info.add_argument("feature_id", help="Feature id, e.g. grid")

    return parser.parse_args(argv)


def format_text_report(analyses: Sequence[DocumentAnalysis], summary: ProjectSummary) -> str:
    """Human-readable report: one line per detection, then the totals."""
    lines: list[str] = []
    for analysis in analyses:
        if not analysis.features and not analysis.errors:
            continue
        lines.append(analysis.file_name)
        for feature in analysis.features:
            start = feature.range.start
            lines.append(
                f"  {start.line + 1}:{start.character + 1}  {feature.severity.value:<7}  "
                f"{feature.id}  ({feature.context})"
            )
        for error in analysis.errors:
            location = f"{error.line}:{error.column}" if error.line is not None else "-"
            lines.append(f"  {location}  error    {error.error}")

    risk = summary.risk_distribution
    lines.append("")
    lines.append(
        f"{summary.total_files} files, {summary.total_features} features "
        f"({summary.unique_features} unique), {summary.error_count} errors"
    )
    lines.append(
        f"risk: high={risk.get('high', 0)} medium={risk.get('medium', 0)} low={risk.get('low', 0)}"
    )
    return "\n".join(lines)


def build_report(analyses: Sequence[DocumentAnalysis], summary: ProjectSummary) -> dict[str, Any]:
    return {
        "version": __version__,
        "summary": summary.to_dict(),
        "files": [analysis.to_dict() for analysis in analyses],
    }


async def run_analyze(args: argparse.Namespace, config: BaselineLensConfig) -> int:
    """Analyze the requested paths and print the report.

    Returns:
        Exit code (1 when ``--fail-on`` risk is present)
    """
    from baseline_lens.core.compatibility import CompatibilityDataService
    from baseline_lens.core.engine import AnalysisEngine

    engine = AnalysisEngine(CompatibilityDataService(config.dataset), config)
    await engine.initialize()

    documents: list[tuple[str, DocumentMeta]] = []
    for path in discover_files(args.paths, args.exclude):
        language_id = language_for(path)
        if language_id is None:
            continue
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.warning(LogEventNames.FILE_READ_FAILED, path=str(path), error=str(e))
            continue
        documents.append((content, DocumentMeta(language_id=language_id, file_name=str(path))))

    analyses = await engine.analyze_many(documents)
    summary = engine.summarize(analyses)

    if args.format == "json":
        print(json.dumps(build_report(analyses, summary), indent=2))
    else:
        print(format_text_report(analyses, summary))

    if args.metrics_file is not None:
        args.metrics_file.write_text(get_metrics().to_prometheus_format(), encoding="utf-8")

    if args.fail_on is not None and summary.has_risk(RiskLevel(args.fail_on)):
        return 1
    return 0


async def run_lookup(args: argparse.Namespace, config: BaselineLensConfig) -> int:
    """Search the dataset or show one feature."""
    from baseline_lens.core.compatibility import CompatibilityDataService

    service = CompatibilityDataService(config.dataset)
    await service.initialize()

    if args.command == "search":
        results = service.search_features(args.query)
        for feature in results:
            print(f"{feature.id:<32} {feature.baseline.status.value:<22} {feature.name}")
        if not results:
            print(f"No features match {args.query!r}")
        return 0

    details = service.get_feature_details(args.feature_id)
    if details is None:
        print(f"Unknown feature: {args.feature_id}", file=sys.stderr)
        return 1
    print(json.dumps(details.to_dict(), indent=2))
    return 0


async def run(args: argparse.Namespace) -> int:
    """Run one command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        from baseline_lens.config.loader import load_config

        config = load_config(args.config)

        # Reconfigure logging from config file settings unless --debug was given
        if not args.debug:
            configure_from_config(config.logging)

        if args.command == "analyze":
            return await run_analyze(args, config)
        return await run_lookup(args, config)

    except ConfigurationError as e:
        log.error(LogEventNames.CONFIGURATION_INVALID, error=str(e))
        return 2
    except DataLoadError as e:
        log.error(LogEventNames.DATASET_UNAVAILABLE, error=str(e))
        return 2


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_format=args.log_format)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""
CLI interface for converge_migrator.

Scans workspaces for legacy payment API usage and queries the mapping
dictionary.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from converge_migrator import __version__
from converge_migrator.classifier import SourceClassifier
from converge_migrator.config import DEFAULT_CONFIG, get_config_template, load_config
from converge_migrator.errors import MigratorError
from converge_migrator.incremental import ScanCache
from converge_migrator.mapping import MappingDictionaryService
from converge_migrator.parsers import ParserRegistry
from converge_migrator.patterns import PatternMatcher, configure_catalog

if TYPE_CHECKING:
    from typing import Any

    from converge_migrator.models import ScanProgress, ScanResult

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="converge-migrator",
        description="Find legacy Converge API usage and map it to the Elavon API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  converge-migrator scan .                      # Scan current directory
  converge-migrator scan ./src -o report.json   # Write the report to a file
  converge-migrator search amount               # Fuzzy mapping search
  converge-migrator codegen ssl_amount -l php   # Migration snippet
  converge-migrator complexity ssl_amount ssl_pin ssl_foo
""",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="YAML config file (see init-config)",
    )
    parser.add_argument(
        "--dictionary",
        metavar="FILE",
        help="Mapping dictionary JSON (default: bundled)",
    )
    parser.add_argument(
        "-o", "--output",
        metavar="FILE",
        help="Write JSON output to FILE instead of stdout",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"converge_migrator {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    scan = sub.add_parser("scan", help="Scan a workspace for legacy API usage")
    scan.add_argument("path", nargs="?", default=".", help="Workspace root (default: .)")
    scan.add_argument("--include", action="append", default=[], metavar="GLOB",
                      help="Only scan files matching GLOB (repeatable)")
    scan.add_argument("--exclude", action="append", default=[], metavar="GLOB",
                      help="Skip files matching GLOB (repeatable)")
    scan.add_argument("--max-file-size", type=int, metavar="BYTES",
                      help="Skip files larger than BYTES")
    scan.add_argument("--no-cache", action="store_true", help="Don't reuse cached results")
    scan.add_argument("--cache-file", metavar="FILE",
                      help="Load the scan cache from FILE (if present) and save it back")
    scan.add_argument("--analyze", action="store_true",
                      help="Add per-endpoint complexity and migration notes")
    scan.add_argument("--summary", action="store_true", help="Only print counts")
    scan.add_argument("--recommend", action="store_true",
                      help="Print scan recommendations instead of scanning")
    scan.add_argument("--progress", action="store_true", help="Report progress on stderr")

    search = sub.add_parser("search", help="Fuzzy search field and endpoint mappings")
    search.add_argument("term")
    search.add_argument("--limit", type=int, default=20)

    field = sub.add_parser("field", help="Look up a field mapping")
    field.add_argument("name")

    endpoint = sub.add_parser("endpoint", help="Look up an endpoint mapping")
    endpoint.add_argument("path")

    complexity = sub.add_parser("complexity", help="Score migration complexity for fields")
    complexity.add_argument("fields", nargs="+")

    codegen = sub.add_parser("codegen", help="Generate a migration snippet for a field")
    codegen.add_argument("field")
    codegen.add_argument("-l", "--language", default="javascript")

    sub.add_parser("stats", help="Pattern catalog and mapping dictionary statistics")

    watch = sub.add_parser("watch", help="Re-scan changed files as they change")
    watch.add_argument("path", nargs="?", default=".")
    watch.add_argument("--debounce", type=float, default=2.0, metavar="SECONDS")

    sub.add_parser("init-config", help="Print a commented config template")

    return parser


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def emit(data: Any, output: str | None = None) -> None:
    """Print (or write) data as JSON."""
    text = json.dumps(data, indent=2, default=str)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {output}", file=sys.stderr)
    else:
        print(text)


def build_mapping_service(args: argparse.Namespace, config: dict[str, Any]) -> MappingDictionaryService:
    service = MappingDictionaryService.from_config(config)
    if args.dictionary:
        service.dictionary_path = Path(args.dictionary)
    return service


def _print_progress(progress: ScanProgress) -> None:
    total = f"/{progress.total_files}" if progress.total_files is not None else ""
    print(
        f"\r[scan] {progress.files_processed}{total} files, "
        f"{progress.endpoints_found} endpoints",
        end="",
        file=sys.stderr,
        flush=True,
    )


def run_scan(args: argparse.Namespace, config: dict[str, Any]) -> dict[str, Any]:
    from converge_migrator.scanner import WorkspaceScanner

    root = Path(args.path)
    if not root.is_dir():
        raise MigratorError(f"Path '{root}' is not a directory")

    mapping = build_mapping_service(args, config) if args.analyze else None
    classifier = SourceClassifier(PatternMatcher(), config, mapping)

    cache = None
    cache_file = Path(args.cache_file) if args.cache_file else None
    if cache_file is not None and cache_file.exists():
        cache = ScanCache.load(cache_file)

    scanner = WorkspaceScanner(root, classifier=classifier, config=config, cache=cache)
    options = scanner.default_options()
    options.include.extend(args.include)
    options.exclude.extend(args.exclude)
    if args.max_file_size is not None:
        options.max_file_size = args.max_file_size
    if args.no_cache:
        options.use_cache = False
    if args.progress:
        options.progress_callback = _print_progress

    if args.recommend:
        return scanner.get_scan_recommendations(options)

    result = scanner.scan_workspace(options)
    if args.progress:
        print(file=sys.stderr)

    if cache_file is not None:
        scanner.cache.save(cache_file)

    report = result.to_dict()
    report["root"] = str(scanner.root)
    report["cache"] = scanner.get_cache_statistics()

    if args.analyze:
        for entry, record in zip(report["endpoints"], result.endpoints):
            entry["analysis"] = classifier.analyze_endpoint(record).to_dict()

    if args.summary:
        by_type: dict[str, int] = {}
        for record in result.endpoints:
            by_type[record.endpoint_type.value] = by_type.get(record.endpoint_type.value, 0) + 1
        report = {k: v for k, v in report.items() if k != "endpoints"}
        report["endpoint_count"] = len(result.endpoints)
        report["by_type"] = by_type

    return report


def run_watch(args: argparse.Namespace, config: dict[str, Any]) -> None:
    from converge_migrator.scanner import WorkspaceScanner
    from converge_migrator.watcher import watch_and_rescan

    root = Path(args.path)
    if not root.is_dir():
        raise MigratorError(f"Path '{root}' is not a directory")

    scanner = WorkspaceScanner(root, config=config)
    initial = scanner.scan_workspace()
    print(
        f"[watch] Initial scan: {len(initial.endpoints)} endpoints in {initial.total_files} files",
        file=sys.stderr,
        flush=True,
    )

    def report(paths: list[str], result: ScanResult) -> None:
        print(f"[watch] {len(paths)} file(s) changed", file=sys.stderr, flush=True)
        for record in result.endpoints:
            print(f"  {record.file_path}:{record.line_number}  {record.endpoint_type.value}", flush=True)

    print(f"[watch] Watching {scanner.root} (Ctrl+C to stop)", file=sys.stderr, flush=True)
    watch_and_rescan(scanner, report, debounce_seconds=args.debounce)


def dispatch(args: argparse.Namespace, config: dict[str, Any]) -> None:
    if args.command == "scan":
        emit(run_scan(args, config), args.output)
        return

    if args.command == "watch":
        run_watch(args, config)
        return

    if args.command == "stats":
        service = build_mapping_service(args, config)
        emit({
            "patterns": PatternMatcher().get_pattern_statistics(),
            "strategies": {
                "languages": ParserRegistry.list_languages(),
                "extensions": ParserRegistry.list_extensions(),
            },
            "mapping": service.get_mapping_statistics(),
        }, args.output)
        return

    service = build_mapping_service(args, config)

    if args.command == "search":
        results = service.search_mappings(args.term)[:args.limit]
        emit([r.to_dict() for r in results], args.output)

    elif args.command == "field":
        mapping = service.get_field_mapping(args.name)
        if mapping is None:
            print(f"No mapping found for field '{args.name}'", file=sys.stderr)
            sys.exit(1)
        data = mapping.to_dict()
        data["transformation_rule"] = service.get_transformation_rule(args.name)
        emit(data, args.output)

    elif args.command == "endpoint":
        endpoint = service.get_endpoint_mapping(args.path)
        if endpoint is None:
            print(f"No mapping found for endpoint '{args.path}'", file=sys.stderr)
            sys.exit(1)
        emit(endpoint.to_dict(), args.output)

    elif args.command == "complexity":
        emit(service.get_migration_complexity(args.fields).to_dict(), args.output)

    elif args.command == "codegen":
        snippet = service.generate_migration_code(args.field, args.language)
        if snippet is None:
            print(
                f"Cannot generate code for field '{args.field}' in language '{args.language}'",
                file=sys.stderr,
            )
            sys.exit(1)
        if args.output:
            Path(args.output).write_text(snippet + "\n", encoding="utf-8")
        else:
            print(snippet)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command == "init-config":
        print(get_config_template())
        return

    config = DEFAULT_CONFIG
    try:
        if args.config:
            config_path = Path(args.config)
            if not config_path.exists():
                print(f"Error: Config file '{config_path}' does not exist", file=sys.stderr)
                sys.exit(1)
            config = load_config(config_path)
            configure_catalog(config)
            logger.debug("Loaded config: %s", config_path)

        dispatch(args, config)
    except MigratorError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

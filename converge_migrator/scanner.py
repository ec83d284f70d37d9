"""
Workspace scan coordinator for converge_migrator.

Walks a workspace, classifies candidate files and collects endpoint
records, reusing cached results for files whose content is unchanged.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING

from converge_migrator.classifier import SourceClassifier, decode_source
from converge_migrator.config import ALWAYS_EXCLUDED_DIRS, DEFAULT_CONFIG, DEFAULT_MAX_FILE_SIZE
from converge_migrator.errors import FileAccessError
from converge_migrator.incremental import ScanCache
from converge_migrator.models import ScanError, ScanOptions, ScanProgress, ScanResult
from converge_migrator.utils import content_digest, matches_glob, should_exclude

if TYPE_CHECKING:
    from typing import Any, Iterable, Iterator

    from converge_migrator.models import EndpointRecord

logger = logging.getLogger(__name__)

# Directories with more candidates than this are reported as large
LARGE_DIRECTORY_THRESHOLD = 100

# Rough per-file cost used for scan time estimates
ESTIMATED_MS_PER_FILE = 10

# Top-level directories that usually hold generated or sample code
NOISY_DIRECTORIES = ("fixtures", "examples", "samples", "docs", "static", "public", "assets", "migrations")


class WorkspaceScanner:
    """
    Scan a workspace for legacy API usage.

    Files are processed one at a time. Cancellation is checked before each
    file; a cancelled scan returns what it found so far.
    """

    def __init__(
        self,
        root: Path | str,
        classifier: SourceClassifier | None = None,
        config: dict[str, Any] | None = None,
        cache: ScanCache | None = None,
    ) -> None:
        """
        Args:
            root: Workspace root directory.
            classifier: Source classifier; a default one if omitted.
            config: Full configuration (``scan`` and ``classifier`` are read).
            cache: Scan cache to use; a fresh one if omitted.
        """
        self.root = Path(root).resolve()
        self.config = config or DEFAULT_CONFIG
        self.classifier = classifier or SourceClassifier(config=self.config)
        self.cache = cache if cache is not None else ScanCache()

        scan_config = {**DEFAULT_CONFIG["scan"], **(self.config.get("scan") or {})}
        self.supported_extensions = {e.lower() for e in scan_config["supported_extensions"]}
        self.scan_config = scan_config

    def default_options(self) -> ScanOptions:
        """Scan options taken from the ``scan`` config section."""
        return ScanOptions(
            include=list(self.scan_config.get("include") or []),
            exclude=list(self.scan_config.get("exclude") or []),
            max_file_size=self.scan_config.get("max_file_size", DEFAULT_MAX_FILE_SIZE),
            use_cache=bool(self.scan_config.get("use_cache", True)),
        )

    def scan_workspace(self, options: ScanOptions | None = None) -> ScanResult:
        """Scan every candidate file under the root."""
        options = options or self.default_options()
        logger.info("Scanning workspace %s", self.root)
        return self._run(self.iter_candidates(options), options, total=None)

    def scan_files(self, paths: Iterable[Path | str], options: ScanOptions | None = None) -> ScanResult:
        """
        Scan an explicit list of files (absolute or root-relative).

        The same exclusion, extension and size rules apply as for a full scan.
        """
        options = options or self.default_options()
        candidates = []
        for path in paths:
            filepath = Path(path)
            if not filepath.is_absolute():
                filepath = self.root / filepath
            rel_path = self.relative_path(filepath)
            if not self._is_candidate_name(rel_path, options):
                logger.debug("Not a scan candidate: %s", rel_path)
                continue
            candidates.append(filepath)
        return self._run(iter(candidates), options, total=len(candidates))

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Scan cache cleared")

    def get_cache_statistics(self) -> dict[str, Any]:
        return self.cache.statistics()

    def relative_path(self, filepath: Path) -> str:
        """POSIX path relative to the root, or the absolute path if outside it."""
        try:
            return filepath.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return filepath.as_posix()

    def iter_candidates(self, options: ScanOptions) -> Iterator[Path]:
        """Lazily walk the root and yield candidate files."""
        for dirpath, dirs, files in os.walk(self.root):
            base = Path(dirpath)
            dirs[:] = sorted(
                d for d in dirs
                if d not in ALWAYS_EXCLUDED_DIRS
                and not should_exclude(self.relative_path(base / d) + "/", options.exclude)
            )
            for filename in sorted(files):
                filepath = base / filename
                if self._is_candidate_name(self.relative_path(filepath), options):
                    yield filepath

    def _is_candidate_name(self, rel_path: str, options: ScanOptions) -> bool:
        if should_exclude(rel_path, options.exclude):
            return False
        if options.include:
            return any(matches_glob(rel_path, pattern) for pattern in options.include)
        return Path(rel_path).suffix.lower() in self.supported_extensions

    def _run(self, candidates: Iterator[Path], options: ScanOptions, total: int | None) -> ScanResult:
        start_time = time.time()
        result = ScanResult()
        max_size = options.max_file_size if options.max_file_size is not None else DEFAULT_MAX_FILE_SIZE
        processed = 0

        for filepath in candidates:
            if options.cancellation is not None and options.cancellation.is_set():
                logger.info("Scan cancelled after %d files", processed)
                result.cancelled = True
                break

            rel_path = self.relative_path(filepath)
            try:
                data = self._read(filepath, rel_path, max_size)
            except FileAccessError as e:
                logger.warning("Skipping %s", e)
                result.skipped_files += 1
                result.errors.append(ScanError(file_path=rel_path, error=str(e)))
            else:
                if data is None:
                    continue
                result.endpoints.extend(self._classify(rel_path, data, options, result))

            processed += 1
            if options.progress_callback is not None:
                options.progress_callback(ScanProgress(
                    files_processed=processed,
                    total_files=total,
                    current_file=rel_path,
                    endpoints_found=len(result.endpoints),
                ))

        result.total_files = processed
        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Scan finished: %d endpoints, %d scanned, %d cached, %d skipped (%d ms)",
            len(result.endpoints), result.scanned_files, result.cache_hits,
            result.skipped_files, result.duration_ms,
        )
        return result

    def _read(self, filepath: Path, rel_path: str, max_size: int) -> bytes | None:
        """
        Read a candidate's bytes.

        Returns:
            The bytes, or None if the file is over the size limit.

        Raises:
            FileAccessError: If the file can't be stat'ed or read.
        """
        try:
            size = filepath.stat().st_size
            if size > max_size:
                logger.debug("Skipping %s: %d bytes exceeds limit", rel_path, size)
                return None
            with open(filepath, "rb") as f:
                return f.read()
        except OSError as e:
            raise FileAccessError(rel_path, e.strerror or str(e)) from e

    def _classify(self, rel_path: str, data: bytes, options: ScanOptions, result: ScanResult) -> list[EndpointRecord]:
        digest = content_digest(data)

        if options.use_cache:
            cached = self.cache.get(rel_path, digest)
            if cached is not None:
                result.cache_hits += 1
                return cached

        records = self.classifier.parse_content(rel_path, decode_source(data))
        result.scanned_files += 1
        if options.use_cache:
            self.cache.put(rel_path, digest, records)
        return records

    def get_scan_recommendations(self, options: ScanOptions | None = None) -> dict[str, Any]:
        """
        Summarise the workspace before a scan.

        Returns:
            Dict with estimated_files, estimated_scan_ms, large_directories,
            oversized_files and recommended_excludes.
        """
        options = options or self.default_options()
        max_size = options.max_file_size if options.max_file_size is not None else DEFAULT_MAX_FILE_SIZE

        count = 0
        per_directory: dict[str, int] = {}
        oversized = []
        for filepath in self.iter_candidates(options):
            rel_path = self.relative_path(filepath)
            try:
                size = filepath.stat().st_size
            except OSError:
                continue
            if size > max_size:
                oversized.append({"path": rel_path, "size": size})
                continue
            count += 1
            top = rel_path.split("/", 1)[0] if "/" in rel_path else "."
            per_directory[top] = per_directory.get(top, 0) + 1

        large = [
            {"path": d, "files": n}
            for d, n in sorted(per_directory.items(), key=lambda item: -item[1])
            if d != "." and n > LARGE_DIRECTORY_THRESHOLD
        ]

        present = {p.name for p in self.root.iterdir() if p.is_dir()} if self.root.is_dir() else set()
        recommended = [f"{d}/**" for d in NOISY_DIRECTORIES if d in present]
        recommended.extend(f"{d['path']}/**" for d in large if f"{d['path']}/**" not in recommended)

        return {
            "estimated_files": count,
            "estimated_scan_ms": count * ESTIMATED_MS_PER_FILE,
            "large_directories": large,
            "oversized_files": oversized,
            "recommended_excludes": recommended,
        }

"""Maps extension usage across a set of PHP files."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from pathlib import Path
from typing import Callable

from php_ext_usage.models import ScanFailure, ScanReport, UsageResult
from php_ext_usage.scanner.ext_scanner import ExtensionScanner, ScanError
from php_ext_usage.scanner.file_discovery import FileDiscovery
from php_ext_usage.scanner.registry import ModuleRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Path], None]


class UsageMapper:
    """Scans many files and merges their usage into one report."""

    def __init__(
        self,
        registry: ModuleRegistry,
        file_discovery: FileDiscovery | None = None,
        workers: int = 1,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize usage mapper.

        Args:
            registry: Module registry shared by all scans
            file_discovery: Expands paths into files (defaults from config)
            workers: Number of files scanned concurrently
            progress: Called with each file path before it is scanned
        """
        self.registry = registry
        self.file_discovery = file_discovery or FileDiscovery()
        self.workers = max(1, workers)
        self.progress = progress
        self._local = threading.local()

    def _get_scanner(self) -> ExtensionScanner:
        """Get the calling thread's scanner."""
        scanner = getattr(self._local, "scanner", None)

        if scanner is None:
            scanner = ExtensionScanner(self.registry)
            self._local.scanner = scanner

        return scanner

    def scan_file(self, file_path: Path) -> UsageResult:
        """Scan a single file.

        Raises:
            ScanError: If the file cannot be read or parsed
        """
        if self.progress is not None:
            self.progress(file_path)

        try:
            source = file_path.read_bytes()
        except OSError as e:
            raise ScanError(f"Cannot read file: {e}") from e

        return self._get_scanner().scan(source)

    def map_paths(self, paths: list[Path]) -> ScanReport:
        """Scan every file below the given paths.

        Args:
            paths: Files and directories

        Returns:
            Report with per-file results and failures, sorted by path

        Raises:
            FileNotFoundError: If a path does not exist
            CatalogError: If the module registry cannot be built
        """
        files = self.file_discovery.find_files(paths)

        # fail before any file is scanned if the catalog is unavailable
        self.registry.build()

        logger.info(f"Scanning {len(files)} files with {self.workers} worker(s)")

        results: dict[Path, UsageResult] = {}
        failures: list[ScanFailure] = []

        if self.workers == 1:
            for file_path in files:
                self._collect(file_path, partial(self.scan_file, file_path), results, failures)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                future_to_path = {
                    executor.submit(self.scan_file, file_path): file_path
                    for file_path in files
                }

                for future in as_completed(future_to_path):
                    file_path = future_to_path[future]
                    self._collect(file_path, future.result, results, failures)

        return ScanReport(
            results={path: results[path] for path in sorted(results)},
            failures=sorted(failures, key=lambda failure: failure.file_path),
            files_scanned=len(files),
        )

    @staticmethod
    def _collect(
        file_path: Path,
        get_result: Callable[[], UsageResult],
        results: dict[Path, UsageResult],
        failures: list[ScanFailure],
    ) -> None:
        try:
            result = get_result()
        except ScanError as e:
            logger.info(f"Failed to scan file {file_path}: {e}")
            failures.append(ScanFailure(file_path, str(e), e.diagnostic))
            return

        if not result.is_empty():
            results[file_path] = result

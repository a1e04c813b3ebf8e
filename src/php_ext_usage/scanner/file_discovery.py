"""Discovery of PHP source files to scan."""

import fnmatch
from pathlib import Path
from typing import Iterator

from php_ext_usage.config import get_config


class FileDiscovery:
    """Expands files and directories into the source files to scan."""

    def __init__(
        self,
        file_extensions: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        """Initialize file discovery.

        Args:
            file_extensions: File extensions to scan, without the dot
            exclude_patterns: Glob patterns excluded from directory walks
        """
        config = get_config()

        if file_extensions is None:
            file_extensions = config.file_extensions

        if exclude_patterns is None:
            exclude_patterns = config.exclude_patterns

        self.file_extensions = {ext.lower().lstrip(".") for ext in file_extensions}
        self.exclude_patterns = exclude_patterns

    def iterate_path(self, path: Path) -> Iterator[Path]:
        """Yield the files to scan below a path.

        A file is yielded as-is regardless of its extension.

        Args:
            path: File or directory

        Raises:
            FileNotFoundError: If the path does not exist
        """
        path = Path(path)

        if path.is_file():
            yield path
            return

        if not path.is_dir():
            raise FileNotFoundError(f'Path "{path}" does not exist')

        for file_path in sorted(path.rglob("*")):
            if not file_path.is_file():
                continue

            if file_path.suffix.lower().lstrip(".") not in self.file_extensions:
                continue

            if not self._should_exclude(file_path, path):
                yield file_path

    def find_files(self, paths: list[Path]) -> list[Path]:
        """Expand several paths, dropping duplicates and keeping order.

        Raises:
            FileNotFoundError: If any path does not exist
        """
        files: dict[Path, None] = {}

        for path in paths:
            for file_path in self.iterate_path(path):
                files.setdefault(file_path, None)

        return list(files)

    def _should_exclude(self, file_path: Path, root: Path) -> bool:
        """Check if a file matches an exclude pattern.

        Args:
            file_path: Path to file
            root: Directory being walked

        Returns:
            True if the file should be skipped
        """
        relative = file_path.relative_to(root)
        candidates = [relative.as_posix()]
        candidates.extend(parent.as_posix() for parent in relative.parents if parent != Path("."))

        for pattern in self.exclude_patterns:
            pattern_normalized = pattern.replace("**", "*")

            for candidate in candidates:
                # wrapping in slashes lets "**/vendor/**" match a top-level "vendor"
                if fnmatch.fnmatch(candidate, pattern_normalized) or fnmatch.fnmatch(
                    f"/{candidate}/", pattern_normalized
                ):
                    return True

        return False

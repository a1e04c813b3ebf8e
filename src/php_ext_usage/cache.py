"""Disk cache for symbol catalogs dumped from PHP runtimes."""

import hashlib
import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Generator

if sys.platform == "win32":
    import msvcrt
    FCNTL_AVAILABLE = False
else:
    try:
        import fcntl
        FCNTL_AVAILABLE = True
    except ImportError:
        FCNTL_AVAILABLE = False

from php_ext_usage.config import get_config

logger = logging.getLogger(__name__)


class FileLock:
    """Cross-platform exclusive lock backed by a lock file."""

    def __init__(self, lock_file: Path) -> None:
        """Initialize file lock.

        Args:
            lock_file: Path to lock file
        """
        self.lock_file = lock_file
        self._lock_fd: int | None = None

    def _try_lock(self, fd: int) -> bool:
        if sys.platform == "win32":
            try:
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            except OSError:
                return False
        elif FCNTL_AVAILABLE:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return False
        return True

    def acquire(self, timeout: float = 10.0) -> bool:
        """Acquire the lock, polling until the timeout elapses.

        Args:
            timeout: Maximum time to wait for the lock in seconds

        Returns:
            True if the lock was acquired
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            fd = os.open(str(self.lock_file), os.O_CREAT | os.O_RDWR)

            if self._try_lock(fd):
                self._lock_fd = fd
                return True

            os.close(fd)
            time.sleep(0.1)

        logger.warning(f"Could not acquire lock {self.lock_file} after {timeout}s")
        return False

    def release(self) -> None:
        """Release the lock if held."""
        if self._lock_fd is None:
            return

        try:
            if sys.platform == "win32":
                msvcrt.locking(self._lock_fd, msvcrt.LK_UNLCK, 1)
            elif FCNTL_AVAILABLE:
                fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        except OSError as e:
            logger.debug(f"Error unlocking {self.lock_file}: {e}")
        finally:
            os.close(self._lock_fd)
            self._lock_fd = None

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()


class CatalogCache:
    """Stores dumped symbol catalogs as JSON files with a TTL."""

    def __init__(
        self,
        cache_dir: Path | None = None,
        ttl_hours: int | None = None,
        enabled: bool | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            cache_dir: Directory to store cache files
            ttl_hours: Time-to-live in hours (0 = never expires)
            enabled: Override the configured enabled flag
        """
        config = get_config()
        self.cache_dir = cache_dir or config.cache_dir
        self.ttl_hours = config.catalog_ttl_hours if ttl_hours is None else ttl_hours
        self.enabled = config.cache_enabled if enabled is None else enabled

        self.catalog_dir = self.cache_dir / "catalogs"
        self.locks_dir = self.cache_dir / ".locks"

    @staticmethod
    def _hash_key(key: str) -> str:
        return hashlib.sha256(key.encode()).hexdigest()

    def _get_cache_file(self, key: str) -> Path:
        return self.catalog_dir / f"{self._hash_key(key)}.json"

    @contextmanager
    def _lock_key(self, key: str) -> Generator[None, None, None]:
        lock = FileLock(self.locks_dir / f"{self._hash_key(key)}.lock")
        try:
            lock.acquire()
            yield
        finally:
            lock.release()

    def _is_expired(self, cache_file: Path) -> bool:
        """Check if a cache file is missing or older than the TTL."""
        if not cache_file.exists():
            return True

        if self.ttl_hours == 0:
            return False

        modified_time = datetime.fromtimestamp(cache_file.stat().st_mtime)
        return datetime.now() > modified_time + timedelta(hours=self.ttl_hours)

    def get(self, key: str) -> Any | None:
        """Get a cached catalog.

        Args:
            key: Runtime fingerprint the catalog was stored under

        Returns:
            Cached catalog data, or None on a miss
        """
        if not self.enabled:
            return None

        cache_file = self._get_cache_file(key)

        if self._is_expired(cache_file):
            return None

        with self._lock_key(key):
            try:
                entry = json.loads(cache_file.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return None
            except json.JSONDecodeError as e:
                logger.warning(f"Discarding corrupted catalog cache {cache_file.name}: {e}")
                cache_file.unlink(missing_ok=True)
                return None
            except OSError as e:
                logger.error(f"Cannot read catalog cache {cache_file}: {e}")
                return None

        if not isinstance(entry, dict) or entry.get("key") != key:
            logger.debug(f"Catalog cache {cache_file.name} belongs to another runtime")
            return None

        return entry.get("catalog")

    def set(self, key: str, catalog: Any) -> bool:
        """Store a dumped catalog.

        Args:
            key: Runtime fingerprint
            catalog: JSON-serializable catalog data

        Returns:
            True if the catalog was written
        """
        if not self.enabled:
            return False

        self.catalog_dir.mkdir(parents=True, exist_ok=True)
        cache_file = self._get_cache_file(key)
        entry = {"key": key, "catalog": catalog, "dumped_at": datetime.now().isoformat()}

        with self._lock_key(key):
            temp_file = cache_file.with_suffix(".tmp")
            try:
                temp_file.write_text(json.dumps(entry), encoding="utf-8")
                temp_file.replace(cache_file)
            except TypeError as e:
                logger.error(f"Catalog for {key} is not JSON-serializable: {e}")
                temp_file.unlink(missing_ok=True)
                return False
            except OSError as e:
                logger.error(f"Cannot write catalog cache {cache_file}: {e}")
                return False

        logger.debug(f"Cached symbol catalog for {key}")
        return True

    def clear(self) -> int:
        """Delete all cached catalogs.

        Returns:
            Number of catalogs deleted
        """
        if not self.catalog_dir.exists():
            return 0

        removed = 0

        for path in self.catalog_dir.iterdir():
            if path.suffix not in (".json", ".tmp"):
                continue
            try:
                path.unlink()
            except OSError as e:
                logger.error(f"Cannot delete {path}: {e}")
                continue
            if path.suffix == ".json":
                removed += 1

        return removed

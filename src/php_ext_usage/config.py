"""Configuration management for PHP extension usage scanning."""

import copy
import logging
from pathlib import Path
from typing import Any

import toml

logger = logging.getLogger(__name__)


class Config:
    """Application configuration."""

    def __init__(self, config_file: Path | None = None) -> None:
        """Initialize configuration.

        Args:
            config_file: Optional path to a TOML configuration file
        """
        self.config_file = config_file
        self._config: dict[str, Any] = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file on top of defaults."""
        config = self._get_defaults()

        if self.config_file and self.config_file.exists():
            try:
                file_config = toml.load(self.config_file)
                _merge(config, file_config)
                logger.debug(f"Loaded config from {self.config_file}")
            except toml.TomlDecodeError as e:
                logger.warning(f"Invalid TOML in config file {self.config_file}: {e}")
            except OSError as e:
                logger.warning(f"Error reading config file {self.config_file}: {e}")

        return config

    @staticmethod
    def _get_defaults() -> dict[str, Any]:
        """Get default configuration values."""
        cache_dir = Path.home() / ".php_ext_usage" / "cache"

        return {
            "catalog": {
                "php_binary": "php",
                "manifest": None,
                "timeout_seconds": 60,
            },
            "cache": {
                "directory": str(cache_dir),
                "enabled": True,
                "catalog_ttl_hours": 24 * 7,
            },
            "scan": {
                "file_extensions": ["php"],
                "exclude_patterns": [
                    "**/.git/**",
                    "**/node_modules/**",
                ],
                "workers": 1,
            },
            "output": {
                "color": True,
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "scan.workers")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value: Any = self._config

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    @property
    def php_binary(self) -> str:
        return str(self.get("catalog.php_binary", "php"))

    @property
    def manifest(self) -> Path | None:
        """Get the symbol manifest path, if one is configured."""
        manifest = self.get("catalog.manifest")
        return Path(manifest).expanduser() if manifest else None

    @property
    def php_timeout(self) -> float:
        return float(self.get("catalog.timeout_seconds", 60))

    @property
    def cache_dir(self) -> Path:
        """Get cache directory path."""
        return Path(self.get("cache.directory", "~/.php_ext_usage/cache")).expanduser()

    @property
    def cache_enabled(self) -> bool:
        return bool(self.get("cache.enabled", True))

    @property
    def catalog_ttl_hours(self) -> int:
        return int(self.get("cache.catalog_ttl_hours", 24 * 7))

    @property
    def file_extensions(self) -> list[str]:
        return list(self.get("scan.file_extensions", ["php"]))

    @property
    def exclude_patterns(self) -> list[str]:
        return list(self.get("scan.exclude_patterns", []))

    @property
    def workers(self) -> int:
        return max(1, int(self.get("scan.workers", 1)))

    @property
    def color(self) -> bool:
        return bool(self.get("output.color", True))


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Recursively merge override into base, section by section."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)


# Global config instance
_config: Config | None = None


def get_config(config_file: Path | None = None) -> Config:
    """Get or create the global configuration instance.

    Passing a config file replaces any previously loaded configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        Config instance
    """
    global _config

    if _config is None or config_file is not None:
        _config = Config(config_file)

    return _config


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config
    _config = None

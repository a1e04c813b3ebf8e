"""Symbol catalog sources: where the module registry learns PHP's symbols."""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from php_ext_usage.cache import CatalogCache
from php_ext_usage.models import ParameterInfo

logger = logging.getLogger(__name__)

# Symbols declared by scanned code itself, never part of an extension.
USER_GROUP = "user"

# Dumps every loaded extension's functions, classes and constants as JSON.
DUMP_SCRIPT = r"""
$modules = [];
foreach (get_loaded_extensions() as $name) {
    $ext = new ReflectionExtension($name);
    $functions = [];
    foreach ($ext->getFunctions() as $function) {
        $parameters = [];
        foreach ($function->getParameters() as $parameter) {
            $type = $parameter->getType();
            $typeName = $type === null ? null : (string) $type;
            $parameters[] = [
                'name' => $parameter->getName(),
                'type' => $typeName,
                'callable' => $typeName !== null
                    && preg_match('/(^|[|?(])callable($|[|)])/i', $typeName) === 1,
                'variadic' => $parameter->isVariadic(),
            ];
        }
        $functions[$function->getName()] = $parameters;
    }
    $classes = [];
    foreach ($ext->getClassNames() as $class) {
        if (class_exists($class, false)) {
            $classes[] = $class;
        }
    }
    $modules[$ext->getName()] = [
        'functions' => (object) $functions,
        'classes' => $classes,
        'constants' => array_keys($ext->getConstants()),
    ];
}
echo json_encode(['php_version' => PHP_VERSION, 'modules' => (object) $modules]);
"""

FINGERPRINT_SCRIPT = r"""
echo PHP_VERSION, ';', implode(',', get_loaded_extensions());
"""


class CatalogError(Exception):
    """The symbol catalog could not be obtained."""


@dataclass
class ModuleSymbols:
    """Symbols provided by one extension."""

    functions: dict[str, tuple[ParameterInfo, ...]] = field(default_factory=dict)
    classes: list[str] = field(default_factory=list)
    constants: list[str] = field(default_factory=list)


@dataclass
class SymbolCatalog:
    """Every known symbol grouped by owning extension."""

    modules: dict[str, ModuleSymbols] = field(default_factory=dict)
    php_version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SymbolCatalog":
        """Build a catalog from its manifest representation.

        Args:
            data: Decoded manifest document

        Returns:
            Symbol catalog

        Raises:
            CatalogError: If the document is malformed
        """
        if not isinstance(data, dict) or not isinstance(data.get("modules"), dict):
            raise CatalogError("Symbol manifest has no 'modules' mapping")

        modules: dict[str, ModuleSymbols] = {}

        try:
            for name, symbols in data["modules"].items():
                functions = {
                    function: tuple(
                        ParameterInfo(
                            name=parameter["name"],
                            type=parameter.get("type"),
                            callable=bool(parameter.get("callable", False)),
                            variadic=bool(parameter.get("variadic", False)),
                        )
                        for parameter in parameters
                    )
                    for function, parameters in (symbols.get("functions") or {}).items()
                }
                modules[name] = ModuleSymbols(
                    functions=functions,
                    classes=list(symbols.get("classes") or []),
                    constants=list(symbols.get("constants") or []),
                )
        except (AttributeError, KeyError, TypeError) as e:
            raise CatalogError(f"Malformed symbol manifest: {e}") from e

        return cls(modules=modules, php_version=data.get("php_version"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the manifest representation."""
        return {
            "php_version": self.php_version,
            "modules": {
                name: {
                    "functions": {
                        function: [
                            {
                                "name": p.name,
                                "type": p.type,
                                "callable": p.callable,
                                "variadic": p.variadic,
                            }
                            for p in parameters
                        ]
                        for function, parameters in symbols.functions.items()
                    },
                    "classes": list(symbols.classes),
                    "constants": list(symbols.constants),
                }
                for name, symbols in self.modules.items()
            },
        }


class CatalogSource(Protocol):
    """Anything that can produce a symbol catalog."""

    def load(self) -> SymbolCatalog:
        ...


class StaticCatalogSource:
    """Serves an in-memory catalog."""

    def __init__(self, catalog: SymbolCatalog) -> None:
        self.catalog = catalog

    def load(self) -> SymbolCatalog:
        return self.catalog


class ManifestCatalogSource:
    """Loads a catalog from a JSON manifest written by ``dump-catalog``."""

    def __init__(self, manifest_file: Path) -> None:
        self.manifest_file = Path(manifest_file)

    def load(self) -> SymbolCatalog:
        """Read and parse the manifest.

        Raises:
            CatalogError: If the manifest is missing or invalid
        """
        try:
            with open(self.manifest_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise CatalogError(f"Symbol manifest not found: {self.manifest_file}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Invalid JSON in symbol manifest {self.manifest_file}: {e}") from e
        except OSError as e:
            raise CatalogError(f"Cannot read symbol manifest {self.manifest_file}: {e}") from e

        logger.debug(f"Loaded symbol manifest {self.manifest_file}")
        return SymbolCatalog.from_dict(data)


class PhpRuntimeCatalogSource:
    """Introspects a PHP binary to enumerate the symbols of its extensions."""

    def __init__(
        self,
        php_binary: str = "php",
        timeout: float = 60.0,
        cache: CatalogCache | None = None,
    ) -> None:
        """Initialize runtime source.

        Args:
            php_binary: PHP CLI executable name or path
            timeout: Seconds to wait for each PHP invocation
            cache: Optional cache for dumped catalogs
        """
        self.php_binary = php_binary
        self.timeout = timeout
        self.cache = cache

    def _run(self, script: str) -> str:
        """Run a PHP snippet and return its standard output.

        Raises:
            CatalogError: If PHP is missing or the snippet fails
        """
        executable = shutil.which(self.php_binary)

        if executable is None:
            raise CatalogError(f"PHP binary not found: {self.php_binary}")

        try:
            result = subprocess.run(
                [executable, "-r", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CatalogError(f"PHP did not respond within {self.timeout}s") from e
        except OSError as e:
            raise CatalogError(f"Cannot run {executable}: {e}") from e

        if result.returncode != 0:
            raise CatalogError(
                f"{executable} exited with code {result.returncode}: {result.stderr.strip()}"
            )

        return result.stdout

    def cache_key(self) -> str:
        """Identify the runtime by binary, version and loaded extensions."""
        fingerprint = self._run(FINGERPRINT_SCRIPT).strip()
        return f"{shutil.which(self.php_binary)}|{fingerprint}"

    def load(self) -> SymbolCatalog:
        """Dump the catalog from PHP, using the cache when possible.

        Raises:
            CatalogError: If the catalog cannot be obtained
        """
        key = self.cache_key() if self.cache is not None else None

        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Using cached symbol catalog for {key}")
                return SymbolCatalog.from_dict(cached)

        logger.info(f"Dumping symbol catalog from {self.php_binary}")
        output = self._run(DUMP_SCRIPT)

        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise CatalogError(f"PHP produced an invalid symbol catalog: {e}") from e

        catalog = SymbolCatalog.from_dict(data)

        if key is not None:
            self.cache.set(key, data)

        return catalog

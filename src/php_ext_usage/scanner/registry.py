"""Module registry: which extension owns a fully-qualified symbol name."""

import logging
import threading
from dataclasses import dataclass, field

from php_ext_usage.models import FunctionInfo, Module, is_core_module
from php_ext_usage.scanner.catalog import (
    USER_GROUP,
    CatalogSource,
    StaticCatalogSource,
    SymbolCatalog,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SymbolTables:
    functions: dict[str, FunctionInfo] = field(default_factory=dict)
    classes: dict[str, str] = field(default_factory=dict)
    constants: dict[str, str] = field(default_factory=dict)


class ModuleRegistry:
    """Maps function, class and constant names to their owning extension.

    The symbol tables are built from the catalog source on first lookup, at
    most once, and never change afterwards. A registry can therefore be shared
    by any number of concurrent scans. Lookups are exact and case-sensitive.
    """

    def __init__(self, source: CatalogSource) -> None:
        """Initialize registry.

        Args:
            source: Catalog source consulted once when the tables are built
        """
        self.source = source
        self._tables: _SymbolTables | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_catalog(cls, catalog: SymbolCatalog) -> "ModuleRegistry":
        """Create a registry over an in-memory catalog."""
        return cls(StaticCatalogSource(catalog))

    @property
    def is_built(self) -> bool:
        return self._tables is not None

    def build(self) -> "ModuleRegistry":
        """Build the symbol tables now instead of on first lookup.

        Raises:
            CatalogError: If the catalog source is unavailable
        """
        self._get_tables()
        return self

    def _get_tables(self) -> _SymbolTables:
        tables = self._tables

        if tables is None:
            with self._lock:
                if self._tables is None:
                    self._tables = self._build_tables(self.source.load())
                tables = self._tables

        return tables

    @staticmethod
    def _build_tables(catalog: SymbolCatalog) -> _SymbolTables:
        tables = _SymbolTables()

        for module, symbols in catalog.modules.items():
            if module == USER_GROUP:
                continue

            # the first extension to declare a symbol keeps it
            for name, parameters in symbols.functions.items():
                tables.functions.setdefault(name, FunctionInfo(name, module, parameters))

            for name in symbols.classes:
                tables.classes.setdefault(name, module)

            for name in symbols.constants:
                tables.constants.setdefault(name, module)

        logger.debug(
            f"Module registry built: {len(tables.functions)} functions, "
            f"{len(tables.classes)} classes, {len(tables.constants)} constants"
        )

        return tables

    def lookup(self, name: str) -> Module | None:
        """Find the extension owning a symbol of any kind.

        Args:
            name: Fully-qualified symbol name

        Returns:
            Owning module or None if the name is unknown
        """
        function = self.lookup_function(name)

        if function is not None:
            return Module(function.module)

        return self.lookup_class(name) or self.lookup_constant(name)

    def lookup_function(self, name: str) -> FunctionInfo | None:
        """Find a function together with its parameter metadata."""
        return self._get_tables().functions.get(name)

    def lookup_class(self, name: str) -> Module | None:
        module = self._get_tables().classes.get(name)
        return Module(module) if module is not None else None

    def lookup_constant(self, name: str) -> Module | None:
        module = self._get_tables().constants.get(name)
        return Module(module) if module is not None else None

    @staticmethod
    def is_core(module_name: str) -> bool:
        """Check if an extension is always present and never reported."""
        return is_core_module(module_name)

"""Tests for the module registry."""

import threading
import time

import pytest

from php_ext_usage.models import Module
from php_ext_usage.scanner.catalog import CatalogError, ModuleSymbols, SymbolCatalog
from php_ext_usage.scanner.registry import ModuleRegistry


class CountingSource:
    """Catalog source that counts how often it is loaded."""

    def __init__(self, catalog: SymbolCatalog, delay: float = 0.0) -> None:
        self.catalog = catalog
        self.delay = delay
        self.loads = 0

    def load(self) -> SymbolCatalog:
        self.loads += 1
        time.sleep(self.delay)
        return self.catalog


class FailingSource:
    """Catalog source that is never available."""

    def load(self) -> SymbolCatalog:
        raise CatalogError("PHP binary not found: php")


class TestModuleRegistry:
    """Tests for symbol ownership lookups."""

    def test_lookup_function(self, registry: ModuleRegistry) -> None:
        """Test functions resolve to their extension with parameters."""
        function = registry.lookup_function("curl_init")

        assert function is not None
        assert function.module == "curl"
        assert [p.name for p in function.parameters] == ["url"]

    def test_lookup_class_and_constant(self, registry: ModuleRegistry) -> None:
        """Test classes and constants resolve to their extension."""
        assert registry.lookup_class("PDO") == Module("PDO")
        assert registry.lookup_constant("JSON_PRETTY_PRINT") == Module("json")
        assert registry.lookup_class("Swoole\\Http\\Server") == Module("swoole")

    def test_lookup_any_kind(self, registry: ModuleRegistry) -> None:
        """Test the generic lookup covers every symbol kind."""
        assert registry.lookup("mb_strlen") == Module("mbstring")
        assert registry.lookup("CURLFile") == Module("curl")
        assert registry.lookup("MB_CASE_UPPER") == Module("mbstring")
        assert registry.lookup("no_such_symbol") is None

    def test_lookup_is_exact_and_case_sensitive(self, registry: ModuleRegistry) -> None:
        """Test no fuzzy or case-insensitive matching happens."""
        assert registry.lookup_function("CURL_INIT") is None
        assert registry.lookup_function("curl_ini") is None
        assert registry.lookup_class("pdo") is None
        assert registry.lookup_constant("json_pretty_print") is None

    def test_kinds_are_separate(self, registry: ModuleRegistry) -> None:
        """Test a function name is not found in the class table."""
        assert registry.lookup_class("curl_init") is None
        assert registry.lookup_function("PDO") is None

    def test_user_group_excluded(self, registry: ModuleRegistry) -> None:
        """Test symbols defined by user code are never registered."""
        assert registry.lookup_function("my_user_function") is None
        assert registry.lookup_constant("MY_USER_CONSTANT") is None

    def test_is_core(self, registry: ModuleRegistry) -> None:
        """Test core extension detection."""
        assert registry.is_core("Core")
        assert registry.is_core("standard")
        assert registry.is_core("SPL")
        assert not registry.is_core("json")

    def test_first_module_keeps_duplicate_symbol(self) -> None:
        """Test a symbol declared by two extensions belongs to the first."""
        catalog = SymbolCatalog(modules={
            "mysqlnd": ModuleSymbols(constants=["MYSQLI_ASYNC"]),
            "mysqli": ModuleSymbols(constants=["MYSQLI_ASYNC"]),
        })
        registry = ModuleRegistry.from_catalog(catalog)

        assert registry.lookup_constant("MYSQLI_ASYNC") == Module("mysqlnd")


class TestRegistryConstruction:
    """Tests for lazy, build-once construction."""

    def test_built_lazily_once(self, catalog: SymbolCatalog) -> None:
        """Test the source is loaded on first lookup only."""
        source = CountingSource(catalog)
        registry = ModuleRegistry(source)

        assert not registry.is_built
        assert source.loads == 0

        registry.lookup_function("curl_init")
        registry.lookup_class("PDO")
        registry.lookup_constant("M_PI")

        assert registry.is_built
        assert source.loads == 1

    def test_build_eagerly(self, catalog: SymbolCatalog) -> None:
        """Test build() constructs the tables up front."""
        source = CountingSource(catalog)
        registry = ModuleRegistry(source).build()

        assert registry.is_built
        assert source.loads == 1

    def test_concurrent_first_lookups_build_once(self, catalog: SymbolCatalog) -> None:
        """Test racing threads never build the registry twice."""
        source = CountingSource(catalog, delay=0.05)
        registry = ModuleRegistry(source)
        found = []

        def lookup() -> None:
            found.append(registry.lookup_function("json_encode"))

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert source.loads == 1
        assert len(found) == 8
        assert all(f is not None and f.module == "json" for f in found)

    def test_unavailable_source_is_fatal(self) -> None:
        """Test a missing catalog surfaces as CatalogError."""
        registry = ModuleRegistry(FailingSource())

        with pytest.raises(CatalogError):
            registry.build()

        assert not registry.is_built

        with pytest.raises(CatalogError):
            registry.lookup_function("curl_init")

"""PHP extension usage scanner package."""

from php_ext_usage.scanner.catalog import (
    CatalogError,
    ManifestCatalogSource,
    PhpRuntimeCatalogSource,
    StaticCatalogSource,
    SymbolCatalog,
)
from php_ext_usage.scanner.classifier import UsageClassifier
from php_ext_usage.scanner.ext_scanner import ExtensionScanner, ScanError
from php_ext_usage.scanner.file_discovery import FileDiscovery
from php_ext_usage.scanner.php_parser import PhpParser, PhpSyntaxError
from php_ext_usage.scanner.registry import ModuleRegistry
from php_ext_usage.scanner.usage_mapper import UsageMapper

__all__ = [
    "CatalogError",
    "ManifestCatalogSource",
    "PhpRuntimeCatalogSource",
    "StaticCatalogSource",
    "SymbolCatalog",
    "UsageClassifier",
    "ExtensionScanner",
    "ScanError",
    "FileDiscovery",
    "PhpParser",
    "PhpSyntaxError",
    "ModuleRegistry",
    "UsageMapper",
]

"""Test configuration."""

import json
from pathlib import Path

import pytest

from php_ext_usage.config import reset_config
from php_ext_usage.models import ParameterInfo as P
from php_ext_usage.scanner.catalog import ModuleSymbols, SymbolCatalog
from php_ext_usage.scanner.ext_scanner import ExtensionScanner
from php_ext_usage.scanner.registry import ModuleRegistry


def build_catalog() -> SymbolCatalog:
    """A small symbol catalog modelled on a real PHP 8 runtime."""
    return SymbolCatalog(
        php_version="8.3.0",
        modules={
            "Core": ModuleSymbols(
                functions={
                    "strlen": (P("string", "string"),),
                    "define": (P("constant_name", "string"), P("value", "mixed")),
                    "function_exists": (P("function", "string"),),
                },
                classes=["stdClass", "Exception", "Closure"],
                constants=["E_ALL", "PHP_EOL", "PHP_VERSION"],
            ),
            "date": ModuleSymbols(
                functions={"date": (P("format", "string"), P("timestamp", "?int"))},
                classes=["DateTime"],
                constants=["DATE_ATOM"],
            ),
            "Reflection": ModuleSymbols(classes=["ReflectionClass"]),
            "SPL": ModuleSymbols(
                functions={"spl_autoload_register": (P("callback", "?callable", callable=True),)},
                classes=["ArrayObject"],
            ),
            "standard": ModuleSymbols(
                functions={
                    "array_map": (
                        P("callback", "?callable", callable=True),
                        P("array", "array"),
                        P("arrays", "array", variadic=True),
                    ),
                    "usort": (P("array", "array"), P("callback", "callable", callable=True)),
                    "call_user_func": (
                        P("callback", "callable", callable=True),
                        P("args", "mixed", variadic=True),
                    ),
                    "registerCallback": (P("callback"),),
                    "register_tick_handler": (P("handler"),),
                    "sprintf": (P("format", "string"), P("values", "mixed", variadic=True)),
                },
                constants=["M_PI", "PHP_ROUND_HALF_UP"],
            ),
            "json": ModuleSymbols(
                functions={
                    "json_encode": (P("value", "mixed"), P("flags", "int"), P("depth", "int")),
                    "json_decode": (P("json", "string"), P("associative", "?bool")),
                },
                classes=["JsonException"],
                constants=["JSON_PRETTY_PRINT", "JSON_THROW_ON_ERROR"],
            ),
            "curl": ModuleSymbols(
                functions={
                    "curl_init": (P("url", "?string"),),
                    "curl_setopt": (P("handle", "CurlHandle"), P("option", "int"), P("value", "mixed")),
                    "curl_exec": (P("handle", "CurlHandle"),),
                    "myHandler": (P("data"),),
                },
                classes=["CurlHandle", "CURLFile"],
                constants=["CURLOPT_URL", "CURLOPT_RETURNTRANSFER"],
            ),
            "mbstring": ModuleSymbols(
                functions={
                    "mb_strlen": (P("string", "string"), P("encoding", "?string")),
                    "mb_strtoupper": (P("string", "string"), P("encoding", "?string")),
                },
                constants=["MB_CASE_UPPER"],
            ),
            "PDO": ModuleSymbols(classes=["PDO", "PDOStatement", "PDOException"]),
            "swoole": ModuleSymbols(
                functions={"Swoole\\Coroutine\\run": (P("func", "callable", callable=True),)},
                classes=["Swoole\\Http\\Server"],
                constants=["SWOOLE_VERSION"],
            ),
            "user": ModuleSymbols(
                functions={"my_user_function": ()},
                constants=["MY_USER_CONSTANT"],
            ),
        },
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep the global config and the cache directory out of the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def catalog() -> SymbolCatalog:
    """Create the test symbol catalog."""
    return build_catalog()


@pytest.fixture
def registry(catalog: SymbolCatalog) -> ModuleRegistry:
    """Create a module registry over the test catalog."""
    return ModuleRegistry.from_catalog(catalog)


@pytest.fixture
def scanner(registry: ModuleRegistry) -> ExtensionScanner:
    """Create a scanner over the test registry."""
    return ExtensionScanner(registry)


@pytest.fixture
def manifest_file(tmp_path: Path, catalog: SymbolCatalog) -> Path:
    """Write the test catalog as a manifest file."""
    path = tmp_path / "php-8.3.json"
    path.write_text(json.dumps(catalog.to_dict()), encoding="utf-8")
    return path


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create a small PHP project."""
    project = tmp_path / "project"
    (project / "src" / "Http").mkdir(parents=True)
    (project / "vendor" / "acme").mkdir(parents=True)

    (project / "src" / "Client.php").write_text("""<?php
namespace App;

use PDO;

class Client
{
    public function fetch(string $url): string
    {
        $ch = curl_init($url);
        curl_setopt($ch, CURLOPT_URL, $url);
        return json_encode(curl_exec($ch), JSON_PRETTY_PRINT);
    }

    public function connect(): PDO
    {
        return new PDO('sqlite::memory:');
    }
}
""")
    (project / "src" / "Http" / "Text.php").write_text("""<?php
function shout(array $words): array
{
    return array_map('mb_strtoupper', $words);
}
""")
    (project / "src" / "plain.php").write_text("""<?php
echo strlen('abc') . PHP_EOL;
""")
    (project / "src" / "broken.php").write_text("""<?php
function broken( {
""")
    (project / "src" / "notes.txt").write_text("<?php\njson_encode(1);\n")
    (project / "vendor" / "acme" / "lib.php").write_text("""<?php
mb_strlen('x');
""")

    return project

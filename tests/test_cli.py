"""Tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from php_ext_usage.cli import app
from php_ext_usage.scanner.catalog import CatalogError, SymbolCatalog

runner = CliRunner()


class TestCLIVersion:
    """Test version command."""

    def test_version_command(self) -> None:
        """Test version output."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "php-ext-usage v1.0.0" in result.stdout


class TestCLIHelp:
    """Test help output."""

    def test_help_command(self) -> None:
        """Test --help lists the commands."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "scan" in result.stdout
        assert "dump-catalog" in result.stdout

    def test_scan_help(self) -> None:
        """Test scan --help."""
        result = runner.invoke(app, ["scan", "--help"])

        assert result.exit_code == 0
        assert "--format" in result.stdout
        assert "--manifest" in result.stdout


class TestCLIScan:
    """Test scan command."""

    def test_scan_text(self, sample_project: Path, manifest_file: Path) -> None:
        """Test the default text report."""
        result = runner.invoke(app, ["scan", str(sample_project / "src"), "--manifest", str(manifest_file)])

        assert result.exit_code == 0
        assert "curl\n====" in result.output
        assert "function mb_strtoupper in" in result.output
        assert "Failed to scan file" in result.output
        assert "broken.php" in result.output

    def test_scan_json(self, sample_project: Path, manifest_file: Path) -> None:
        """Test JSON output on standard output."""
        result = runner.invoke(app, [
            "scan",
            str(sample_project / "src" / "Client.php"),
            str(sample_project / "vendor"),
            "--format", "json",
            "--manifest", str(manifest_file),
        ])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert list(data["extensions"]) == ["PDO", "curl", "json", "mbstring"]
        assert data["failures"] == []

    def test_scan_composer_to_file(self, sample_project: Path, manifest_file: Path, tmp_path: Path) -> None:
        """Test Composer requirements written to a file."""
        output = tmp_path / "require.json"
        result = runner.invoke(app, [
            "scan",
            str(sample_project),
            "-f", "composer",
            "-o", str(output),
            "-m", str(manifest_file),
        ])

        assert result.exit_code == 0
        assert "Report saved to" in result.output
        assert json.loads(output.read_text(encoding="utf-8")) == {
            "require": {
                "ext-curl": "*",
                "ext-json": "*",
                "ext-mbstring": "*",
                "ext-pdo": "*",
            }
        }

    def test_scan_with_workers(self, sample_project: Path, manifest_file: Path, tmp_path: Path) -> None:
        """Test parallel scanning gives the same report."""
        sequential = tmp_path / "sequential.json"
        parallel = tmp_path / "parallel.json"

        for output, workers in ((sequential, "1"), (parallel, "4")):
            result = runner.invoke(app, [
                "scan", str(sample_project),
                "-f", "json", "-o", str(output), "-w", workers,
                "-m", str(manifest_file),
            ])
            assert result.exit_code == 0

        assert sequential.read_text(encoding="utf-8") == parallel.read_text(encoding="utf-8")

    def test_scan_extension_filter(self, sample_project: Path, manifest_file: Path, tmp_path: Path) -> None:
        """Test --extension changes which files are scanned."""
        output = tmp_path / "report.json"
        result = runner.invoke(app, [
            "scan", str(sample_project / "src"),
            "-e", "txt", "-f", "json", "-o", str(output),
            "-m", str(manifest_file),
        ])

        assert result.exit_code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["extensions"]["json"][0]["file"].endswith("notes.txt")

    def test_scan_progress(self, sample_project: Path, manifest_file: Path) -> None:
        """Test --progress lists scanned files."""
        result = runner.invoke(app, [
            "scan", str(sample_project / "vendor"), "--progress", "-m", str(manifest_file),
        ])

        assert result.exit_code == 0
        assert "lib.php" in result.output

    def test_fail_on_error(self, sample_project: Path, manifest_file: Path) -> None:
        """Test --fail-on-error turns scan failures into a nonzero exit."""
        args = ["scan", str(sample_project / "src" / "broken.php"), "-m", str(manifest_file)]

        assert runner.invoke(app, args).exit_code == 0
        assert runner.invoke(app, args + ["--fail-on-error"]).exit_code == 1

    def test_no_paths(self, manifest_file: Path) -> None:
        """Test scanning nothing is an error."""
        result = runner.invoke(app, ["scan", "-m", str(manifest_file)])

        assert result.exit_code == 1
        assert "No paths given" in result.output

    def test_missing_path(self, tmp_path: Path, manifest_file: Path) -> None:
        """Test a path that does not exist is an error."""
        result = runner.invoke(app, ["scan", str(tmp_path / "missing"), "-m", str(manifest_file)])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_long_missing_path_not_wrapped(self, tmp_path: Path, manifest_file: Path) -> None:
        """Test long paths in errors stay on one line."""
        missing = tmp_path / ("deeply_nested_directory_name" * 4) / "missing.php"
        result = runner.invoke(app, ["scan", str(missing), "-m", str(manifest_file)])

        assert result.exit_code == 1
        assert f'Path "{missing}" does not exist' in result.output

    def test_missing_config_file(self, sample_project: Path, manifest_file: Path, tmp_path: Path) -> None:
        """Test an explicit config file that does not exist is an error."""
        result = runner.invoke(app, [
            "scan", str(sample_project), "-m", str(manifest_file), "-c", str(tmp_path / "absent.toml"),
        ])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
        assert "absent.toml" in result.output

    def test_missing_manifest(self, sample_project: Path, tmp_path: Path) -> None:
        """Test an unavailable catalog is fatal."""
        result = runner.invoke(app, ["scan", str(sample_project), "-m", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "Cannot load PHP symbol catalog" in result.output

    def test_manifest_from_config(self, sample_project: Path, manifest_file: Path, tmp_path: Path) -> None:
        """Test the manifest and file extensions can come from a config file."""
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            f'[catalog]\nmanifest = "{manifest_file.as_posix()}"\n\n'
            '[scan]\nexclude_patterns = ["**/vendor/**"]\n',
            encoding="utf-8",
        )
        output = tmp_path / "report.json"

        result = runner.invoke(app, [
            "scan", str(sample_project), "-c", str(config_file), "-f", "json", "-o", str(output),
        ])

        assert result.exit_code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert [entry["file"] for entry in data["extensions"]["mbstring"]] == [
            str(sample_project / "src" / "Http" / "Text.php"),
        ]


class TestCLIDumpCatalog:
    """Test dump-catalog command."""

    def test_dump_catalog(self, catalog: SymbolCatalog, tmp_path: Path) -> None:
        """Test the runtime catalog is written as a manifest."""
        output = tmp_path / "manifest.json"

        with patch("php_ext_usage.cli.PhpRuntimeCatalogSource.load", return_value=catalog):
            result = runner.invoke(app, ["dump-catalog", "-o", str(output)])

        assert result.exit_code == 0
        assert SymbolCatalog.from_dict(json.loads(output.read_text(encoding="utf-8"))) == catalog

    def test_dump_catalog_stdout(self, catalog: SymbolCatalog) -> None:
        """Test the manifest goes to standard output without --output."""
        with patch("php_ext_usage.cli.PhpRuntimeCatalogSource.load", return_value=catalog):
            result = runner.invoke(app, ["dump-catalog"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["php_version"] == "8.3.0"

    def test_dump_catalog_without_php(self) -> None:
        """Test a missing PHP binary is reported."""
        error = CatalogError("PHP binary not found: php")

        with patch("php_ext_usage.cli.PhpRuntimeCatalogSource.load", side_effect=error):
            result = runner.invoke(app, ["dump-catalog"])

        assert result.exit_code == 1
        assert "PHP binary not found" in result.output


class TestCLIClearCache:
    """Test clear-cache command."""

    def test_clear_cache(self) -> None:
        """Test clearing an empty cache."""
        result = runner.invoke(app, ["clear-cache"])

        assert result.exit_code == 0
        assert "0 catalogs removed" in result.output

"""CLI interface using Typer."""

import json
import logging
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from php_ext_usage.cache import CatalogCache
from php_ext_usage.config import Config, get_config
from php_ext_usage.reporters.json_formats import ComposerReporter, JSONReporter
from php_ext_usage.reporters.terminal import TerminalReporter
from php_ext_usage.scanner.catalog import (
    CatalogError,
    CatalogSource,
    ManifestCatalogSource,
    PhpRuntimeCatalogSource,
)
from php_ext_usage.scanner.file_discovery import FileDiscovery
from php_ext_usage.scanner.registry import ModuleRegistry
from php_ext_usage.scanner.usage_mapper import UsageMapper

# Set up logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="php-ext-usage",
    help="Detect which PHP extensions a codebase depends on",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""
    text = "text"
    json = "json"
    composer = "composer"


def print_error(message: str) -> None:
    """Print an error on stderr without wrapping long paths."""
    err_console.print(f"[red]Error: {escape(message)}[/red]", highlight=False, soft_wrap=True)


def _catalog_source(config: Config, manifest: Path | None, php_binary: str | None) -> CatalogSource:
    """Pick the symbol catalog source from options and configuration."""
    manifest = manifest or config.manifest

    if manifest is not None:
        return ManifestCatalogSource(manifest)

    return PhpRuntimeCatalogSource(
        php_binary or config.php_binary,
        timeout=config.php_timeout,
        cache=CatalogCache(),
    )


@app.command()
def scan(
    paths: list[Path] = typer.Argument(
        None,
        help="Directories and/or files to scan",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.text,
        "--format",
        "-f",
        help="Output format (text, json, composer)",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the report to a file instead of standard output",
    ),
    extensions: list[str] = typer.Option(
        None,
        "--extension",
        "-e",
        help="File extensions to scan (can be repeated, default: php)",
    ),
    progress: bool = typer.Option(
        False,
        "--progress",
        "-p",
        help="List file paths as they are scanned",
    ),
    manifest: Path = typer.Option(
        None,
        "--manifest",
        "-m",
        help="Symbol manifest written by dump-catalog (instead of querying PHP)",
    ),
    php_binary: str = typer.Option(
        None,
        "--php",
        help="PHP binary to take the symbol catalog from",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Number of files scanned in parallel",
    ),
    config_file: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a TOML configuration file",
    ),
    fail_on_error: bool = typer.Option(
        False,
        "--fail-on-error",
        help="Exit with code 1 if any file failed to scan",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Scan for PHP extension usage in the given paths."""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not paths:
        print_error("No paths given")
        raise typer.Exit(1)

    if config_file is not None and not config_file.is_file():
        print_error(f"Config file not found: {config_file}")
        raise typer.Exit(1)

    config = get_config(config_file)
    file_extensions = extensions or config.file_extensions

    if not file_extensions:
        print_error("No file extensions given")
        raise typer.Exit(1)

    def show_progress(path: Path) -> None:
        err_console.print(str(path), highlight=False, soft_wrap=True, markup=False)

    registry = ModuleRegistry(_catalog_source(config, manifest, php_binary))
    mapper = UsageMapper(
        registry,
        file_discovery=FileDiscovery(file_extensions, config.exclude_patterns),
        workers=workers or config.workers,
        progress=show_progress if progress else None,
    )

    try:
        report = mapper.map_paths(paths)
    except FileNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(1)
    except CatalogError as e:
        print_error(f"Cannot load PHP symbol catalog: {e}")
        raise typer.Exit(1)

    terminal_reporter = TerminalReporter(color=config.color)
    terminal_reporter.print_failures(report, err_console)

    if output_format == OutputFormat.text:
        if output:
            with open(output, "w", encoding="utf-8") as f:
                TerminalReporter(console=Console(file=f, color_system=None, width=200)).print_report(report)
        else:
            terminal_reporter.print_report(report)

    elif output_format == OutputFormat.json:
        json_output = JSONReporter().generate_report(report, output)
        if not output:
            typer.echo(json_output)

    elif output_format == OutputFormat.composer:
        composer_output = ComposerReporter().generate_report(report, output)
        if not output:
            typer.echo(composer_output)

    if output:
        err_console.print(f"[green]Report saved to: {escape(str(output))}[/green]", soft_wrap=True)

    if fail_on_error and report.has_failures:
        raise typer.Exit(1)


@app.command()
def dump_catalog(
    php_binary: str = typer.Option(
        None,
        "--php",
        help="PHP binary to introspect",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Path to the manifest file to write",
    ),
) -> None:
    """Write the symbol catalog of a PHP runtime to a manifest file."""

    config = get_config()
    source = PhpRuntimeCatalogSource(
        php_binary or config.php_binary,
        timeout=config.php_timeout,
    )

    try:
        catalog = source.load()
    except CatalogError as e:
        print_error(str(e))
        raise typer.Exit(1)

    manifest = json.dumps(catalog.to_dict(), indent=2, sort_keys=True)

    if output:
        output.write_text(manifest + "\n", encoding="utf-8")
        err_console.print(
            f"[green]Wrote {len(catalog.modules)} extensions "
            f"(PHP {catalog.php_version}) to {escape(str(output))}[/green]",
            soft_wrap=True,
        )
    else:
        typer.echo(manifest)


@app.command()
def clear_cache() -> None:
    """Clear cached symbol catalogs."""

    console.print("[yellow]Clearing cache...[/yellow]")

    deleted = CatalogCache().clear()

    console.print(f"[green]Cache cleared ({deleted} catalogs removed)[/green]")


@app.command()
def version() -> None:
    """Show version information."""

    from php_ext_usage import __version__

    console.print(f"[bold]php-ext-usage[/bold] v{__version__}")


if __name__ == "__main__":
    app()

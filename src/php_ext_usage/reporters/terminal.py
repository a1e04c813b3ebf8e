"""Terminal reporter using Rich library."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from php_ext_usage.models import ScanReport, UsageEntry


class TerminalReporter:
    """Prints extension usage as human-readable text."""

    def __init__(self, color: bool = True, console: Console | None = None) -> None:
        """Initialize terminal reporter.

        Args:
            color: If True, use colored output
            console: Console to print to (created when omitted)
        """
        self.console = console or Console(color_system="auto" if color else None)

    @staticmethod
    def format_entry(entry: UsageEntry) -> str:
        """Format one usage as "<kind> <name> in <file> @ <lines>"."""
        lines = ", ".join(str(line) for line in entry.lines)
        return f"{entry.kind.value} {entry.name} in {entry.file_path} @ {lines}"

    def print_report(self, report: ScanReport) -> None:
        """Print one section per extension listing every usage.

        Args:
            report: Scan report
        """
        for module in report.modules:
            self.console.print(f"\n[bold cyan]{module}[/bold cyan]")
            self.console.print("[cyan]" + "=" * len(module) + "[/cyan]\n")

            for entry in report.usages(module):
                self.console.print(f" * {escape(self.format_entry(entry))}", highlight=False, soft_wrap=True)

        self.print_statistics(report)

    def print_failures(self, report: ScanReport, console: Console | None = None) -> None:
        """Print files that could not be scanned.

        Args:
            report: Scan report
            console: Console to print to (usually stderr)
        """
        console = console or self.console

        for failure in report.failures:
            message = f'[ERROR] Failed to scan file "{failure.file_path}" - {failure.message}'
            console.print(
                f"[red]{escape(message)}[/red]",
                highlight=False,
                soft_wrap=True,
            )

    def print_statistics(self, report: ScanReport) -> None:
        """Print a one-line summary."""
        stats = Text()
        stats.append("Summary: ", style="bold")
        stats.append(f"{report.files_scanned} files scanned | ")
        stats.append(f"{len(report.modules)} extensions required", style="bold green")

        if report.failures:
            stats.append(f" | {len(report.failures)} failed", style="bold red")

        self.console.print()
        self.console.print(Panel(stats, border_style="blue"))

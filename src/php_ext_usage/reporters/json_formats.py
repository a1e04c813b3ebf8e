"""JSON and Composer output formatters."""

import json
import logging
from pathlib import Path
from typing import Any

from php_ext_usage.models import ScanReport

logger = logging.getLogger(__name__)


def _write(content: str, output_file: Path | None) -> str:
    if output_file:
        output_file.write_text(content + "\n", encoding="utf-8")
        logger.debug(f"Report written to {output_file}")

    return content


class JSONReporter:
    """Generates a JSON document of every usage grouped by extension."""

    FORMAT_VERSION = "1.0"

    def generate_report(self, report: ScanReport, output_file: Path | None = None) -> str:
        """Generate JSON report.

        Args:
            report: Scan report
            output_file: Optional path to save report

        Returns:
            JSON string
        """
        data = {
            "version": self.FORMAT_VERSION,
            "extensions": {
                module: [
                    {
                        "file": str(entry.file_path),
                        "type": entry.kind.value,
                        "name": entry.name,
                        "lines": list(entry.lines),
                    }
                    for entry in report.usages(module)
                ]
                for module in report.modules
            },
            "failures": [
                {
                    "file": str(failure.file_path),
                    "message": failure.message,
                    "line": failure.diagnostic.line if failure.diagnostic else None,
                }
                for failure in report.failures
            ],
        }

        return _write(json.dumps(data, indent=4), output_file)


class ComposerReporter:
    """Generates the ``require`` section of a composer.json."""

    def requirements(self, report: ScanReport) -> dict[str, Any]:
        """Get one "ext-*" requirement per referenced extension."""
        return {f"ext-{module.lower()}": "*" for module in report.modules}

    def generate_report(self, report: ScanReport, output_file: Path | None = None) -> str:
        """Generate Composer requirements.

        Args:
            report: Scan report
            output_file: Optional path to save report

        Returns:
            JSON string
        """
        content = json.dumps({"require": self.requirements(report)}, indent=4)
        return _write(content, output_file)

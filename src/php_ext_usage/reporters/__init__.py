"""Reporters package."""

from php_ext_usage.reporters.json_formats import ComposerReporter, JSONReporter
from php_ext_usage.reporters.terminal import TerminalReporter

__all__ = [
    "TerminalReporter",
    "JSONReporter",
    "ComposerReporter",
]

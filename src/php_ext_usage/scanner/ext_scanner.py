"""Scans one unit of PHP source for extension usage."""

import logging

from php_ext_usage.models import ParseDiagnostic, UsageResult
from php_ext_usage.scanner.classifier import UsageClassifier
from php_ext_usage.scanner.php_parser import PhpParser, PhpSyntaxError
from php_ext_usage.scanner.registry import ModuleRegistry

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """A source unit could not be scanned."""

    def __init__(self, message: str, diagnostic: ParseDiagnostic | None = None) -> None:
        super().__init__(message)
        self.diagnostic = diagnostic


class ExtensionScanner:
    """Parses PHP source and collects the extension symbols it uses.

    The parser is created on first use and reused for later scans. Because
    the parser is not thread-safe, concurrent scans need one scanner each;
    the registry may be shared.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        parser: PhpParser | None = None,
        classifier: UsageClassifier | None = None,
    ) -> None:
        """Initialize scanner.

        Args:
            registry: Module registry
            parser: Parser to use (created lazily when omitted)
            classifier: Classifier to use (defaults to one over the registry)
        """
        self.registry = registry
        self._parser = parser
        self.classifier = classifier or UsageClassifier(registry)

    @property
    def parser(self) -> PhpParser:
        if self._parser is None:
            self._parser = PhpParser()
        return self._parser

    def scan(self, source: str | bytes) -> UsageResult:
        """Scan PHP source code.

        Args:
            source: PHP source code

        Returns:
            Frozen usage result

        Raises:
            ScanError: If the source cannot be parsed
        """
        result = UsageResult()

        try:
            unit = self.parser.parse(source)
        except PhpSyntaxError as e:
            raise ScanError(str(e), diagnostic=e.diagnostic) from e

        for node in unit.walk():
            self.classifier.classify(node, result)

        return result.freeze()

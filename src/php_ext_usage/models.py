"""Core data models for PHP extension usage detection."""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

# Extensions that are always compiled into PHP and never reported.
# See http://php.net/manual/en/extensions.membership.php#extensions.membership.core
CORE_MODULES = frozenset({
    "core",
    "date",
    "pcre",
    "reflection",
    "spl",
    "standard",
})


def is_core_module(name: str) -> bool:
    """Check if a module name denotes a core extension (case-insensitive)."""
    return name.lower() in CORE_MODULES


def natural_sort_key(value: str) -> list[Any]:
    """Case-sensitive sort key ordering embedded numbers numerically.

    "ext2" sorts before "ext10", and uppercase names before lowercase ones
    ("PDO" < "curl").
    """
    return [
        int(part) if part.isdigit() else part
        for part in re.split(r"(\d+)", value)
    ]


class UsageKind(Enum):
    """Kinds of symbols a usage record can refer to."""

    FUNCTION = "function"
    CLASS = "class"
    CONSTANT = "constant"


@dataclass(frozen=True)
class Module:
    """A PHP extension."""

    name: str

    @property
    def is_core(self) -> bool:
        """Check if this extension is always present."""
        return is_core_module(self.name)


@dataclass(frozen=True)
class ParameterInfo:
    """Declared parameter of an extension function."""

    name: str
    type: str | None = None
    callable: bool = False
    variadic: bool = False

    @property
    def has_type(self) -> bool:
        """Check if the parameter declares a type."""
        return self.type is not None


@dataclass(frozen=True)
class FunctionInfo:
    """Registry entry of a function together with its parameter metadata."""

    name: str
    module: str
    parameters: tuple[ParameterInfo, ...] = ()


@dataclass(frozen=True)
class UsageRecord:
    """One symbol of one module used on one or more lines."""

    module: str
    kind: UsageKind
    name: str
    lines: tuple[int, ...]

    def __str__(self) -> str:
        """String representation."""
        lines = ", ".join(str(line) for line in self.lines)
        return f"{self.kind.value} {self.name} ({self.module}) @ {lines}"


class UsageResult:
    """Accumulates extension usage found in a single source unit.

    Maps module name -> kind -> symbol name -> line numbers. Lines are kept in
    the order they were encountered. Once frozen the result is read-only.
    """

    def __init__(self) -> None:
        self._modules: dict[str, dict[UsageKind, dict[str, list[int]]]] = {}
        self._frozen = False

    def add_function(self, module: str, name: str, line: int) -> None:
        self.add(module, UsageKind.FUNCTION, name, line)

    def add_class(self, module: str, name: str, line: int) -> None:
        self.add(module, UsageKind.CLASS, name, line)

    def add_constant(self, module: str, name: str, line: int) -> None:
        self.add(module, UsageKind.CONSTANT, name, line)

    def add(self, module: str, kind: UsageKind, name: str, line: int) -> None:
        """Record a usage of a symbol.

        Args:
            module: Owning extension name
            kind: Symbol kind
            name: Symbol name
            line: 1-based line number

        Raises:
            RuntimeError: If the result has been frozen
        """
        if self._frozen:
            raise RuntimeError("Cannot modify a frozen usage result")

        maps = self._modules.setdefault(
            module, {kind: {} for kind in UsageKind}
        )
        maps[kind].setdefault(name, []).append(line)

    def freeze(self) -> "UsageResult":
        """Make the result read-only and return it."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def modules(self) -> list[str]:
        """Get referenced modules in order of first use."""
        return list(self._modules)

    def functions(self, module: str) -> dict[str, list[int]]:
        """Get function name -> lines for a module."""
        return self._symbols(module, UsageKind.FUNCTION)

    def classes(self, module: str) -> dict[str, list[int]]:
        """Get class name -> lines for a module."""
        return self._symbols(module, UsageKind.CLASS)

    def constants(self, module: str) -> dict[str, list[int]]:
        """Get constant name -> lines for a module."""
        return self._symbols(module, UsageKind.CONSTANT)

    def _symbols(self, module: str, kind: UsageKind) -> dict[str, list[int]]:
        maps = self._modules.get(module)

        if maps is None:
            return {}

        return {name: list(lines) for name, lines in maps[kind].items()}

    def records(self) -> Iterator[UsageRecord]:
        """Iterate over all usage records, module by module."""
        for module, maps in self._modules.items():
            for kind in UsageKind:
                for name, lines in maps[kind].items():
                    yield UsageRecord(module, kind, name, tuple(lines))

    def is_empty(self) -> bool:
        return not self._modules

    def to_dict(self) -> dict[str, dict[str, dict[str, list[int]]]]:
        """Serialize to plain data (module -> kind -> name -> lines)."""
        return {
            module: {
                kind.value: {name: list(lines) for name, lines in maps[kind].items()}
                for kind in UsageKind
            }
            for module, maps in self._modules.items()
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UsageResult):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"UsageResult(modules={self.modules!r})"


@dataclass(frozen=True)
class ParseDiagnostic:
    """Location and description of a syntax error."""

    line: int
    column: int
    message: str

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message} on line {self.line}"


@dataclass(frozen=True)
class ScanFailure:
    """A source file that could not be scanned."""

    file_path: Path
    message: str
    diagnostic: ParseDiagnostic | None = None


@dataclass(frozen=True)
class UsageEntry:
    """One row of a per-module usage listing."""

    file_path: Path
    kind: UsageKind
    name: str
    lines: tuple[int, ...]


@dataclass
class ScanReport:
    """Merged usage of a batch of scanned files."""

    results: dict[Path, UsageResult] = field(default_factory=dict)
    failures: list[ScanFailure] = field(default_factory=list)
    files_scanned: int = 0

    @property
    def modules(self) -> list[str]:
        """Get all referenced modules in natural order."""
        names = {module for result in self.results.values() for module in result.modules}
        return sorted(names, key=natural_sort_key)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def usages(self, module: str) -> list[UsageEntry]:
        """Get usage of a module across all files.

        Entries are ordered by file, then classes, constants and functions.

        Args:
            module: Module name

        Returns:
            List of usage entries
        """
        entries: list[UsageEntry] = []

        for file_path, result in self.results.items():
            for kind, symbols in (
                (UsageKind.CLASS, result.classes(module)),
                (UsageKind.CONSTANT, result.constants(module)),
                (UsageKind.FUNCTION, result.functions(module)),
            ):
                for name, lines in symbols.items():
                    entries.append(UsageEntry(file_path, kind, name, tuple(lines)))

        return entries

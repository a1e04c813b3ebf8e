"""Classifies syntax nodes as uses of extension functions, classes and constants."""

import fnmatch
import logging

from php_ext_usage.models import FunctionInfo, ParameterInfo, UsageResult
from php_ext_usage.scanner.php_parser import (
    Argument,
    ClassReference,
    ConstantFetch,
    FunctionCall,
    Name,
    SyntaxNode,
)
from php_ext_usage.scanner.registry import ModuleRegistry

logger = logging.getLogger(__name__)

# Untyped parameters with these names are assumed to take a callback.
CALLABLE_PARAMETER_PATTERNS = (
    "*callback*",
    "*function*",
    "*funcname*",
)


def candidate_names(name: Name) -> list[str]:
    """Get the names a function or constant reference may resolve to.

    Args:
        name: Resolved name

    Returns:
        Candidates in the order PHP tries them
    """
    if name.fully_qualified is not None:
        return [name.fully_qualified]

    names = []

    if name.namespaced is not None:
        names.append(name.namespaced)

    names.append(name.written)
    return names


def is_callable_parameter_name(parameter_name: str) -> bool:
    """Check if a parameter name follows a callback naming convention."""
    lowered = parameter_name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern) for pattern in CALLABLE_PARAMETER_PATTERNS)


def accepts_callback(parameter: ParameterInfo) -> bool:
    """Check if a parameter may receive a function name as a callback."""
    if parameter.callable:
        return True

    return not parameter.has_type and is_callable_parameter_name(parameter.name)


class UsageClassifier:
    """Records the extension symbols that syntax nodes refer to.

    The classifier holds no per-scan state: the result being built is passed
    to every call, so one classifier can serve any number of scans.
    """

    def __init__(self, registry: ModuleRegistry) -> None:
        """Initialize classifier.

        Args:
            registry: Registry used to find the extension owning a symbol
        """
        self.registry = registry

    def classify(self, node: SyntaxNode, result: UsageResult) -> None:
        """Record the extension usage a node represents, if any.

        Args:
            node: Syntax node
            result: Result receiving usage records
        """
        if isinstance(node, FunctionCall):
            self._classify_function_call(node, result)
        elif isinstance(node, ConstantFetch):
            self._classify_constant_fetch(node, result)
        elif isinstance(node, ClassReference):
            self._classify_class_reference(node, result)
        else:
            logger.debug("Ignoring unclassifiable node: %r", node)

    def _classify_function_call(self, call: FunctionCall, result: UsageResult) -> None:
        for name in candidate_names(call.name):
            function = self.registry.lookup_function(name)

            if function is None:
                continue

            if not self.registry.is_core(function.module):
                result.add_function(function.module, name, call.line)

            self._classify_callback_arguments(function, call.arguments, result)
            break

    def _classify_callback_arguments(
        self,
        function: FunctionInfo,
        arguments: tuple[Argument, ...],
        result: UsageResult,
    ) -> None:
        """Record functions passed by name to callback parameters.

        Only string literals placed directly in the call are followed; the
        named function's own parameters are not inspected.
        """
        for parameter, argument in zip(function.parameters, arguments):
            if parameter.variadic or argument.named or argument.unpacked:
                break

            if argument.string_value is None or not accepts_callback(parameter):
                continue

            callback = self.registry.lookup_function(argument.string_value)

            if callback is None or self.registry.is_core(callback.module):
                continue

            logger.debug(
                f"{function.name}() receives callback {argument.string_value} "
                f"on line {argument.line}"
            )
            result.add_function(callback.module, argument.string_value, argument.line)

    def _classify_constant_fetch(self, fetch: ConstantFetch, result: UsageResult) -> None:
        for name in candidate_names(fetch.name):
            module = self.registry.lookup_constant(name)

            if module is None:
                continue

            if not module.is_core:
                result.add_constant(module.name, name, fetch.line)
            break

    def _classify_class_reference(self, reference: ClassReference, result: UsageResult) -> None:
        # unqualified class names are resolved by the parser; anything it
        # could not fully qualify is not evaluated
        class_name = reference.name.fully_qualified

        if class_name is None:
            return

        module = self.registry.lookup_class(class_name)

        if module is not None and not module.is_core:
            result.add_class(module.name, class_name, reference.line)

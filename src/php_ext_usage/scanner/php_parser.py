"""Tree-sitter based PHP parser with namespace name resolution.

Parsing produces a :class:`ParsedUnit` whose :meth:`ParsedUnit.walk` visits
every node of the syntax tree in pre-order and yields the nodes that can
reference an extension symbol, already reduced to one of three shapes:

* :class:`FunctionCall` - ``foo()``, ``\\foo()``, ``Ns\\foo()``
* :class:`ConstantFetch` - ``FOO``, ``\\FOO``, ``Ns\\FOO``
* :class:`ClassReference` - ``new Foo``, ``Foo::bar()``, ``Foo::$bar``, ``Foo::BAR``

Names are resolved against the ``namespace`` and ``use`` statements seen so
far, the same way PHP resolves them at compile time.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

import tree_sitter_php
from tree_sitter import Language, Node, Parser, Tree

from php_ext_usage.models import ParseDiagnostic

logger = logging.getLogger(__name__)

NAME_NODES = frozenset({"name", "qualified_name", "relative_name"})

SPECIAL_CLASS_NAMES = frozenset({"self", "parent", "static"})

# Direct name children of these nodes are never constant fetches.
NON_CONSTANT_PARENTS = frozenset({
    "variable_name",
    "dynamic_variable_name",
    "qualified_name",
    "relative_name",
    "namespace_name",
    "namespace_name_as_prefix",
    "namespace_definition",
    "namespace_use_declaration",
    "namespace_use_clause",
    "namespace_use_group",
    "namespace_use_group_clause",
    "namespace_aliasing_clause",
    "function_call_expression",
    "scoped_call_expression",
    "member_call_expression",
    "nullsafe_member_call_expression",
    "member_access_expression",
    "nullsafe_member_access_expression",
    "scoped_property_access_expression",
    "class_constant_access_expression",
    "object_creation_expression",
    "named_type",
    "optional_type",
    "union_type",
    "intersection_type",
    "type_list",
    "base_clause",
    "class_interface_clause",
    "use_declaration",
    "use_list",
    "use_as_clause",
    "use_instead_of_clause",
    "attribute",
    "goto_statement",
    "named_label_statement",
})


class PhpSyntaxError(Exception):
    """Source text is not valid PHP."""

    def __init__(self, diagnostic: ParseDiagnostic) -> None:
        super().__init__(str(diagnostic))
        self.diagnostic = diagnostic


@dataclass(frozen=True)
class Name:
    """A symbol name as written plus what namespace resolution made of it.

    ``fully_qualified`` is set when resolution is certain. Unqualified
    function and constant names inside a namespace cannot be resolved
    statically: PHP tries ``namespaced`` first and falls back to the global
    ``written`` name at runtime.
    """

    written: str
    fully_qualified: str | None = None
    namespaced: str | None = None


@dataclass(frozen=True)
class Argument:
    """A call argument, reduced to what callback detection needs."""

    line: int
    string_value: str | None = None
    named: bool = False
    unpacked: bool = False


@dataclass(frozen=True)
class FunctionCall:
    name: Name
    arguments: tuple[Argument, ...]
    line: int


@dataclass(frozen=True)
class ConstantFetch:
    name: Name
    line: int


class ClassReferenceKind(Enum):
    """Ways an expression can refer to a class by name."""

    INSTANTIATION = "new"
    STATIC_CALL = "static_call"
    STATIC_PROPERTY = "static_property"
    CLASS_CONSTANT = "class_constant"


@dataclass(frozen=True)
class ClassReference:
    name: Name
    kind: ClassReferenceKind
    line: int


SyntaxNode = FunctionCall | ConstantFetch | ClassReference


@dataclass
class NameContext:
    """Current namespace and the imports declared in it."""

    namespace: str | None = None
    # lowercased alias -> fully-qualified name
    classes: dict[str, str] = field(default_factory=dict)
    functions: dict[str, str] = field(default_factory=dict)
    # constant aliases are case-sensitive
    constants: dict[str, str] = field(default_factory=dict)

    def add_use(self, kind: str, target: str, alias: str | None) -> None:
        """Register a ``use`` import.

        Args:
            kind: "class", "function" or "const"
            target: Imported fully-qualified name
            alias: Alias, defaults to the last name segment
        """
        target = target.lstrip("\\")
        alias = alias or target.rsplit("\\", 1)[-1]

        if kind == "function":
            self.functions[alias.lower()] = target
        elif kind == "const":
            self.constants[alias] = target
        else:
            self.classes[alias.lower()] = target

    def _prefixed(self, name: str) -> str:
        return f"{self.namespace}\\{name}" if self.namespace else name

    def _resolve_qualified(self, name: str) -> str:
        """Resolve a name that is qualified or a class name."""
        if name.lower().startswith("namespace\\"):
            return self._prefixed(name[len("namespace\\"):])

        first, _, rest = name.partition("\\")
        target = self.classes.get(first.lower())

        if target is not None:
            return f"{target}\\{rest}" if rest else target

        return self._prefixed(name)

    def resolve_class(self, text: str) -> Name:
        """Resolve a class name; the result is always fully qualified."""
        if text.startswith("\\"):
            written = text[1:]
            return Name(written, fully_qualified=written)

        if text.lower() in SPECIAL_CLASS_NAMES:
            return Name(text)

        return Name(text, fully_qualified=self._resolve_qualified(text))

    def resolve_function(self, text: str) -> Name:
        return self._resolve_symbol(text, self.functions, case_sensitive=False)

    def resolve_constant(self, text: str) -> Name:
        return self._resolve_symbol(text, self.constants, case_sensitive=True)

    def _resolve_symbol(
        self,
        text: str,
        aliases: dict[str, str],
        case_sensitive: bool,
    ) -> Name:
        if text.startswith("\\"):
            written = text[1:]
            return Name(written, fully_qualified=written)

        if "\\" in text:
            return Name(text, fully_qualified=self._resolve_qualified(text))

        target = aliases.get(text if case_sensitive else text.lower())

        if target is not None:
            return Name(text, fully_qualified=target)

        if self.namespace is None:
            return Name(text, fully_qualified=text)

        return Name(text, namespaced=self._prefixed(text))


def _text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _name_text(node: Node) -> str:
    # comments may appear between the segments of a qualified name
    return re.sub(r"\s+", "", _text(node))


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _same_node(a: Node | None, b: Node) -> bool:
    return (
        a is not None
        and a.start_byte == b.start_byte
        and a.end_byte == b.end_byte
        and a.type == b.type
    )


def _preorder(root: Node) -> Iterator[Node]:
    """Visit every node below and including root in pre-order."""
    cursor = root.walk()
    descending = True

    while True:
        if descending:
            yield cursor.node
            if cursor.goto_first_child():
                continue

        if cursor.goto_next_sibling():
            descending = True
        elif cursor.goto_parent():
            descending = False
        else:
            return


_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}

_ESCAPE_PATTERN = re.compile(
    r"\\(?:([0-7]{1,3})|x([0-9A-Fa-f]{1,2})|u\{([0-9A-Fa-f]+)\}|([ntrvef\\$\"]))"
)

# Node types inside a double-quoted string or heredoc with nothing interpolated.
LITERAL_STRING_PARTS = frozenset({
    "string_content",
    "string_value",
    "escape_sequence",
    "heredoc_start",
    "heredoc_body",
    "heredoc_end",
})


def _unescape(body: str, quoted: bool) -> str:
    """Decode the escape sequences of a double-quoted string or heredoc.

    Octal and hexadecimal escapes give single bytes, mapped to code points
    0-255. Inside a heredoc ``\\"`` is kept as written.
    """
    def replace(match: re.Match) -> str:
        octal, hexadecimal, codepoint, simple = match.groups()

        if octal is not None:
            return chr(int(octal, 8) & 0xFF)
        if hexadecimal is not None:
            return chr(int(hexadecimal, 16))
        if codepoint is not None:
            value = int(codepoint, 16)
            return chr(value) if value <= 0x10FFFF else match.group(0)
        if simple == '"' and not quoted:
            return match.group(0)
        return _ESCAPES[simple]

    return _ESCAPE_PATTERN.sub(replace, body)


def _doc_body(text: str) -> str:
    """Get the raw body of a heredoc or nowdoc.

    The opening and closing marker lines are dropped, and the indentation
    of the closing marker is removed from every body line.
    """
    lines = re.split(r"\r\n|\n|\r", text)

    if len(lines) < 2:
        return ""

    closing = lines[-1]
    indent = closing[:len(closing) - len(closing.lstrip(" \t"))]

    return "\n".join(
        line[len(indent):] if line.startswith(indent) else line.lstrip(" \t")
        for line in lines[1:-1]
    )


def string_literal_value(node: Node) -> str | None:
    """Get the value of a string literal without interpolation.

    Args:
        node: A ``string``, ``encapsed_string``, ``heredoc`` or ``nowdoc`` node

    Returns:
        The literal value, or None if the node is not a constant string
    """
    if node.type in ("encapsed_string", "heredoc"):
        for part in _preorder(node):
            if part.is_named and not _same_node(part, node) and part.type not in LITERAL_STRING_PARTS:
                return None

    text = _text(node)

    if text[:1] in ("b", "B"):
        text = text[1:]

    if node.type == "nowdoc":
        return _doc_body(text)

    if node.type == "heredoc":
        return _unescape(_doc_body(text), quoted=False)

    if len(text) < 2:
        return None

    body = text[1:-1]

    if node.type == "string":
        return re.sub(r"\\([\\'])", r"\1", body)

    if node.type == "encapsed_string":
        return _unescape(body, quoted=True)

    return None


class ParsedUnit:
    """A parsed PHP source unit."""

    def __init__(self, tree: Tree) -> None:
        self.tree = tree

    def walk(self) -> Iterator[SyntaxNode]:
        """Yield every symbol-referencing node of the tree in pre-order."""
        context = NameContext()

        for node in _preorder(self.tree.root_node):
            node_type = node.type

            if node_type == "namespace_definition":
                name = node.child_by_field_name("name")
                context = NameContext(namespace=_name_text(name) if name is not None else None)
            elif node_type == "namespace_use_declaration":
                self._register_uses(node, context)
            elif node_type == "function_call_expression":
                call = self._function_call(node, context)
                if call is not None:
                    yield call
            elif node_type in NAME_NODES:
                if self._is_constant_fetch(node):
                    yield ConstantFetch(context.resolve_constant(_name_text(node)), _line(node))
            else:
                reference = self._class_reference(node, context)
                if reference is not None:
                    yield reference

    @staticmethod
    def _use_kind(node: Node) -> str | None:
        for child in node.children:
            if child.type in ("function", "const"):
                return child.type
        return None

    def _register_uses(self, node: Node, context: NameContext) -> None:
        """Record the imports of a ``use`` statement."""
        kind = self._use_kind(node) or "class"
        prefix = ""

        for child in node.named_children:
            if child.type == "namespace_name":
                # group use: "use Prefix\{A, B as C};"
                prefix = _name_text(child).lstrip("\\") + "\\"
            elif child.type == "namespace_use_clause":
                self._register_clause(child, kind, "", context)
            elif child.type == "namespace_use_group":
                for clause in child.named_children:
                    if clause.type in ("namespace_use_clause", "namespace_use_group_clause"):
                        self._register_clause(clause, kind, prefix, context)

    def _register_clause(
        self,
        clause: Node,
        kind: str,
        prefix: str,
        context: NameContext,
    ) -> None:
        target: str | None = None
        alias: str | None = None
        after_as = False

        for child in clause.children:
            if child.type == "as":
                after_as = True
            elif child.type == "namespace_aliasing_clause":
                for sub in child.named_children:
                    if sub.type == "name":
                        alias = _text(sub)
            elif child.type in ("name", "qualified_name", "namespace_name"):
                if after_as:
                    alias = _text(child)
                elif target is None:
                    target = _name_text(child)

        if target is None:
            return

        clause_kind = self._use_kind(clause) or kind
        context.add_use(clause_kind, prefix + target.lstrip("\\"), alias)

    @staticmethod
    def _function_call(node: Node, context: NameContext) -> FunctionCall | None:
        function = node.child_by_field_name("function")

        if function is None or function.type not in NAME_NODES:
            # dynamic call such as $fn() or $obj->method()
            return None

        arguments: list[Argument] = []
        arguments_node = node.child_by_field_name("arguments")

        if arguments_node is not None:
            for child in arguments_node.named_children:
                if child.type == "argument":
                    arguments.append(ParsedUnit._argument(child))
                elif child.type == "variadic_placeholder":
                    # first-class callable syntax: foo(...)
                    arguments.append(Argument(_line(child), unpacked=True))

        return FunctionCall(
            context.resolve_function(_name_text(function)),
            tuple(arguments),
            _line(node),
        )

    @staticmethod
    def _argument(node: Node) -> Argument:
        label = node.child_by_field_name("name")
        values = [
            child for child in node.named_children
            if not _same_node(label, child) and child.type != "reference_modifier"
        ]

        if not values:
            return Argument(_line(node), named=label is not None)

        value = values[-1]

        if value.type == "variadic_unpacking":
            return Argument(_line(value), unpacked=True)

        string_value = None
        if value.type in ("string", "encapsed_string", "heredoc", "nowdoc"):
            string_value = string_literal_value(value)

        return Argument(_line(value), string_value=string_value, named=label is not None)

    @staticmethod
    def _is_constant_fetch(node: Node) -> bool:
        """Check if a name node is used as a constant in an expression."""
        parent = node.parent

        if parent is None or parent.type in NON_CONSTANT_PARENTS:
            return False

        if parent.type == "program":
            return False

        # declarations, named arguments, enum cases...
        for field_name in ("name", "alias", "type", "label"):
            if _same_node(parent.child_by_field_name(field_name), node):
                return False

        if parent.type == "const_element":
            # "const FOO = BAR;" declares FOO and reads BAR
            return not _same_node(parent.named_children[0], node)

        if parent.type == "binary_expression":
            operator = parent.child_by_field_name("operator")
            if operator is not None and operator.type == "instanceof":
                return not _same_node(parent.child_by_field_name("right"), node)

        return True

    @staticmethod
    def _class_reference(node: Node, context: NameContext) -> ClassReference | None:
        node_type = node.type

        if node_type == "object_creation_expression":
            kind = ClassReferenceKind.INSTANTIATION
            candidates = [c for c in node.named_children if c.type != "attribute_list"]
            class_node = candidates[0] if candidates else None
        elif node_type == "scoped_call_expression":
            kind = ClassReferenceKind.STATIC_CALL
            class_node = node.child_by_field_name("scope")
        elif node_type == "scoped_property_access_expression":
            kind = ClassReferenceKind.STATIC_PROPERTY
            class_node = node.child_by_field_name("scope")
        elif node_type == "class_constant_access_expression":
            kind = ClassReferenceKind.CLASS_CONSTANT
            class_node = node.named_children[0] if node.named_children else None
        else:
            return None

        if class_node is None or class_node.type not in NAME_NODES:
            # self::, static::, $object::, new class {...}, new $className
            return None

        name = context.resolve_class(_name_text(class_node))

        if name.fully_qualified is None:
            return None

        return ClassReference(name, kind, _line(node))


class PhpParser:
    """Parses PHP source into :class:`ParsedUnit` instances.

    A parser must not be used by two threads at the same time.
    """

    def __init__(self) -> None:
        self._parser = Parser(Language(tree_sitter_php.language_php()))

    def parse(self, source: str | bytes) -> ParsedUnit:
        """Parse PHP source code.

        Args:
            source: PHP source (text is encoded as UTF-8)

        Returns:
            Parsed unit

        Raises:
            PhpSyntaxError: If the source contains a syntax error
        """
        if isinstance(source, str):
            source = source.encode("utf-8")

        tree = self._parser.parse(source)

        if tree.root_node.has_error:
            raise PhpSyntaxError(self._diagnose(tree.root_node))

        return ParsedUnit(tree)

    @staticmethod
    def _diagnose(root: Node) -> ParseDiagnostic:
        """Describe the first syntax error in the tree."""
        node = root

        while True:
            if node.type == "ERROR" or node.is_missing:
                break

            for child in node.children:
                if child.has_error or child.is_missing:
                    node = child
                    break
            else:
                break

        line, column = node.start_point[0] + 1, node.start_point[1] + 1

        if node.is_missing:
            message = f"Syntax error, missing '{node.type}'"
        elif node.type == "ERROR":
            snippet = _text(node).strip().splitlines()
            unexpected = snippet[0][:40] if snippet else "end of file"
            message = f"Syntax error, unexpected '{unexpected}'"
        else:
            message = "Syntax error"

        return ParseDiagnostic(line, column, message)

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from functools import lru_cache

import tree_sitter_php as tsphp
from tree_sitter import Language, Node, Parser

from docblock_mcp.services.docgen_errors import LocationError
from docblock_mcp.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

PHP_LANGUAGE = Language(tsphp.language_php())
PHP_OPEN_TAG = "<?php\n"
METHOD_FRAGMENT_PATTERN = re.compile(
    r"^\s*(?:(?:public|protected|private|static|abstract|final)\s+)*function\b"
)

MASKED_NODE_TYPES = {"comment", "string", "encapsed_string", "heredoc", "nowdoc"}
QUOTED_NODE_TYPES = {"string", "encapsed_string"}
NAME_NODE_TYPES = {"name", "qualified_name"}
USE_CLAUSE_TYPES = {"namespace_use_clause", "namespace_use_group_clause"}
PARAMETER_NODE_TYPES = {"simple_parameter", "variadic_parameter", "property_promotion_parameter"}

BUILTIN_TYPES = {
    "array",
    "bool",
    "callable",
    "false",
    "float",
    "int",
    "iterable",
    "mixed",
    "never",
    "null",
    "object",
    "parent",
    "self",
    "static",
    "string",
    "true",
    "void",
}


@dataclass(frozen=True)
class ClassInfo:
    namespace: str
    short_name: str
    parent: str | None
    uses: dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        if not self.namespace:
            return self.short_name
        return f"{self.namespace}\\{self.short_name}"

    def resolve(self, type_name: str) -> str:
        """Resolve a type name as written in this file to a qualified name."""
        if type_name.startswith("\\"):
            return type_name[1:]
        head, _, rest = type_name.partition("\\")
        if head in self.uses:
            return f"{self.uses[head]}\\{rest}" if rest else self.uses[head]
        return type_name


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type_name: str | None

    @property
    def is_builtin(self) -> bool:
        if self.type_name is None:
            return True
        return self.type_name.lstrip("?").lower() in BUILTIN_TYPES


@dataclass(frozen=True)
class MethodSource:
    class_name: str
    method_name: str
    method_body_text: str
    class_body_text: str
    constructor_text: str
    parameters: tuple[ParameterInfo, ...]
    declaring_class_name: str
    start_offset: int

    @property
    def parameter_type_names(self) -> list[str]:
        return [param.type_name for param in self.parameters if param.type_name]


@dataclass(frozen=True)
class ArrayEntry:
    """One element of a PHP array literal.

    ``value`` is unquoted for string literals and the source text otherwise;
    ``items`` holds the entries of a nested array literal.
    """

    key: str | None
    value: str
    kind: str
    items: tuple[ArrayEntry, ...] = ()

    @property
    def is_string(self) -> bool:
        return self.kind == "string"


class PhpDocument:
    """A tree-sitter parse of one PHP source, read back through ``str`` offsets."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.data = source.encode("utf-8")
        self.tree = Parser(PHP_LANGUAGE).parse(self.data)
        self._char_index: list[int] | None = None

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def offset(self, byte_offset: int) -> int:
        if len(self.data) == len(self.source):
            return byte_offset
        if self._char_index is None:
            index: list[int] = []
            for position, char in enumerate(self.source):
                index.extend([position] * len(char.encode("utf-8")))
            index.append(len(self.source))
            self._char_index = index
        return self._char_index[byte_offset]

    def span(self, node: Node) -> tuple[int, int]:
        return self.offset(node.start_byte), self.offset(node.end_byte)

    def text(self, node: Node) -> str:
        start, end = self.span(node)
        return self.source[start:end]

    def walk(self, node: Node | None = None) -> Iterator[Node]:
        stack = [self.root if node is None else node]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def find_all(self, node_type: str, node: Node | None = None) -> list[Node]:
        return [item for item in self.walk(node) if item.type == node_type]

    def find_first(self, node_type: str, node: Node | None = None) -> Node | None:
        return next((item for item in self.walk(node) if item.type == node_type), None)

    def class_node(self) -> Node | None:
        return self.find_first("class_declaration")

    def method_nodes(self) -> list[Node]:
        class_node = self.class_node()
        if class_node is None:
            return []
        body = class_node.child_by_field_name("body")
        if body is None:
            return []
        return [child for child in body.named_children if child.type == "method_declaration"]

    def method_name(self, node: Node) -> str:
        name_node = node.child_by_field_name("name")
        return self.text(name_node) if name_node is not None else ""

    def method_node(self, method_name: str) -> Node | None:
        for node in self.method_nodes():
            if self.method_name(node) == method_name:
                return node
        return None


@lru_cache(maxsize=64)
def parse_php(source: str) -> PhpDocument:
    return PhpDocument(source)


def parse_class_info(source: str) -> ClassInfo | None:
    document = parse_php(source)
    class_node = document.class_node()
    if class_node is None:
        return None
    name_node = class_node.child_by_field_name("name")
    if name_node is None:
        return None

    namespace = ""
    namespace_node = document.find_first("namespace_definition")
    if namespace_node is not None:
        namespace_name = namespace_node.child_by_field_name("name")
        if namespace_name is not None:
            namespace = document.text(namespace_name)

    uses: dict[str, str] = {}
    for declaration in document.find_all("namespace_use_declaration"):
        if declaration.start_byte < class_node.start_byte:
            uses.update(_use_aliases(document, declaration))

    info = ClassInfo(namespace=namespace, short_name=document.text(name_node), parent=None, uses=uses)
    base_clause = next((child for child in class_node.children if child.type == "base_clause"), None)
    if base_clause is None:
        return info
    parents = [child for child in base_clause.named_children if child.type in NAME_NODE_TYPES]
    if not parents:
        return info
    return replace(info, parent=info.resolve(document.text(parents[0])))


def class_short_name(source: str) -> str | None:
    info = parse_class_info(source)
    return info.short_name if info else None


def list_public_methods(source: str) -> list[str]:
    document = parse_php(source)
    methods: list[str] = []
    for node in document.method_nodes():
        if _visibility(document, node) != "public":
            continue
        name = document.method_name(node)
        if name and name not in methods:
            methods.append(name)
    return methods


def has_method(source: str, method_name: str) -> bool:
    return parse_php(source).method_node(method_name) is not None


def locate_method(source: str, method_name: str) -> MethodSource:
    """Locate a method declared in the class source and collect its structural facts.

    Raises LocationError when the class or the method cannot be found.
    """
    summary = summarize_source(source)
    logger.info(
        "locate_method: src_len=%s src_hash=%s method=%s",
        summary["len"],
        summary["sha256_8"],
        method_name,
    )

    info = parse_class_info(source)
    if info is None:
        raise LocationError("<unknown>", method_name, "class declaration not found")

    document = parse_php(source)
    node = document.method_node(method_name)
    if node is None:
        raise LocationError(info.full_name, method_name, "method not declared in class")

    start, end = _declaration_span(document, node)
    constructor = node if method_name == "__construct" else document.method_node("__construct")
    constructor_text = ""
    if constructor is not None:
        constructor_start, constructor_end = _declaration_span(document, constructor)
        constructor_text = source[constructor_start:constructor_end]

    parameters_node = node.child_by_field_name("parameters")
    parameters = _parse_parameters(document, parameters_node, info) if parameters_node else []

    return MethodSource(
        class_name=info.full_name,
        method_name=method_name,
        method_body_text=source[start:end],
        class_body_text=source,
        constructor_text=constructor_text,
        parameters=tuple(parameters),
        declaring_class_name=info.full_name,
        start_offset=start,
    )


def returned_array_entries(source: str, method_name: str) -> list[ArrayEntry] | None:
    """Entries of the first array literal the method returns, or None when it returns none."""
    document = parse_php(source)
    node = document.method_node(method_name)
    if node is None:
        return None
    for statement in document.find_all("return_statement", node):
        value = next(iter(statement.named_children), None)
        if value is not None and value.type == "array_creation_expression":
            return _array_entries(document, value)
    return None


def property_array_entries(source: str, property_name: str) -> list[ArrayEntry] | None:
    """Entries of the array a class property is initialized with, or None without the property."""
    document = parse_php(source)
    for declaration in document.find_all("property_declaration"):
        variable = document.find_first("variable_name", declaration)
        if variable is None or document.text(variable).lstrip("$") != property_name:
            continue
        array_node = document.find_first("array_creation_expression", declaration)
        return _array_entries(document, array_node) if array_node is not None else []
    return None


def array_literal_entries(text: str) -> list[ArrayEntry]:
    """Entries of an array literal given as PHP text, e.g. ``"['a' => 'b']"``."""
    document = parse_php(f"{PHP_OPEN_TAG}return {text};")
    array_node = document.find_first("array_creation_expression")
    if array_node is None:
        return []
    return _array_entries(document, array_node)


def mask_comments_and_strings(source: str) -> str:
    """Blank comments and string literal contents, keeping every offset and newline.

    Heredoc and nowdoc bodies are blanked as a whole. Text that is not a full PHP
    file (a single method, call arguments) is parsed inside a wrapper.
    """
    prefix, suffix = "", ""
    if not source.startswith("<?php"):
        prefix = PHP_OPEN_TAG
        if METHOD_FRAGMENT_PATTERN.match(source):
            prefix, suffix = f"{PHP_OPEN_TAG}class Fragment {{\n", "\n}"
    document = parse_php(f"{prefix}{source}{suffix}")

    chars = list(document.source)
    for node in document.walk():
        if node.type not in MASKED_NODE_TYPES:
            continue
        start, end = document.span(node)
        if node.type in QUOTED_NODE_TYPES and end - start >= 2:
            start, end = start + 1, end - 1
        for index in range(start, end):
            if chars[index] != "\n":
                chars[index] = " "
    return "".join(chars)[len(prefix) : len(prefix) + len(source)]


def balanced_bracket_content(text: str, start: int, open_char: str = "[") -> str | None:
    """Return the text between the bracket at ``start`` and its matching close."""
    close_char = {"[": "]", "(": ")", "{": "}"}[open_char]
    if start < 0 or start >= len(text) or text[start] != open_char:
        return None
    masked = mask_comments_and_strings(text)
    depth = 0
    for index in range(start, len(masked)):
        char = masked[index]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start + 1 : index]
    return None


def split_arguments(text: str) -> list[str]:
    masked = mask_comments_and_strings(text)
    parts: list[str] = []
    depth = 0
    last = 0
    for index, char in enumerate(masked):
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append(text[last:index])
            last = index + 1
    tail = text[last:]
    if tail.strip():
        parts.append(tail)
    return parts


def _visibility(document: PhpDocument, node: Node) -> str:
    for child in node.children:
        if child.type == "visibility_modifier":
            return document.text(child).lower()
    return "public"


def _declaration_span(document: PhpDocument, node: Node) -> tuple[int, int]:
    # attributes are not part of the declaration text
    first = next((child for child in node.children if child.type != "attribute_list"), node)
    return document.offset(first.start_byte), document.offset(node.end_byte)


def _use_aliases(document: PhpDocument, declaration: Node) -> dict[str, str]:
    group_prefix = next(
        (child for child in declaration.named_children if child.type == "namespace_name"), None
    )
    prefix = ""
    if group_prefix is not None:
        prefix = document.text(group_prefix).lstrip("\\") + "\\"

    aliases: dict[str, str] = {}
    for clause in document.walk(declaration):
        if clause.type not in USE_CLAUSE_TYPES:
            continue
        names = [child for child in clause.named_children if child.type in NAME_NODE_TYPES]
        if not names:
            continue
        qualified = prefix + document.text(names[0]).lstrip("\\")
        alias_node = names[1] if len(names) > 1 else None
        for child in clause.named_children:
            if child.type == "namespace_aliasing_clause" and child.named_children:
                alias_node = child.named_children[-1]
        alias = document.text(alias_node) if alias_node is not None else qualified.rsplit("\\", 1)[-1]
        aliases[alias] = qualified
    return aliases


def _parse_parameters(
    document: PhpDocument, parameters_node: Node, info: ClassInfo
) -> list[ParameterInfo]:
    parameters: list[ParameterInfo] = []
    for node in parameters_node.named_children:
        if node.type not in PARAMETER_NODE_TYPES:
            continue
        name_node = node.child_by_field_name("name")
        if name_node is None:
            continue
        type_node = node.child_by_field_name("type")
        type_name = _normalize_type(document.text(type_node), info) if type_node is not None else None
        parameters.append(ParameterInfo(name=document.text(name_node).lstrip("$"), type_name=type_name))
    return parameters


def _normalize_type(type_text: str, info: ClassInfo) -> str:
    type_name = type_text.strip().lstrip("?")
    if type_name.lower() in BUILTIN_TYPES or "|" in type_name or "&" in type_name:
        return type_name
    return info.resolve(type_name)


def _array_entries(document: PhpDocument, array_node: Node) -> list[ArrayEntry]:
    entries: list[ArrayEntry] = []
    for element in array_node.named_children:
        if element.type != "array_element_initializer":
            continue
        parts = element.named_children
        if not parts:
            continue
        keyed = len(parts) > 1 and any(child.type == "=>" for child in element.children)
        key = _literal(document, parts[0])[0] if keyed else None
        value_node = parts[-1]
        value, kind = _literal(document, value_node)
        items = tuple(_array_entries(document, value_node)) if kind == "array" else ()
        entries.append(ArrayEntry(key=key, value=value, kind=kind, items=items))
    return entries


def _literal(document: PhpDocument, node: Node) -> tuple[str, str]:
    text = document.text(node)
    if node.type in QUOTED_NODE_TYPES and len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1], "string"
    if node.type == "array_creation_expression":
        return text, "array"
    return text, node.type


class ClassRegistry:
    """Class sources indexed by qualified name, standing in for runtime class lookup."""

    def __init__(self, sources: Iterable[str] | None = None) -> None:
        self._classes: dict[str, tuple[ClassInfo, str]] = {}
        for source in sources or []:
            info = parse_class_info(source)
            if info is None:
                continue
            self._classes[info.full_name] = (info, source)

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)

    def info_for(self, name: str) -> ClassInfo | None:
        entry = self._classes.get(name)
        return entry[0] if entry else None

    def source_for(self, name: str) -> str | None:
        entry = self._classes.get(name)
        return entry[1] if entry else None

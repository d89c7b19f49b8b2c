"""Tree-sitter powered C# syntax ingestion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

import tree_sitter_c_sharp
from tree_sitter import Language, Parser

from ..logging import get_logger
from ..models import SourceFile, SourceUnit

logger = get_logger("syntax")

_TYPE_DECLARATIONS = {
    "class_declaration": "class",
    "struct_declaration": "struct",
    "interface_declaration": "interface",
    "record_declaration": "record",
    "record_struct_declaration": "struct",
    "enum_declaration": "enum",
    "delegate_declaration": "delegate",
}

_NAME_NODES = frozenset({"identifier", "generic_name", "qualified_name", "alias_qualified_name"})

_TYPE_NODES = _NAME_NODES | frozenset(
    {
        "predefined_type",
        "array_type",
        "nullable_type",
        "tuple_type",
        "pointer_type",
        "function_pointer_type",
        "ref_type",
        "scoped_type",
    }
)

# Subtrees that never contain type declarations or directives.
_OPAQUE_NODES = frozenset(
    {
        "using_directive",
        "attribute_list",
        "comment",
        "block",
        "arrow_expression_clause",
        "base_list",
        "type_parameter_list",
        "parameter_list",
    }
)

_USING_PATTERN = re.compile(
    r"^(?P<global>global\s+)?using\s+(?P<static>static\s+)?(?:unsafe\s+)?(?:(?P<alias>@?\w+)\s*=)?"
)


@dataclass(frozen=True)
class NameSegment:
    """One dotted component of a name, with its own type arguments."""

    identifier: str
    type_arguments: Tuple["TypeSyntax", ...] = ()


@dataclass(frozen=True)
class NameSyntax:
    """Simple, generic, qualified or alias-qualified name."""

    segments: Tuple[NameSegment, ...]
    alias: Optional[str] = None

    @property
    def last(self) -> NameSegment:
        return self.segments[-1]

    @property
    def arity(self) -> int:
        return len(self.last.type_arguments)

    @property
    def dotted(self) -> str:
        return ".".join(segment.identifier for segment in self.segments)


@dataclass(frozen=True)
class PredefinedSyntax:
    keyword: str


@dataclass(frozen=True)
class ArraySyntax:
    element: "TypeSyntax"
    rank: int = 1


@dataclass(frozen=True)
class NullableSyntax:
    inner: "TypeSyntax"


@dataclass(frozen=True)
class TupleSyntax:
    elements: Tuple[Tuple["TypeSyntax", Optional[str]], ...]


@dataclass(frozen=True)
class RawTypeSyntax:
    """Type forms the resolver does not model (pointers, function pointers, ...)."""

    text: str


TypeSyntax = Union[NameSyntax, PredefinedSyntax, ArraySyntax, NullableSyntax, TupleSyntax, RawTypeSyntax]


@dataclass(frozen=True)
class UsingDirective:
    """A using directive as written, plus the parts name lookup needs."""

    text: str
    target: Optional[TypeSyntax] = None
    alias: Optional[str] = None
    is_static: bool = False
    is_global: bool = False

    @property
    def imported_namespace(self) -> Optional[str]:
        if self.alias or self.is_static or not isinstance(self.target, NameSyntax):
            return None
        return self.target.dotted


@dataclass(frozen=True)
class UsingScope:
    """Using directives attached to one namespace level (global level is "")."""

    namespace: str
    directives: Tuple[UsingDirective, ...] = ()

    def alias(self, name: str) -> Optional[TypeSyntax]:
        for directive in self.directives:
            if directive.alias == name:
                return directive.target
        return None

    @property
    def namespaces(self) -> Tuple[str, ...]:
        return tuple(
            namespace
            for namespace in (directive.imported_namespace for directive in self.directives)
            if namespace
        )


@dataclass(frozen=True, eq=False)
class TypeDeclaration:
    """A type declaration located in a source unit, with its lookup context."""

    unit_path: str
    kind: str
    name: Optional[str]
    type_parameters: Tuple[str, ...]
    bases: Tuple[TypeSyntax, ...]
    namespace: str
    parent: Optional["TypeDeclaration"]
    scopes: Tuple[UsingScope, ...]
    is_partial: bool = False
    line: int = 0

    @property
    def arity(self) -> int:
        return len(self.type_parameters)

    @property
    def containers(self) -> Tuple["TypeDeclaration", ...]:
        """Enclosing type declarations, innermost first."""
        chain: List[TypeDeclaration] = []
        current = self.parent
        while current is not None:
            chain.append(current)
            current = current.parent
        return tuple(chain)

    @property
    def qualified_name(self) -> Optional[str]:
        parts = [self.name]
        for container in self.containers:
            parts.append(container.name)
        if any(part is None for part in parts):
            return None
        if self.namespace:
            parts.append(self.namespace)
        return ".".join(reversed(parts))  # type: ignore[arg-type]


class SyntaxIngestor:
    """Parses C# text into error-tolerant tree-sitter syntax trees."""

    def __init__(self) -> None:
        self._parser: Optional[Parser] = None

    def parse(self, path: str, text: str) -> SourceUnit:
        source = text.encode("utf-8")
        tree = self._get_parser().parse(source)
        unit = SourceUnit(path=path, tree=tree, source=source)
        if unit.has_errors:
            logger.debug("Parsed %s with syntax errors; keeping partial tree", path)
        return unit

    def parse_all(self, files: Iterable[SourceFile]) -> List[SourceUnit]:
        return [self.parse(source_file.path, source_file.text) for source_file in files]

    def _get_parser(self) -> Parser:
        if self._parser is None:
            parser = Parser()
            parser.language = Language(tree_sitter_c_sharp.language())
            self._parser = parser
        return self._parser


def iter_type_declarations(unit: SourceUnit) -> Iterator[TypeDeclaration]:
    """Yield every type declaration of a unit in document (pre-)order."""
    walker = _DeclarationWalker(unit)
    yield from walker.walk()


def iter_using_directives(unit: SourceUnit) -> Iterator[UsingDirective]:
    """Yield compilation-unit and namespace level using directives in document order."""
    walker = _DeclarationWalker(unit)
    yield from walker.directives(unit.root)


def type_syntax(node: Any, source: bytes) -> TypeSyntax:
    """Convert a tree-sitter type node into the resolver's syntax model."""
    return _DeclarationWalker.convert_type(node, source)


class _DeclarationWalker:
    def __init__(self, unit: SourceUnit) -> None:
        self._unit = unit
        self._source = unit.source

    def walk(self) -> Iterator[TypeDeclaration]:
        root = self._unit.root
        scope = UsingScope(namespace="", directives=tuple(self._own_directives(root)))
        yield from self._walk_members(root, "", (scope,), None)

    def directives(self, node: Any) -> Iterator[UsingDirective]:
        for child in node.named_children:
            if child.type == "using_directive":
                yield self._using_directive(child)
            elif child.type in _TYPE_DECLARATIONS or child.type in _OPAQUE_NODES:
                continue
            else:
                yield from self.directives(child)

    def _walk_members(
        self,
        node: Any,
        namespace: str,
        scopes: Tuple[UsingScope, ...],
        parent: Optional[TypeDeclaration],
    ) -> Iterator[TypeDeclaration]:
        for child in node.named_children:
            kind = child.type
            if kind == "namespace_declaration":
                name = _join(namespace, self._name_text(child))
                body = _body_of(child)
                if body is None:
                    continue
                inner = (UsingScope(name, tuple(self._own_directives(body))), *scopes)
                yield from self._walk_members(body, name, inner, parent)
            elif kind == "file_scoped_namespace_declaration":
                # Members follow the declaration as siblings; rebinding applies to them.
                namespace = _join(namespace, self._name_text(child))
                scopes = (UsingScope(namespace, tuple(self._own_directives(child))), *scopes)
                yield from self._walk_members(child, namespace, scopes, parent)
            elif kind in _TYPE_DECLARATIONS:
                yield from self._walk_type(child, namespace, scopes, parent)
            elif kind in _OPAQUE_NODES or kind in _TYPE_NODES:
                continue
            else:
                yield from self._walk_members(child, namespace, scopes, parent)

    def _walk_type(
        self,
        node: Any,
        namespace: str,
        scopes: Tuple[UsingScope, ...],
        parent: Optional[TypeDeclaration],
    ) -> Iterator[TypeDeclaration]:
        name_node = node.child_by_field_name("name")
        name = _identifier(self._text(name_node)) if name_node is not None else None
        kind = _TYPE_DECLARATIONS[node.type]
        type_parameters: Tuple[str, ...] = ()
        bases: Tuple[TypeSyntax, ...] = ()
        is_partial = False
        for child in node.children:
            if child.type == "type_parameter_list":
                type_parameters = tuple(self._type_parameters(child))
            elif child.type == "base_list":
                bases = tuple(self._bases(child))
            elif child.type in {"modifier", "partial"} and self._text(child).strip() == "partial":
                is_partial = True
            elif child.type == "struct" and kind == "record":
                kind = "struct"

        declaration = TypeDeclaration(
            unit_path=self._unit.path,
            kind=kind,
            name=name or None,
            type_parameters=type_parameters,
            bases=bases,
            namespace=namespace,
            parent=parent,
            scopes=scopes,
            is_partial=is_partial,
            line=node.start_point[0] + 1,
        )
        yield declaration

        body = _body_of(node)
        if body is not None:
            yield from self._walk_members(body, namespace, scopes, declaration)

    def _type_parameters(self, node: Any) -> Iterator[str]:
        for child in node.named_children:
            if child.type != "type_parameter":
                continue
            name_node = child.child_by_field_name("name")
            if name_node is None:
                name_node = _first_named(child, {"identifier"})
            if name_node is not None:
                yield _identifier(self._text(name_node))

    def _bases(self, node: Any) -> Iterator[TypeSyntax]:
        for child in node.named_children:
            if child.type in _TYPE_NODES:
                yield self.convert_type(child, self._source)
            elif child.type == "primary_constructor_base_type":
                inner = _first_named(child, _TYPE_NODES)
                if inner is not None:
                    yield self.convert_type(inner, self._source)

    def _own_directives(self, node: Any) -> Iterator[UsingDirective]:
        for child in node.named_children:
            if child.type == "using_directive":
                yield self._using_directive(child)

    def _using_directive(self, node: Any) -> UsingDirective:
        text = self._text(node).strip()
        match = _USING_PATTERN.match(text)
        target: Optional[TypeSyntax] = None
        seen_equals = False
        for child in node.children:
            if child.type == "=":
                seen_equals = True
                target = None
            elif child.is_named and child.type in _TYPE_NODES:
                if target is None or seen_equals:
                    target = self.convert_type(child, self._source)
        alias = match.group("alias") if match else None
        return UsingDirective(
            text=text,
            target=target,
            alias=_identifier(alias) if alias else None,
            is_static=bool(match and match.group("static")),
            is_global=bool(match and match.group("global")),
        )

    def _name_text(self, node: Any) -> str:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            name_node = _first_named(node, _NAME_NODES)
        if name_node is None:
            return ""
        return "".join(self._text(name_node).split())

    def _text(self, node: Any) -> str:
        return _node_text(node, self._source)

    @classmethod
    def convert_type(cls, node: Any, source: bytes) -> TypeSyntax:
        kind = node.type
        if kind == "identifier":
            return NameSyntax((NameSegment(_identifier(_node_text(node, source))),))
        if kind == "generic_name":
            identifier = _first_named(node, {"identifier"})
            argument_list = _first_named(node, {"type_argument_list"})
            arguments: Tuple[TypeSyntax, ...] = ()
            if argument_list is not None:
                arguments = tuple(
                    cls.convert_type(child, source)
                    for child in argument_list.named_children
                    if child.type in _TYPE_NODES
                )
            name = _identifier(_node_text(identifier, source)) if identifier is not None else ""
            return NameSyntax((NameSegment(name, arguments),))
        if kind == "qualified_name":
            named = node.named_children
            qualifier = node.child_by_field_name("qualifier") or (named[0] if named else None)
            right = node.child_by_field_name("name") or (named[-1] if named else None)
            if qualifier is None or right is None or qualifier == right:
                return RawTypeSyntax(_normalise(_node_text(node, source)))
            left = cls.convert_type(qualifier, source)
            tail = cls.convert_type(right, source)
            if not isinstance(left, NameSyntax) or not isinstance(tail, NameSyntax):
                return RawTypeSyntax(_normalise(_node_text(node, source)))
            return NameSyntax(left.segments + tail.segments, alias=left.alias)
        if kind == "alias_qualified_name":
            text = _node_text(node, source)
            alias = text.split("::", 1)[0].strip()
            right = node.child_by_field_name("name")
            if right is None:
                right = node.named_children[-1] if node.named_children else None
            tail = cls.convert_type(right, source) if right is not None else None
            if not isinstance(tail, NameSyntax):
                return RawTypeSyntax(_normalise(text))
            return NameSyntax(tail.segments, alias=alias)
        if kind == "predefined_type":
            return PredefinedSyntax(_node_text(node, source).strip())
        if kind == "array_type":
            element = node.child_by_field_name("type") or _first_named(node, _TYPE_NODES)
            rank_node = node.child_by_field_name("rank") or _first_named(node, {"array_rank_specifier"})
            rank = _node_text(rank_node, source).count(",") + 1 if rank_node is not None else 1
            if element is None:
                return RawTypeSyntax(_normalise(_node_text(node, source)))
            return ArraySyntax(cls.convert_type(element, source), rank)
        if kind == "nullable_type":
            inner = node.child_by_field_name("type") or _first_named(node, _TYPE_NODES)
            if inner is None:
                return RawTypeSyntax(_normalise(_node_text(node, source)))
            return NullableSyntax(cls.convert_type(inner, source))
        if kind == "tuple_type":
            elements = []
            for child in node.named_children:
                if child.type != "tuple_element":
                    continue
                element_type = child.child_by_field_name("type") or _first_named(child, _TYPE_NODES)
                element_name = child.child_by_field_name("name")
                if element_type is None:
                    return RawTypeSyntax(_normalise(_node_text(node, source)))
                elements.append(
                    (
                        cls.convert_type(element_type, source),
                        _identifier(_node_text(element_name, source)) if element_name is not None else None,
                    )
                )
            return TupleSyntax(tuple(elements))
        return RawTypeSyntax(_normalise(_node_text(node, source)))


def _body_of(node: Any) -> Any:
    body = node.child_by_field_name("body")
    if body is not None:
        return body
    return _first_named(node, {"declaration_list", "enum_member_declaration_list"})


def _first_named(node: Any, types: Iterable[str]) -> Any:
    wanted = set(types)
    for child in node.named_children:
        if child.type in wanted:
            return child
    return None


def _node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _identifier(text: str) -> str:
    text = text.strip()
    return text[1:] if text.startswith("@") else text


def _normalise(text: str) -> str:
    return " ".join(text.split())


def _join(namespace: str, name: str) -> str:
    if not name:
        return namespace
    return f"{namespace}.{name}" if namespace else name


__all__ = [
    "ArraySyntax",
    "NameSegment",
    "NameSyntax",
    "NullableSyntax",
    "PredefinedSyntax",
    "RawTypeSyntax",
    "SyntaxIngestor",
    "TupleSyntax",
    "TypeDeclaration",
    "TypeSyntax",
    "UsingDirective",
    "UsingScope",
    "iter_type_declarations",
    "iter_using_directives",
    "type_syntax",
]

"""Semantic model over every ingested C# source unit.

The environment maps each type declaration to a canonical :class:`TypeSymbol`
and resolves type syntax (base lists, type arguments) to semantic types using
C# scoping rules: type parameters, enclosing types, enclosing namespaces with
their using directives, then global usings. External definitions that are not
part of the scanned sources come from a :class:`ReferenceLibrary`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..logging import get_logger
from ..models import ClassCandidate, SourceUnit
from .syntax import (
    ArraySyntax,
    NameSyntax,
    NullableSyntax,
    PredefinedSyntax,
    RawTypeSyntax,
    TupleSyntax,
    TypeDeclaration,
    TypeSyntax,
    UsingScope,
    iter_type_declarations,
    iter_using_directives,
)

logger = get_logger("semantic")

_MAX_CHAIN_DEPTH = 64


@dataclass(eq=False)
class TypeSymbol:
    """Canonical identity of one declared type (all partial declarations merged)."""

    qualified_name: str
    arity: int
    kind: str
    type_parameters: Tuple[str, ...]
    declarations: List[TypeDeclaration] = field(default_factory=list)
    containing: Optional["TypeSymbol"] = None
    is_reference: bool = False
    ambiguous: bool = False

    @property
    def name(self) -> str:
        return self.qualified_name.rpartition(".")[2]

    @property
    def key(self) -> Tuple[str, int]:
        return (self.qualified_name, self.arity)

    def __repr__(self) -> str:
        return f"TypeSymbol({self.qualified_name!r}, arity={self.arity}, kind={self.kind!r})"


@dataclass(frozen=True)
class NamedType:
    symbol: TypeSymbol
    type_arguments: Tuple["SemanticType", ...] = ()

    @property
    def bindings(self) -> Dict[str, "SemanticType"]:
        return dict(zip(self.symbol.type_parameters, self.type_arguments))

    def display(self) -> str:
        if not self.type_arguments:
            return self.symbol.qualified_name
        arguments = ", ".join(argument.display() for argument in self.type_arguments)
        return f"{self.symbol.qualified_name}<{arguments}>"

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "NamedType":
        if not bindings:
            return self
        return NamedType(self.symbol, tuple(argument.substitute(bindings) for argument in self.type_arguments))


@dataclass(frozen=True)
class TypeParameterType:
    name: str

    def display(self) -> str:
        return self.name

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "SemanticType":
        return bindings.get(self.name, self)


@dataclass(frozen=True)
class PredefinedType:
    keyword: str

    def display(self) -> str:
        return self.keyword

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "PredefinedType":
        return self


@dataclass(frozen=True)
class ArrayType:
    element: "SemanticType"
    rank: int = 1

    def display(self) -> str:
        return f"{self.element.display()}[{',' * (self.rank - 1)}]"

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "ArrayType":
        return ArrayType(self.element.substitute(bindings), self.rank)


@dataclass(frozen=True)
class NullableType:
    inner: "SemanticType"

    def display(self) -> str:
        return f"{self.inner.display()}?"

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "NullableType":
        return NullableType(self.inner.substitute(bindings))


@dataclass(frozen=True)
class TupleType:
    elements: Tuple[Tuple["SemanticType", Optional[str]], ...]

    def display(self) -> str:
        parts = []
        for element, name in self.elements:
            parts.append(f"{element.display()} {name}" if name else element.display())
        return f"({', '.join(parts)})"

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "TupleType":
        return TupleType(tuple((element.substitute(bindings), name) for element, name in self.elements))


@dataclass(frozen=True)
class ErrorType:
    """A reference that could not be resolved; displayed as written."""

    name: str
    type_arguments: Tuple["SemanticType", ...] = ()

    def display(self) -> str:
        if not self.type_arguments:
            return self.name
        arguments = ", ".join(argument.display() for argument in self.type_arguments)
        return f"{self.name}<{arguments}>"

    def substitute(self, bindings: Mapping[str, "SemanticType"]) -> "ErrorType":
        return ErrorType(self.name, tuple(argument.substitute(bindings) for argument in self.type_arguments))


SemanticType = Union[NamedType, TypeParameterType, PredefinedType, ArrayType, NullableType, TupleType, ErrorType]


def contains_type_parameter(semantic_type: SemanticType) -> bool:
    """True when an unbound type parameter appears anywhere inside ``semantic_type``."""
    if isinstance(semantic_type, TypeParameterType):
        return True
    if isinstance(semantic_type, (NamedType, ErrorType)):
        return any(contains_type_parameter(argument) for argument in semantic_type.type_arguments)
    if isinstance(semantic_type, ArrayType):
        return contains_type_parameter(semantic_type.element)
    if isinstance(semantic_type, NullableType):
        return contains_type_parameter(semantic_type.inner)
    if isinstance(semantic_type, TupleType):
        return any(contains_type_parameter(element) for element, _name in semantic_type.elements)
    return False


@dataclass(frozen=True)
class ReferenceType:
    """An externally defined type (e.g. from a referenced assembly)."""

    qualified_name: str
    arity: int = 0
    kind: str = "class"


class ReferenceLibrary:
    """Type definitions available to the sources without being declared in them."""

    def __init__(self, types: Iterable[ReferenceType] = ()) -> None:
        self._types: Tuple[ReferenceType, ...] = tuple(types)

    @classmethod
    def for_contracts(cls, query: Iterable[str], command: Iterable[str]) -> "ReferenceLibrary":
        types = [ReferenceType(name.strip(), 2) for name in query if name.strip()]
        types.extend(ReferenceType(name.strip(), 1) for name in command if name.strip())
        return cls(types)

    def symbols(self) -> Iterator[TypeSymbol]:
        for reference in self._types:
            parameters = ("T",) if reference.arity == 1 else tuple(f"T{index}" for index in range(1, reference.arity + 1))
            yield TypeSymbol(
                qualified_name=reference.qualified_name,
                arity=reference.arity,
                kind=reference.kind,
                type_parameters=parameters,
                is_reference=True,
            )


class SemanticEnvironment:
    """Read-only symbol table and resolver over a complete set of source units."""

    def __init__(
        self,
        units: Sequence[SourceUnit],
        declarations: Sequence[Tuple[SourceUnit, Tuple[TypeDeclaration, ...]]],
        symbols: Dict[Tuple[str, int], TypeSymbol],
        declared: Dict[TypeDeclaration, TypeSymbol],
        global_scope: UsingScope,
    ) -> None:
        self._units = tuple(units)
        self._units_by_path = MappingProxyType({unit.path: unit for unit in self._units})
        self._declarations = tuple(declarations)
        self._symbols = MappingProxyType(dict(symbols))
        self._declared = MappingProxyType(dict(declared))
        self._global_scope = global_scope
        by_name: Dict[str, List[TypeSymbol]] = {}
        for symbol in symbols.values():
            by_name.setdefault(symbol.qualified_name, []).append(symbol)
        self._by_name = MappingProxyType({name: tuple(group) for name, group in by_name.items()})

    @classmethod
    def build(
        cls, units: Sequence[SourceUnit], references: Optional[ReferenceLibrary] = None
    ) -> "SemanticEnvironment":
        """Index every declaration of every unit; call only once all units are parsed."""
        symbols: Dict[Tuple[str, int], TypeSymbol] = {}
        declared: Dict[TypeDeclaration, TypeSymbol] = {}
        for reference in (references.symbols() if references is not None else ()):
            symbols[reference.key] = reference

        declarations = []
        global_directives = []
        for unit in units:
            unit_declarations = tuple(iter_type_declarations(unit))
            declarations.append((unit, unit_declarations))
            global_directives.extend(
                directive for directive in iter_using_directives(unit) if directive.is_global
            )
            for declaration in unit_declarations:
                qualified_name = declaration.qualified_name
                if qualified_name is None:
                    continue
                key = (qualified_name, declaration.arity)
                existing = symbols.get(key)
                if existing is None or existing.is_reference:
                    symbol = TypeSymbol(
                        qualified_name=qualified_name,
                        arity=declaration.arity,
                        kind=declaration.kind,
                        type_parameters=declaration.type_parameters,
                        declarations=[declaration],
                        containing=declared.get(declaration.parent) if declaration.parent else None,
                    )
                    symbols[key] = symbol
                else:
                    mergeable = (
                        declaration.is_partial
                        and existing.kind == declaration.kind
                        and all(other.is_partial for other in existing.declarations)
                    )
                    if not mergeable and not existing.ambiguous:
                        logger.debug(
                            "Type %s is declared more than once (%s:%d); treating as ambiguous",
                            qualified_name,
                            declaration.unit_path,
                            declaration.line,
                        )
                        existing.ambiguous = True
                    existing.declarations.append(declaration)
                    symbol = existing
                declared[declaration] = symbol

        logger.debug("Semantic environment indexed %d symbols from %d units", len(symbols), len(units))
        return cls(units, declarations, symbols, declared, UsingScope("", tuple(global_directives)))

    @property
    def units(self) -> Tuple[SourceUnit, ...]:
        return self._units

    def declared_symbol(self, declaration: TypeDeclaration) -> Optional[TypeSymbol]:
        """Return the unique symbol of a declaration, or None when unnamed or ambiguous."""
        symbol = self._declared.get(declaration)
        if symbol is None or symbol.ambiguous:
            return None
        return symbol

    def declared_type(self, symbol: TypeSymbol) -> NamedType:
        return NamedType(symbol, tuple(TypeParameterType(name) for name in symbol.type_parameters))

    def symbols_named(self, qualified_name: str) -> Tuple[TypeSymbol, ...]:
        return self._by_name.get(qualified_name, ())

    def lookup(self, qualified_name: str, arity: int = 0) -> Optional[TypeSymbol]:
        return self._symbols.get((qualified_name, arity))

    def candidates(self) -> Iterator[ClassCandidate]:
        """Class declarations in unit order then declaration order; partial parts once."""
        seen: set[int] = set()
        for unit, declarations in self._declarations:
            for declaration in declarations:
                if declaration.kind != "class":
                    continue
                symbol = self.declared_symbol(declaration)
                if symbol is not None:
                    if id(symbol) in seen:
                        continue
                    seen.add(id(symbol))
                yield ClassCandidate(unit=unit, declaration=declaration, symbol=symbol)

    def declaring_units(self, symbol: TypeSymbol) -> Tuple[SourceUnit, ...]:
        paths = dict.fromkeys(declaration.unit_path for declaration in symbol.declarations)
        return tuple(self._units_by_path[path] for path in paths if path in self._units_by_path)

    def base_type(
        self, named: NamedType, prefer: Optional[Callable[[TypeSymbol], bool]] = None
    ) -> Optional[NamedType]:
        """Resolve the base of ``named`` with its type arguments substituted.

        Each declaration contributes the first entry of its base list. Partial
        parts may list only interfaces, so the first entry that resolves to a
        non-interface type (or one ``prefer`` accepts) wins; otherwise the first
        resolvable entry is used.
        """
        symbol = named.symbol
        if symbol.is_reference or symbol.ambiguous:
            return None
        fallback: Optional[NamedType] = None
        for declaration in symbol.declarations:
            if not declaration.bases:
                continue
            resolved = self.resolve(declaration.bases[0], declaration)
            if not isinstance(resolved, NamedType):
                continue
            if resolved.symbol.kind != "interface" or (prefer is not None and prefer(resolved.symbol)):
                return resolved.substitute(named.bindings)
            if fallback is None:
                fallback = resolved
        if fallback is None:
            return None
        return fallback.substitute(named.bindings)

    def base_chain(
        self, symbol: TypeSymbol, prefer: Optional[Callable[[TypeSymbol], bool]] = None
    ) -> Iterator[NamedType]:
        """Walk the base types of ``symbol`` from the immediate base up to the root."""
        current = self.declared_type(symbol)
        visited = {id(symbol)}
        for _ in range(_MAX_CHAIN_DEPTH):
            base = self.base_type(current, prefer)
            if base is None:
                return
            yield base
            if id(base.symbol) in visited:
                return
            visited.add(id(base.symbol))
            current = base

    def resolve(self, syntax: TypeSyntax, context: TypeDeclaration) -> SemanticType:
        """Resolve type syntax as it appears inside ``context``'s declaration header."""
        if isinstance(syntax, PredefinedSyntax):
            return PredefinedType(syntax.keyword)
        if isinstance(syntax, ArraySyntax):
            return ArrayType(self.resolve(syntax.element, context), syntax.rank)
        if isinstance(syntax, NullableSyntax):
            return NullableType(self.resolve(syntax.inner, context))
        if isinstance(syntax, TupleSyntax):
            return TupleType(tuple((self.resolve(element, context), name) for element, name in syntax.elements))
        if isinstance(syntax, RawTypeSyntax):
            return ErrorType(syntax.text)

        arguments = tuple(self.resolve(argument, context) for argument in syntax.last.type_arguments)
        if syntax.alias is None and len(syntax.segments) == 1 and not arguments:
            name = syntax.last.identifier
            if name in _type_parameters_in_scope(context):
                return TypeParameterType(name)
            for scope in self._scopes(context):
                target = scope.alias(name)
                if target is not None:
                    return self._resolve_alias(target, context)

        symbol = self._lookup_name(syntax, context, exact=True)
        if symbol is None:
            symbol = self._lookup_name(syntax, context, exact=False)
        if symbol is None:
            return ErrorType(syntax.dotted, arguments)
        return NamedType(symbol, arguments)

    def _resolve_alias(self, target: TypeSyntax, context: TypeDeclaration) -> SemanticType:
        if not isinstance(target, NameSyntax):
            return self.resolve(target, context)
        arguments = tuple(self.resolve(argument, context) for argument in target.last.type_arguments)
        symbol = self._find(target.dotted, target.arity, exact=True)
        if symbol is None:
            return ErrorType(target.dotted, arguments)
        return NamedType(symbol, arguments)

    def _lookup_name(self, syntax: NameSyntax, context: TypeDeclaration, *, exact: bool) -> Optional[TypeSymbol]:
        arity = syntax.arity
        if syntax.alias is not None:
            if syntax.alias != "global":
                return None
            return self._find(syntax.dotted, arity, exact)

        head = syntax.segments[0]
        if len(syntax.segments) == 1:
            return self._lookup_simple(head.identifier, arity, context, exact)

        rest = [segment.identifier for segment in syntax.segments[1:]]
        head_symbol = self._lookup_simple(head.identifier, len(head.type_arguments), context, True)
        if head_symbol is not None:
            found = self._find(".".join([head_symbol.qualified_name, *rest]), arity, exact)
            if found is not None:
                return found

        for namespace in _namespace_chain(context.namespace):
            found = self._find(_join(namespace, syntax.dotted), arity, exact)
            if found is not None:
                return found

        for scope in self._scopes(context):
            target = scope.alias(head.identifier)
            if isinstance(target, NameSyntax):
                found = self._find(".".join([target.dotted, *rest]), arity, exact)
                if found is not None:
                    return found
        return None

    def _lookup_simple(
        self, name: str, arity: int, context: TypeDeclaration, exact: bool
    ) -> Optional[TypeSymbol]:
        for container in context.containers:
            container_symbol = self._declared.get(container)
            if container_symbol is None:
                continue
            found = self._find(f"{container_symbol.qualified_name}.{name}", arity, exact)
            if found is not None:
                return found

        scopes = self._scopes(context)
        for namespace in _namespace_chain(context.namespace):
            found = self._find(_join(namespace, name), arity, exact)
            if found is not None:
                return found
            matches: List[TypeSymbol] = []
            for scope in scopes:
                if scope.namespace != namespace:
                    continue
                for imported in scope.namespaces:
                    candidates = {imported, _join(scope.namespace, imported)}
                    for candidate in sorted(candidates):
                        found = self._find(f"{candidate}.{name}", arity, exact)
                        if found is not None and found not in matches:
                            matches.append(found)
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                logger.debug(
                    "Name %s is ambiguous between %s",
                    name,
                    ", ".join(match.qualified_name for match in matches),
                )
                return None
        return None

    def _find(self, qualified_name: str, arity: int, exact: bool) -> Optional[TypeSymbol]:
        if exact:
            symbol = self._symbols.get((qualified_name, arity))
            if symbol is None or symbol.ambiguous:
                return None
            return symbol
        for symbol in self._by_name.get(qualified_name, ()):
            if not symbol.ambiguous:
                return symbol
        return None

    def _scopes(self, context: TypeDeclaration) -> Tuple[UsingScope, ...]:
        return (*context.scopes, self._global_scope)


def _type_parameters_in_scope(context: TypeDeclaration) -> set[str]:
    names = set(context.type_parameters)
    for container in context.containers:
        names.update(container.type_parameters)
    return names


def _namespace_chain(namespace: str) -> List[str]:
    chain = []
    current = namespace
    while current:
        chain.append(current)
        current = current.rpartition(".")[0]
    chain.append("")
    return chain


def _join(namespace: str, name: str) -> str:
    return f"{namespace}.{name}" if namespace else name


__all__ = [
    "ArrayType",
    "ErrorType",
    "NamedType",
    "NullableType",
    "PredefinedType",
    "ReferenceLibrary",
    "ReferenceType",
    "SemanticEnvironment",
    "SemanticType",
    "TupleType",
    "TypeParameterType",
    "TypeSymbol",
    "contains_type_parameter",
]

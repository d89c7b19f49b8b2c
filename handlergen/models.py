"""Core data models shared across handlergen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional, Tuple, Union

if TYPE_CHECKING:
    from .analyzers.semantic import TypeSymbol
    from .analyzers.syntax import TypeDeclaration


@dataclass(frozen=True)
class SourceFile:
    """Raw text of one input file, keyed by its path relative to the input root."""

    path: str
    text: str


@dataclass(frozen=True)
class SourceUnit:
    """One parsed file: origin path plus its (possibly error-tolerant) syntax tree."""

    path: str
    tree: Any = field(repr=False, compare=False)
    source: bytes = field(repr=False, compare=False)

    @property
    def root(self) -> Any:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return bool(self.root.has_error)


@dataclass(frozen=True)
class ClassCandidate:
    """A class declaration together with its resolved symbol (None when unresolved)."""

    unit: SourceUnit
    declaration: "TypeDeclaration"
    symbol: Optional["TypeSymbol"]

    @property
    def name(self) -> str:
        return self.declaration.name or ""


@dataclass(frozen=True)
class NotAHandler:
    """Classification for classes that do not implement a handler contract."""


@dataclass(frozen=True)
class QueryHandler:
    """Bound to the two-parameter query contract."""

    query_type: str
    result_type: str

    @property
    def type_arguments(self) -> Tuple[str, str]:
        return (self.query_type, self.result_type)

    @property
    def contract_type(self) -> str:
        return f"IQueryHandler<{self.query_type}, {self.result_type}>"


@dataclass(frozen=True)
class CommandHandler:
    """Bound to the one-parameter command contract."""

    command_type: str

    @property
    def type_arguments(self) -> Tuple[str]:
        return (self.command_type,)

    @property
    def contract_type(self) -> str:
        return f"ICommandHandler<{self.command_type}>"


HandlerClassification = Union[NotAHandler, QueryHandler, CommandHandler]

NOT_A_HANDLER = NotAHandler()


@dataclass(frozen=True)
class RegistrationEntry:
    """One registration statement wiring a handler to its contract type."""

    handler_name: str
    handler_type: str
    classification: Union[QueryHandler, CommandHandler]
    unit_path: str = ""

    @property
    def registered_type(self) -> str:
        # Handlers are nested inside their request type: Ping.PingHandler.
        return f"{self.classification.type_arguments[0]}.{self.handler_name}"

    @property
    def contract_type(self) -> str:
        return self.classification.contract_type


class ImportSet:
    """Immutable, insertion-ordered set of trimmed using directives."""

    __slots__ = ("_items",)

    def __init__(self, directives: Iterable[str] = ()) -> None:
        ordered: dict[str, None] = {}
        for directive in directives:
            text = directive.strip()
            if text:
                ordered.setdefault(text, None)
        self._items: Tuple[str, ...] = tuple(ordered)

    def union(self, directives: Iterable[str]) -> "ImportSet":
        return ImportSet((*self._items, *directives))

    def without(self, directives: Iterable[str]) -> "ImportSet":
        excluded = {directive.strip() for directive in directives}
        return ImportSet(item for item in self._items if item not in excluded)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, directive: object) -> bool:
        return isinstance(directive, str) and directive.strip() in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImportSet):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"ImportSet({list(self._items)!r})"


@dataclass(frozen=True)
class GeneratedModule:
    """Final rendered registration module."""

    namespace: str
    imports: ImportSet
    entries: Tuple[RegistrationEntry, ...]
    text: str

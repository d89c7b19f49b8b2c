"""Classify class candidates as query handlers, command handlers or neither."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import (
    NOT_A_HANDLER,
    ClassCandidate,
    CommandHandler,
    HandlerClassification,
    NotAHandler,
    QueryHandler,
    RegistrationEntry,
)
from .semantic import NamedType, SemanticEnvironment, TypeSymbol, contains_type_parameter

logger = get_logger("classifier")

QUERY_ARITY = 2
COMMAND_ARITY = 1


class ContractKind(str, Enum):
    QUERY = "query"
    COMMAND = "command"


class ScanState(Enum):
    SCANNING = "scanning"
    MATCHED = "matched"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ContractSet:
    """Contract generic definitions bound to their symbols in one environment."""

    query: FrozenSet[int]
    command: FrozenSet[int]

    @classmethod
    def bind(
        cls,
        environment: SemanticEnvironment,
        query_names: Iterable[str],
        command_names: Iterable[str],
    ) -> "ContractSet":
        # Every arity of a contract name is the same generic definition for matching;
        # the classifier enforces the expected arity on the bound arguments.
        query = frozenset(
            id(symbol) for name in query_names for symbol in environment.symbols_named(name.strip())
        )
        command = frozenset(
            id(symbol) for name in command_names for symbol in environment.symbols_named(name.strip())
        )
        return cls(query=query, command=command)

    def match(self, symbol: TypeSymbol) -> Optional[ContractKind]:
        if id(symbol) in self.query:
            return ContractKind.QUERY
        if id(symbol) in self.command:
            return ContractKind.COMMAND
        return None


class HandlerClassifier:
    """Walks each candidate's base chain and reports the first contract it reaches."""

    def __init__(self, environment: SemanticEnvironment, contracts: ContractSet) -> None:
        self._environment = environment
        self._contracts = contracts

    def classify(self, candidate: ClassCandidate) -> HandlerClassification:
        if candidate.symbol is None:
            logger.debug(
                "Skipping %s:%d; declared symbol could not be resolved",
                candidate.unit.path,
                candidate.declaration.line,
            )
            return NOT_A_HANDLER
        if candidate.declaration.arity or any(container.arity for container in candidate.declaration.containers):
            logger.debug("Skipping %s: generic classes cannot be registered as handlers", candidate.name)
            return NOT_A_HANDLER

        state = ScanState.SCANNING
        matched: Optional[Tuple[ContractKind, NamedType]] = None
        chain = self._environment.base_chain(candidate.symbol, prefer=self._is_contract)
        while state is ScanState.SCANNING:
            base = next(chain, None)
            if base is None:
                state = ScanState.EXHAUSTED
                continue
            kind = self._contracts.match(base.symbol)
            if kind is not None:
                matched = (kind, base)
                state = ScanState.MATCHED
            elif base.symbol.kind == "interface":
                # Interfaces are not base classes; the class chain ends here.
                state = ScanState.EXHAUSTED

        if matched is None:
            return NOT_A_HANDLER
        kind, base = matched
        return self._bind(candidate, kind, base)

    def _is_contract(self, symbol: TypeSymbol) -> bool:
        return self._contracts.match(symbol) is not None

    def _bind(self, candidate: ClassCandidate, kind: ContractKind, base: NamedType) -> HandlerClassification:
        if any(contains_type_parameter(argument) for argument in base.type_arguments):
            # Open generic bases cannot be registered as concrete handler types.
            logger.debug("Skipping %s: contract arguments are not closed over concrete types", candidate.name)
            return NOT_A_HANDLER
        arguments = [argument.display() for argument in base.type_arguments]
        expected = QUERY_ARITY if kind is ContractKind.QUERY else COMMAND_ARITY
        if len(arguments) != expected:
            logger.debug(
                "Skipping %s: %s contract bound with %d type arguments, expected %d",
                candidate.name,
                kind.value,
                len(arguments),
                expected,
            )
            return NOT_A_HANDLER
        if kind is ContractKind.QUERY:
            return QueryHandler(query_type=arguments[0], result_type=arguments[1])
        return CommandHandler(command_type=arguments[0])


def registration_entries(
    candidates: Iterable[ClassCandidate], classifier: HandlerClassifier
) -> List[Tuple[ClassCandidate, RegistrationEntry]]:
    """Classify candidates in discovery order, keeping only handlers."""
    entries: List[Tuple[ClassCandidate, RegistrationEntry]] = []
    for candidate in candidates:
        classification = classifier.classify(candidate)
        if isinstance(classification, NotAHandler) or candidate.symbol is None:
            continue
        entries.append(
            (
                candidate,
                RegistrationEntry(
                    handler_name=candidate.name,
                    handler_type=candidate.symbol.qualified_name,
                    classification=classification,
                    unit_path=candidate.unit.path,
                ),
            )
        )
    return entries


__all__ = [
    "COMMAND_ARITY",
    "QUERY_ARITY",
    "ContractKind",
    "ContractSet",
    "HandlerClassifier",
    "ScanState",
    "registration_entries",
]
